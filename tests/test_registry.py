"""Tests for the rule registry and builtin catalog."""

from __future__ import annotations

import pytest

from pagelens.config import ScanConfig
from pagelens.issues import Category, Severity
from pagelens.rules import build_registry, default_registry, list_rule_info
from pagelens.rules.base import RuleContext, RuleDescriptor
from pagelens.rules.registry import DuplicateRuleError, RegistryFrozenError, RuleRegistry


def test_register_orders_by_priority_then_registration() -> None:
    registry = RuleRegistry()
    registry.register(_descriptor("LATE", priority=50), _NoopRule)
    registry.register(_descriptor("FIRST", priority=10), _NoopRule)
    registry.register(_descriptor("TIE-A", priority=20), _NoopRule)
    registry.register(_descriptor("TIE-B", priority=20), _NoopRule)

    assert [entry.rule_id for entry in registry.list()] == ["FIRST", "TIE-A", "TIE-B", "LATE"]
    assert isinstance(registry.list(), tuple)
    assert "TIE-B" in registry
    assert len(registry) == 4


def test_register_rejects_duplicate_ids() -> None:
    registry = RuleRegistry()
    registry.register(_descriptor("DUP"), _NoopRule)
    with pytest.raises(DuplicateRuleError):
        registry.register(_descriptor("DUP", priority=1), _NoopRule)
    assert len(registry) == 1


def test_frozen_registry_rejects_registration() -> None:
    registry = RuleRegistry().freeze()
    assert registry.frozen
    with pytest.raises(RegistryFrozenError):
        registry.register(_descriptor("NEW"), _NoopRule)


def test_default_registry_is_frozen_and_excludes_network_checks() -> None:
    registry = default_registry()
    assert registry.frozen
    assert "AIREAD-009" not in registry
    assert "AIREAD-001" in registry
    assert len(registry) == 15


def test_network_checks_opt_in_via_config() -> None:
    registry = build_registry(ScanConfig(enable_network_checks=True))
    assert "AIREAD-009" in registry
    ordered = [entry.rule_id for entry in registry.list()]
    assert ordered[:3] == ["CRAWL-001", "CRAWL-002", "AIREAD-009"]


def test_build_registry_applies_enable_disable_and_categories() -> None:
    enabled = build_registry(enabled_rule_ids=["TECH-001", "KG-001", "TECH-001"])
    assert [entry.rule_id for entry in enabled.list()] == ["KG-001", "TECH-001"]

    disabled = build_registry(disabled_rule_ids=["AIREAD-002"], disabled_categories=["kg"])
    ids = {entry.rule_id for entry in disabled.list()}
    assert "AIREAD-002" not in ids
    assert not {"KG-001", "KG-002"} & ids
    assert Category.KG not in disabled.categories()


def test_build_registry_rejects_unknown_rule_ids_and_categories() -> None:
    with pytest.raises(ValueError, match="Unknown rule ids: NOPE-1"):
        build_registry(disabled_rule_ids=["NOPE-1"])
    with pytest.raises(ValueError, match="Unknown category"):
        build_registry(disabled_categories=["SEO"])


def test_list_rule_info_covers_builtin_catalog() -> None:
    info = {item.rule_id: item for item in list_rule_info()}
    assert len(info) == 16
    assert info["AIREAD-009"].network
    assert not info["AIREAD-009"].default_enabled
    assert info["AIREAD-002"].category == "MISC"
    assert info["CRAWL-001"].severity == "critical"
    assert all(item.description for item in info.values())


class _NoopRule:
    descriptor = RuleDescriptor(
        id="NOOP",
        title="Noop",
        category=Category.MISC,
        default_severity=Severity.INFO,
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> None:
        return None


def _descriptor(rule_id: str, priority: int = 100) -> RuleDescriptor:
    return RuleDescriptor(
        id=rule_id,
        title=rule_id,
        category=Category.MISC,
        default_severity=Severity.LOW,
        priority=priority,
    )
