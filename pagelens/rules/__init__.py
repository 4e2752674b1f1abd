"""Builtin check catalog."""

from collections.abc import Iterable
from dataclasses import dataclass

from pagelens.config import ScanConfig
from pagelens.issues import Category
from pagelens.rules.base import Rule, RuleDescriptor
from pagelens.rules.chunking import ContentTokenWindowRule
from pagelens.rules.crawl import HttpStatusRule, MissingCanonicalRule, NoindexRule
from pagelens.rules.extraction import ClientRenderedContentRule
from pagelens.rules.headings import MissingH1Rule, MultipleH1Rule, SkippedHeadingLevelsRule
from pagelens.rules.images import MissingAltTextRule
from pagelens.rules.meta_tags import MissingMetaDescriptionRule, MissingTitleRule
from pagelens.rules.readability import ComplexReadingLevelRule
from pagelens.rules.registry import RuleRegistry
from pagelens.rules.robots import RobotsAiCrawlerRule
from pagelens.rules.semantic import MissingMainContainerRule
from pagelens.rules.structured_data import InvalidJsonLdRule, MissingJsonLdRule


@dataclass(frozen=True, slots=True)
class RuleInfo:
    """Rule metadata for listing and selection."""

    rule_id: str
    title: str
    category: str
    severity: str
    priority: int
    description: str
    network: bool
    default_enabled: bool


@dataclass(frozen=True, slots=True)
class _RuleSpec:
    rule_cls: type[Rule]
    network: bool = False

    @property
    def descriptor(self) -> RuleDescriptor:
        return self.rule_cls.descriptor

    @property
    def rule_id(self) -> str:
        return self.descriptor.id


def default_registry() -> RuleRegistry:
    """Return the frozen builtin registry for default configuration."""
    return build_registry(ScanConfig())


def build_registry(
    config: ScanConfig | None = None,
    *,
    enabled_rule_ids: list[str] | None = None,
    disabled_rule_ids: list[str] | None = None,
    disabled_categories: Iterable[Category | str] | None = None,
) -> RuleRegistry:
    """Build a frozen registry applying enable/disable filters.

    Network-backed checks are only included when ``enable_network_checks``
    is set on the config, even if explicitly enabled.
    """
    scan_config = config or ScanConfig()
    specs = _ordered_rule_specs()
    catalog = {spec.rule_id: spec for spec in specs}
    disabled_set = set(disabled_rule_ids or [])
    requested_ids = set(enabled_rule_ids or []) | disabled_set

    unknown = [rule_id for rule_id in requested_ids if rule_id not in catalog]
    if unknown:
        joined = ", ".join(sorted(unknown))
        raise ValueError(f"Unknown rule ids: {joined}")

    skipped_categories = {_coerce_category(item) for item in disabled_categories or []}
    if enabled_rule_ids is None:
        selected = [spec for spec in specs if spec.rule_id not in disabled_set]
    else:
        selected = [catalog[rule_id] for rule_id in _dedupe(enabled_rule_ids)]
        selected = [spec for spec in selected if spec.rule_id not in disabled_set]

    registry = RuleRegistry()
    for spec in selected:
        if spec.descriptor.category in skipped_categories:
            continue
        if spec.network and not scan_config.enable_network_checks:
            continue
        registry.register(spec.descriptor, spec.rule_cls)
    return registry.freeze()


def list_rule_info(config: ScanConfig | None = None) -> list[RuleInfo]:
    """Return metadata for all builtin rules."""
    scan_config = config or ScanConfig()
    info: list[RuleInfo] = []
    for spec in _ordered_rule_specs():
        descriptor = spec.descriptor
        info.append(
            RuleInfo(
                rule_id=descriptor.id,
                title=descriptor.title,
                category=descriptor.category.value,
                severity=descriptor.default_severity.value,
                priority=descriptor.priority,
                description=descriptor.description or (spec.rule_cls.__doc__ or "").strip(),
                network=spec.network,
                default_enabled=not spec.network or scan_config.enable_network_checks,
            )
        )
    return info


def _ordered_rule_specs() -> list[_RuleSpec]:
    return [
        _RuleSpec(HttpStatusRule),
        _RuleSpec(NoindexRule),
        _RuleSpec(RobotsAiCrawlerRule, network=True),
        _RuleSpec(MissingH1Rule),
        _RuleSpec(MultipleH1Rule),
        _RuleSpec(SkippedHeadingLevelsRule),
        _RuleSpec(MissingMainContainerRule),
        _RuleSpec(ClientRenderedContentRule),
        _RuleSpec(ContentTokenWindowRule),
        _RuleSpec(MissingJsonLdRule),
        _RuleSpec(InvalidJsonLdRule),
        _RuleSpec(MissingTitleRule),
        _RuleSpec(MissingMetaDescriptionRule),
        _RuleSpec(MissingCanonicalRule),
        _RuleSpec(MissingAltTextRule),
        _RuleSpec(ComplexReadingLevelRule),
    ]


def _coerce_category(value: Category | str) -> Category:
    if isinstance(value, Category):
        return value
    try:
        return Category(value.upper())
    except ValueError:
        choices = ", ".join(item.value for item in Category)
        raise ValueError(f"Unknown category '{value}'. Expected one of: {choices}") from None


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    output: list[str] = []
    for item in items:
        if item in seen:
            continue
        seen.add(item)
        output.append(item)
    return output
