"""Ordered, write-once catalog of rules."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from pagelens.issues import Category
from pagelens.rules.base import Rule, RuleDescriptor

RuleFactory = Callable[[], Rule]


class DuplicateRuleError(ValueError):
    """Raised when a rule id is registered twice."""


class RegistryFrozenError(RuntimeError):
    """Raised when registering into a registry that has been frozen."""


@dataclass(frozen=True, slots=True)
class RegisteredRule:
    """A catalog entry: descriptor plus a factory producing a fresh rule instance."""

    descriptor: RuleDescriptor
    factory: RuleFactory
    sequence: int

    @property
    def rule_id(self) -> str:
        return self.descriptor.id


class RuleRegistry:
    """Rule catalog sorted by ascending priority, ties kept in registration order."""

    def __init__(self) -> None:
        self._entries: list[RegisteredRule] = []
        self._ids: set[str] = set()
        self._frozen = False

    def register(self, descriptor: RuleDescriptor, factory: RuleFactory) -> None:
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register '{descriptor.id}': registry is frozen"
            )
        if descriptor.id in self._ids:
            raise DuplicateRuleError(f"Rule id already registered: {descriptor.id}")
        self._ids.add(descriptor.id)
        self._entries.append(
            RegisteredRule(descriptor=descriptor, factory=factory, sequence=len(self._entries))
        )
        self._entries.sort(key=lambda entry: (entry.descriptor.priority, entry.sequence))

    def list(self) -> tuple[RegisteredRule, ...]:
        return tuple(self._entries)

    def freeze(self) -> RuleRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def categories(self) -> set[Category]:
        """Categories covered by at least one registered rule."""
        return {entry.descriptor.category for entry in self._entries}

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._ids

    def __len__(self) -> int:
        return len(self._entries)
