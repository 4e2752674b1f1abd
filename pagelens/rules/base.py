"""Rule protocol, descriptor and execution context."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pagelens.config import ScanConfig
from pagelens.document import DocumentSnapshot
from pagelens.issues import Category, Issue, IssueLocation, Severity

DEFAULT_PRIORITY = 100


@dataclass(frozen=True, slots=True)
class RuleDescriptor:
    """Static rule metadata, registered once and never mutated."""

    id: str
    title: str
    category: Category
    default_severity: Severity
    tags: tuple[str, ...] = ()
    priority: int = DEFAULT_PRIORITY
    description: str = ""


@dataclass(frozen=True, slots=True)
class RuleContext:
    """Everything a rule may look at during one scan."""

    snapshot: DocumentSnapshot
    config: ScanConfig

    @property
    def url(self) -> str:
        return self.snapshot.url


RuleResult = Issue | Sequence[Issue] | None


class Rule(Protocol):
    """Protocol for page checks.

    ``execute`` must be a pure function of the context: no state carried
    between calls and no mutation of the snapshot.
    """

    def meta(self) -> RuleDescriptor:
        """Return the rule's static descriptor."""

    def execute(self, context: RuleContext) -> RuleResult:
        """Evaluate the page and return zero, one or many issues."""


def build_issue(
    descriptor: RuleDescriptor,
    context: RuleContext,
    *,
    description: str,
    remediation: str,
    title: str | None = None,
    severity: Severity | None = None,
    category: Category | None = None,
    impact_score: float | None = None,
    selector: str | None = None,
    text_snippet: str | None = None,
    evidence: Sequence[str] = (),
    confidence: float = 1.0,
) -> Issue:
    """Create an Issue pre-filled from a descriptor.

    When ``impact_score`` is omitted the configured default for the
    effective severity is used.
    """
    effective_severity = severity or descriptor.default_severity
    impact = (
        impact_score if impact_score is not None else context.config.impact_for(effective_severity)
    )
    return Issue(
        id=descriptor.id,
        title=title or descriptor.title,
        severity=effective_severity,
        category=category or descriptor.category,
        description=description,
        remediation=remediation,
        impact_score=impact,
        location=IssueLocation(url=context.url, selector=selector, text_snippet=text_snippet),
        evidence=tuple(evidence),
        tags=descriptor.tags,
        confidence=confidence,
    )
