"""Issue model and the fixed severity/category enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


class Severity(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        """Sort key: critical first, info last."""
        return SEVERITY_ORDER.index(self)


SEVERITY_ORDER: tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
    Severity.INFO,
)


class Category(str, Enum):
    AIREAD = "AIREAD"
    EXTRACT = "EXTRACT"
    CHUNK = "CHUNK"
    CRAWL = "CRAWL"
    A11Y = "A11Y"
    TECH = "TECH"
    KG = "KG"
    MISC = "MISC"


MAX_IMPACT_SCORE = 50.0


@dataclass(frozen=True, slots=True)
class IssueLocation:
    """Where on the page an issue was observed."""

    url: str | None = None
    selector: str | None = None
    text_snippet: str | None = None


@dataclass(frozen=True, slots=True)
class Issue:
    """A single finding emitted by a rule."""

    id: str
    title: str
    severity: Severity
    category: Category
    description: str
    remediation: str
    impact_score: float
    location: IssueLocation | None = None
    evidence: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    confidence: float = 1.0
    timestamp: str = field(default_factory=lambda: utc_timestamp(), compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Issue id must be non-empty")
        if not isinstance(self.severity, Severity):
            object.__setattr__(self, "severity", Severity(self.severity))
        if not isinstance(self.category, Category):
            object.__setattr__(self, "category", Category(self.category))
        if not 0.0 <= self.impact_score <= MAX_IMPACT_SCORE:
            raise ValueError(
                f"Issue {self.id}: impact_score must be within [0, {MAX_IMPACT_SCORE:g}], "
                f"got {self.impact_score}"
            )
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(
                f"Issue {self.id}: confidence must be within [0, 1], got {self.confidence}"
            )
        object.__setattr__(self, "evidence", tuple(self.evidence))
        object.__setattr__(self, "tags", tuple(self.tags))


def utc_timestamp() -> str:
    return datetime.now(tz=UTC).replace(microsecond=0).isoformat().replace("+00:00", "Z")
