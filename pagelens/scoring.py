"""Issue aggregation into category and overall scores."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pagelens.config import ScanConfig
from pagelens.issues import Category, Issue, Severity

if TYPE_CHECKING:
    from pagelens.scan import ScanResult

MAX_SCORE = 100.0
GRADE_THRESHOLDS = ((90.0, "A"), (75.0, "B"), (60.0, "C"), (45.0, "D"))
QUICK_WIN_MIN_IMPACT = 12.0
QUICK_WIN_MIN_RETURN = 5.0
QUICK_FIX_KEYWORDS = ("missing", "add", "include", "use", "meta", "alt", "title", "h1")
LOW_EFFORT_MARKERS = ("missing meta", "missing alt", "missing page title", "alt text")
HIGH_EFFORT_MARKERS = ("structure", "rewrite")
EFFORT_COST = {"low": 1, "medium": 3, "high": 8}


@dataclass(frozen=True, slots=True)
class CategoryScore:
    """Score for one category: 100 minus the summed impact, clamped to [0, 100]."""

    category: Category
    score: float
    issue_count: int
    total_impact: float
    weight: float
    severity_buckets: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ScoringResult:
    overall_score: float
    category_scores: tuple[CategoryScore, ...]
    total_issues: int
    severity_breakdown: dict[str, int]
    normalized_score: float
    max_possible_score: float = MAX_SCORE

    @property
    def grade(self) -> str:
        return grade(self.overall_score)

    def category_score(self, category: Category) -> CategoryScore | None:
        for item in self.category_scores:
            if item.category is category:
                return item
        return None


@dataclass(frozen=True, slots=True)
class QuickWin:
    """A fix whose impact is large for the work it takes."""

    issue_id: str
    title: str
    impact: float
    effort: str
    fix: str

    def to_dict(self) -> dict[str, object]:
        return {
            "issue_id": self.issue_id,
            "title": self.title,
            "impact": self.impact,
            "effort": self.effort,
            "fix": self.fix,
        }


@dataclass(frozen=True, slots=True)
class CategoryChange:
    category: Category
    before: float
    after: float

    @property
    def delta(self) -> float:
        return round(self.after - self.before, 1)


@dataclass(frozen=True, slots=True)
class ScanComparison:
    """Difference between two scans of the same page."""

    before_score: float
    after_score: float
    score_change: float
    before_grade: str
    after_grade: str
    grade_change: str
    issue_change: int
    category_changes: tuple[CategoryChange, ...]
    new_issues: tuple[Issue, ...]
    resolved_issues: tuple[Issue, ...]

    @property
    def improved(self) -> bool:
        return self.score_change > 0


def score_issues(
    issues: Sequence[Issue],
    config: ScanConfig,
    categories: Iterable[Category] | None = None,
) -> ScoringResult:
    """Aggregate issues into per-category scores and a weighted overall score.

    ``categories`` lists categories whose rules ran; together with the
    categories of emitted issues they form the set averaged into the overall
    score. With no categories at all the overall score is 100.
    """
    grouped: dict[Category, list[Issue]] = {}
    for issue in issues:
        grouped.setdefault(issue.category, []).append(issue)
    present = set(categories or ()) | set(grouped)

    category_scores: list[CategoryScore] = []
    for category in Category:
        if category not in present:
            continue
        items = grouped.get(category, [])
        total_impact = sum(issue.impact_score for issue in items)
        category_scores.append(
            CategoryScore(
                category=category,
                score=_clamp(MAX_SCORE - total_impact),
                issue_count=len(items),
                total_impact=total_impact,
                weight=config.weight_for(category),
                severity_buckets=_severity_counts(items),
            )
        )

    scored = {item.category: item.score for item in category_scores}
    normalized = _weighted_average(
        [(scored.get(category, MAX_SCORE), config.weight_for(category)) for category in Category]
    )
    overall = _weighted_average([(item.score, item.weight) for item in category_scores])
    return ScoringResult(
        overall_score=overall,
        category_scores=tuple(category_scores),
        total_issues=len(issues),
        severity_breakdown=_severity_counts(issues),
        normalized_score=normalized,
    )


def grade(score: float) -> str:
    for threshold, letter in GRADE_THRESHOLDS:
        if score >= threshold:
            return letter
    return "F"


def top_issues(issues: Iterable[Issue], limit: int = 10) -> list[Issue]:
    """Most important issues first: severity, then impact, then id."""
    ordered = sorted(issues, key=lambda issue: (issue.severity.rank, -issue.impact_score, issue.id))
    return ordered[: max(0, limit)]


def quick_wins(issues: Iterable[Issue], limit: int = 5) -> list[QuickWin]:
    """Issues worth fixing first, by impact per unit of effort.

    An issue qualifies with an impact of at least 12 when it is a simple
    addition, such as a missing tag, or returns at least 5 impact points per
    unit of effort.
    """
    candidates: list[tuple[float, int, QuickWin]] = []
    for issue in issues:
        effort = estimate_effort(issue)
        roi = issue.impact_score / EFFORT_COST[effort]
        if issue.impact_score < QUICK_WIN_MIN_IMPACT:
            continue
        if not (_is_quick_fix(issue) or roi >= QUICK_WIN_MIN_RETURN):
            continue
        win = QuickWin(
            issue_id=issue.id,
            title=issue.title,
            impact=issue.impact_score,
            effort=effort,
            fix=issue.remediation,
        )
        candidates.append((roi, EFFORT_COST[effort], win))
    candidates.sort(key=lambda item: (-item[0], item[1], -item[2].impact, item[2].issue_id))
    return [win for _, _, win in candidates[: max(0, limit)]]


def estimate_effort(issue: Issue) -> str:
    title = issue.title.lower()
    if any(marker in title for marker in LOW_EFFORT_MARKERS):
        return "low"
    if any(marker in title for marker in HIGH_EFFORT_MARKERS):
        return "high"
    if "redesign" in issue.remediation.lower():
        return "high"
    return "medium"


def compare_scans(before: ScanResult, after: ScanResult) -> ScanComparison:
    """Compare two scans; issues are matched by id only."""
    before_scores = {item.category: item.score for item in before.scoring.category_scores}
    after_scores = {item.category: item.score for item in after.scoring.category_scores}

    changes = [
        CategoryChange(
            category=category,
            before=before_scores.get(category, MAX_SCORE),
            after=after_scores.get(category, MAX_SCORE),
        )
        for category in Category
        if category in before_scores or category in after_scores
    ]
    changes = [change for change in changes if change.delta != 0]
    changes.sort(key=lambda change: (-change.delta, change.category.value))

    before_ids = {issue.id for issue in before.issues}
    after_ids = {issue.id for issue in after.issues}
    before_grade = before.scoring.grade
    after_grade = after.scoring.grade
    return ScanComparison(
        before_score=before.scoring.overall_score,
        after_score=after.scoring.overall_score,
        score_change=round(after.scoring.overall_score - before.scoring.overall_score, 1),
        before_grade=before_grade,
        after_grade=after_grade,
        grade_change=(
            "No change" if before_grade == after_grade else f"{before_grade} → {after_grade}"
        ),
        issue_change=len(after.issues) - len(before.issues),
        category_changes=tuple(changes),
        new_issues=tuple(issue for issue in after.issues if issue.id not in before_ids),
        resolved_issues=tuple(issue for issue in before.issues if issue.id not in after_ids),
    )


def _weighted_average(pairs: list[tuple[float, float]]) -> float:
    if not pairs:
        return MAX_SCORE
    total_weight = sum(weight for _, weight in pairs)
    if total_weight <= 0:
        return round(sum(score for score, _ in pairs) / len(pairs), 1)
    return round(sum(score * weight for score, weight in pairs) / total_weight, 1)


def _is_quick_fix(issue: Issue) -> bool:
    text = f"{issue.title} {issue.remediation}".lower()
    return any(keyword in text for keyword in QUICK_FIX_KEYWORDS)


def _severity_counts(issues: Iterable[Issue]) -> dict[str, int]:
    counts = {severity.value: 0 for severity in Severity}
    for issue in issues:
        counts[issue.severity.value] += 1
    return counts


def _clamp(value: float, lower: float = 0.0, upper: float = MAX_SCORE) -> float:
    return max(lower, min(upper, value))
