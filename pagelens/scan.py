"""Scan assembly: rules, scoring, chunking and extractability for one page."""

from __future__ import annotations

import time
from dataclasses import dataclass

import structlog

from pagelens import orchestrator
from pagelens.chunker import ChunkingResult, chunk_document
from pagelens.config import ScanConfig
from pagelens.document import DocumentSnapshot
from pagelens.extractability import ExtractabilityMap, build_extractability_map
from pagelens.issues import Category, Issue, utc_timestamp
from pagelens.orchestrator import RuleExecutionError, RuleRun
from pagelens.rules import build_registry
from pagelens.rules.base import RuleContext
from pagelens.rules.registry import RuleRegistry
from pagelens.scoring import QuickWin, ScoringResult, quick_wins, score_issues, top_issues
from pagelens.structured_data import PrimaryEntity, detect_primary_entity

logger = structlog.get_logger(__name__)

STATUS_COMPLETE = "complete"
STATUS_PARTIAL = "partial"

_CATEGORY_ORDER = {category: position for position, category in enumerate(Category)}


@dataclass(frozen=True, slots=True)
class ScanResult:
    """Everything learned about one page in one scan."""

    url: str
    timestamp: str
    status: str
    issues: tuple[Issue, ...]
    scoring: ScoringResult
    chunking: ChunkingResult
    extractability: ExtractabilityMap
    errors: tuple[RuleExecutionError, ...]
    rule_runs: tuple[RuleRun, ...]
    duration_ms: int
    top_issues_limit: int = 10
    quick_wins: tuple[QuickWin, ...] = ()
    primary_entity: PrimaryEntity | None = None

    @property
    def complete(self) -> bool:
        return self.status == STATUS_COMPLETE

    def top_issues(self, limit: int | None = None) -> list[Issue]:
        return top_issues(self.issues, self.top_issues_limit if limit is None else limit)


def scan_document(
    snapshot: DocumentSnapshot,
    config: ScanConfig,
    registry: RuleRegistry | None = None,
) -> ScanResult:
    """Run every registered rule against a snapshot and assemble the result.

    A deadline overrun yields ``status="partial"`` with the issues gathered so
    far; it is never raised.
    """
    config.validate()
    active_registry = registry if registry is not None else build_registry(config)
    context = RuleContext(snapshot=snapshot, config=config)
    started = time.perf_counter()
    logger.info("scan_started", url=snapshot.url, rules=len(active_registry))

    outcome = orchestrator.run(
        context,
        active_registry,
        max_workers=config.max_workers,
        timeout_seconds=config.overall_timeout_ms / 1000,
    )
    executed = {Category(run.category) for run in outcome.runs if run.status == "ran"}
    issues = sorted(outcome.issues, key=_issue_sort_key)
    scoring = score_issues(issues, config, categories=executed)
    chunking = chunk_document(snapshot, config)
    extractability = build_extractability_map(snapshot, config)
    duration_ms = int((time.perf_counter() - started) * 1000)

    status = STATUS_COMPLETE if outcome.complete else STATUS_PARTIAL
    logger.info(
        "scan_finished",
        url=snapshot.url,
        status=status,
        issues=len(issues),
        errors=len(outcome.errors),
        overall_score=scoring.overall_score,
        duration_ms=duration_ms,
    )
    return ScanResult(
        url=snapshot.url,
        timestamp=utc_timestamp(),
        status=status,
        issues=tuple(issues),
        scoring=scoring,
        chunking=chunking,
        extractability=extractability,
        errors=tuple(outcome.errors),
        rule_runs=tuple(outcome.runs),
        duration_ms=duration_ms,
        top_issues_limit=config.top_issues_limit,
        quick_wins=tuple(quick_wins(issues)),
        primary_entity=detect_primary_entity(snapshot),
    )


def scan_html(
    url: str,
    html: str,
    config: ScanConfig | None = None,
    *,
    http_status: int | None = None,
    headers: dict[str, str] | None = None,
    registry: RuleRegistry | None = None,
) -> ScanResult:
    """Parse raw markup and scan it. Raises ``MalformedInputError`` on unusable input."""
    snapshot = DocumentSnapshot.parse(url, html, http_status=http_status, headers=headers)
    return scan_document(snapshot, config or ScanConfig(), registry=registry)


def _issue_sort_key(issue: Issue) -> tuple[int, int, str]:
    return (_CATEGORY_ORDER[issue.category], issue.severity.rank, issue.id)
