"""Rule orchestration: bounded parallel execution with failure isolation."""

from __future__ import annotations

import threading
import time
from collections.abc import Sequence
from concurrent.futures import Future, wait
from dataclasses import dataclass, field

import structlog

from pagelens.issues import Issue
from pagelens.rules.base import RuleContext
from pagelens.rules.registry import RegisteredRule, RuleRegistry

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RuleExecutionError:
    """A rule that raised instead of returning issues."""

    rule_id: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"rule_id": self.rule_id, "message": self.message}


@dataclass(slots=True)
class RuleRun:
    """Per-rule execution record."""

    rule_id: str
    category: str
    status: str
    reason: str
    elapsed_ms: int | None = None
    issues: int = 0

    def to_dict(self) -> dict[str, object]:
        return {
            "rule_id": self.rule_id,
            "category": self.category,
            "status": self.status,
            "reason": self.reason,
            "elapsed_ms": self.elapsed_ms,
            "issues": self.issues,
        }


@dataclass(slots=True)
class RunOutcome:
    """Issues collected from one orchestrated run."""

    issues: list[Issue] = field(default_factory=list)
    errors: list[RuleExecutionError] = field(default_factory=list)
    runs: list[RuleRun] = field(default_factory=list)
    complete: bool = True

    @property
    def timed_out_rule_ids(self) -> list[str]:
        return [run.rule_id for run in self.runs if run.status == "timed_out"]


@dataclass(slots=True)
class _Attempt:
    issues: list[Issue]
    elapsed_ms: int
    error: str | None = None


def run(
    context: RuleContext,
    registry: RuleRegistry,
    *,
    max_workers: int | None = None,
    timeout_seconds: float | None = None,
) -> RunOutcome:
    """Execute every registered rule against one snapshot.

    Rules run on daemon threads, at most ``max_workers`` at a time, so a rule
    that never returns cannot hold the interpreter open at exit. A failing
    rule contributes no issues and is recorded in ``errors``. When
    ``timeout_seconds`` expires the outstanding rules are abandoned, their
    runs are marked ``timed_out`` and the outcome is flagged incomplete.
    Issues are gathered in registry order regardless of completion order.
    """
    entries = registry.list()
    outcome = RunOutcome()
    if not entries:
        return outcome

    workers = max(1, min(max_workers or context.config.resolved_max_workers(), len(entries)))
    slots = threading.Semaphore(workers)
    futures: list[tuple[RegisteredRule, Future[_Attempt]]] = []
    for entry in entries:
        future: Future[_Attempt] = Future()
        threading.Thread(
            target=_run_in_slot,
            args=(slots, future, entry, context),
            name=f"pagelens-rule-{entry.rule_id}",
            daemon=True,
        ).start()
        futures.append((entry, future))
    _, pending = wait([future for _, future in futures], timeout=timeout_seconds)

    for entry, future in futures:
        run_record = RuleRun(
            rule_id=entry.rule_id,
            category=entry.descriptor.category.value,
            status="timed_out",
            reason="deadline-exceeded",
        )
        outcome.runs.append(run_record)

        if future in pending:
            future.cancel()
            outcome.complete = False
            logger.warning("rule_timed_out", rule_id=entry.rule_id, timeout_s=timeout_seconds)
            continue

        attempt = future.result()
        run_record.elapsed_ms = attempt.elapsed_ms
        if attempt.error is not None:
            run_record.status = "failed"
            run_record.reason = attempt.error
            outcome.errors.append(RuleExecutionError(rule_id=entry.rule_id, message=attempt.error))
            logger.warning("rule_failed", rule_id=entry.rule_id, error=attempt.error)
            continue

        run_record.status = "ran"
        run_record.reason = "completed"
        run_record.issues = len(attempt.issues)
        outcome.issues.extend(attempt.issues)

    return outcome


def _run_in_slot(
    slots: threading.Semaphore,
    future: Future[_Attempt],
    entry: RegisteredRule,
    context: RuleContext,
) -> None:
    with slots:
        # Cancelled while queued behind the worker limit.
        if not future.set_running_or_notify_cancel():
            return
        future.set_result(_attempt_rule(entry, context))


def _attempt_rule(entry: RegisteredRule, context: RuleContext) -> _Attempt:
    start = time.perf_counter()
    try:
        rule = entry.factory()
        issues = _normalize_result(rule.execute(context))
    except Exception as exc:
        return _Attempt(
            issues=[],
            elapsed_ms=_elapsed_ms(start),
            error=f"{exc.__class__.__name__}: {exc}",
        )
    return _Attempt(issues=issues, elapsed_ms=_elapsed_ms(start))


def _normalize_result(result: object) -> list[Issue]:
    if result is None:
        return []
    if isinstance(result, Issue):
        return [result]
    if isinstance(result, Sequence) and not isinstance(result, (str, bytes)):
        issues = list(result)
        for item in issues:
            if not isinstance(item, Issue):
                raise TypeError(f"Rule returned a non-Issue item: {type(item).__name__}")
        return issues
    raise TypeError(f"Rule returned unsupported result type: {type(result).__name__}")


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
