"""Tests for rule orchestration, failure isolation and deadlines."""

from __future__ import annotations

import os
import subprocess
import sys
import textwrap
import threading
import time
from pathlib import Path

from pagelens import orchestrator
from pagelens.config import ScanConfig
from pagelens.document import DocumentSnapshot
from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor
from pagelens.rules.registry import RuleRegistry


def test_failing_rule_does_not_drop_other_issues() -> None:
    registry = RuleRegistry()
    registry.register(_descriptor("ONE", 10), lambda: _StaticRule([_issue("ONE")]))
    registry.register(_descriptor("BOOM", 20), _ExplodingRule)
    registry.register(
        _descriptor("MANY", 30), lambda: _StaticRule([_issue("MANY"), _issue("MANY")])
    )
    registry.register(_descriptor("NONE", 40), lambda: _StaticRule(None))

    outcome = orchestrator.run(_context(), registry.freeze(), max_workers=2)

    assert [issue.id for issue in outcome.issues] == ["ONE", "MANY", "MANY"]
    assert outcome.complete
    assert len(outcome.errors) == 1
    assert outcome.errors[0].rule_id == "BOOM"
    assert outcome.errors[0].message == "RuntimeError: rule exploded"
    statuses = {run.rule_id: run.status for run in outcome.runs}
    assert statuses == {"ONE": "ran", "BOOM": "failed", "MANY": "ran", "NONE": "ran"}


def test_single_issue_result_is_accepted() -> None:
    registry = RuleRegistry()
    registry.register(_descriptor("SOLO"), lambda: _StaticRule(_issue("SOLO")))
    outcome = orchestrator.run(_context(), registry)
    assert [issue.id for issue in outcome.issues] == ["SOLO"]


def test_non_issue_result_is_recorded_as_error() -> None:
    registry = RuleRegistry()
    registry.register(_descriptor("BAD"), lambda: _StaticRule(["not an issue"]))
    outcome = orchestrator.run(_context(), registry)
    assert outcome.issues == []
    assert outcome.errors[0].message.startswith("TypeError")


def test_deadline_marks_outcome_partial_and_keeps_finished_issues() -> None:
    release = threading.Event()
    registry = RuleRegistry()
    registry.register(_descriptor("FAST", 10), lambda: _StaticRule([_issue("FAST")]))
    registry.register(_descriptor("SLOW", 20), lambda: _BlockingRule(release))
    try:
        outcome = orchestrator.run(
            _context(), registry.freeze(), max_workers=2, timeout_seconds=0.5
        )
    finally:
        release.set()

    assert not outcome.complete
    assert [issue.id for issue in outcome.issues] == ["FAST"]
    assert outcome.timed_out_rule_ids == ["SLOW"]
    assert outcome.errors == []


def test_worker_limit_bounds_concurrent_rules() -> None:
    tracker = _ConcurrencyTracker()
    registry = RuleRegistry()
    for index in range(6):
        registry.register(_descriptor(f"R{index}", index), lambda: _TrackedRule(tracker))

    outcome = orchestrator.run(_context(), registry.freeze(), max_workers=2)

    assert outcome.complete
    assert len(outcome.runs) == 6
    assert 1 <= tracker.peak <= 2


def test_hung_rule_does_not_delay_interpreter_exit() -> None:
    script = textwrap.dedent(
        """
        import time

        from pagelens.config import ScanConfig
        from pagelens.issues import Category, Severity
        from pagelens.rules.base import RuleDescriptor
        from pagelens.rules.registry import RuleRegistry
        from pagelens.scan import scan_html


        class SleepyRule:
            descriptor = RuleDescriptor(
                id="SLEEPY",
                title="Sleepy",
                category=Category.MISC,
                default_severity=Severity.LOW,
            )

            def meta(self):
                return self.descriptor

            def execute(self, context):
                time.sleep(30)


        registry = RuleRegistry()
        registry.register(SleepyRule.descriptor, SleepyRule)
        result = scan_html(
            "https://example.com/",
            "<html><body><p>x</p></body></html>",
            ScanConfig(overall_timeout_ms=100),
            registry=registry,
        )
        print(result.status)
        """
    )
    root = Path(__file__).resolve().parents[1]
    search_path = os.pathsep.join([str(root), os.environ.get("PYTHONPATH", "")])
    env = {**os.environ, "PYTHONPATH": search_path}

    started = time.monotonic()
    completed = subprocess.run(
        [sys.executable, "-c", script],
        capture_output=True,
        text=True,
        env=env,
        timeout=25,
        check=False,
    )
    elapsed = time.monotonic() - started

    assert completed.returncode == 0, completed.stderr
    assert completed.stdout.strip().splitlines()[-1] == "partial"
    assert elapsed < 10


def test_empty_registry_is_complete() -> None:
    outcome = orchestrator.run(_context(), RuleRegistry().freeze())
    assert outcome.complete
    assert outcome.issues == []
    assert outcome.runs == []


class _StaticRule:
    def __init__(self, result: object) -> None:
        self._result = result

    def meta(self) -> RuleDescriptor:
        return _descriptor("STATIC")

    def execute(self, context: RuleContext) -> object:
        return self._result


class _ExplodingRule:
    def meta(self) -> RuleDescriptor:
        return _descriptor("BOOM")

    def execute(self, context: RuleContext) -> None:
        raise RuntimeError("rule exploded")


class _BlockingRule:
    def __init__(self, release: threading.Event) -> None:
        self._release = release

    def meta(self) -> RuleDescriptor:
        return _descriptor("SLOW")

    def execute(self, context: RuleContext) -> None:
        self._release.wait(timeout=5)
        return None


class _ConcurrencyTracker:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active = 0
        self.peak = 0

    def enter(self) -> None:
        with self._lock:
            self._active += 1
            self.peak = max(self.peak, self._active)

    def leave(self) -> None:
        with self._lock:
            self._active -= 1


class _TrackedRule:
    def __init__(self, tracker: _ConcurrencyTracker) -> None:
        self._tracker = tracker

    def meta(self) -> RuleDescriptor:
        return _descriptor("TRACKED")

    def execute(self, context: RuleContext) -> None:
        self._tracker.enter()
        try:
            time.sleep(0.05)
        finally:
            self._tracker.leave()


def _context() -> RuleContext:
    snapshot = DocumentSnapshot.parse("https://example.com/", "<body><p>x</p></body>")
    return RuleContext(snapshot=snapshot, config=ScanConfig())


def _descriptor(rule_id: str, priority: int = 100) -> RuleDescriptor:
    return RuleDescriptor(
        id=rule_id,
        title=rule_id,
        category=Category.MISC,
        default_severity=Severity.LOW,
        priority=priority,
    )


def _issue(rule_id: str) -> Issue:
    return Issue(
        id=rule_id,
        title=rule_id,
        severity=Severity.LOW,
        category=Category.MISC,
        description="test issue",
        remediation="none",
        impact_score=5.0,
    )
