"""Output rendering tests."""

from __future__ import annotations

import json
from pathlib import Path

from pagelens.issues import Category, Severity
from pagelens.output import (
    build_json_payload,
    render_comparison_human,
    render_comparison_json,
    render_human,
    render_json,
)
from pagelens.rules.base import RuleContext, RuleDescriptor
from pagelens.rules.registry import RuleRegistry
from pagelens.scan import scan_html
from pagelens.scoring import compare_scans

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "pages"


def test_render_human_summarises_score_issues_and_sections() -> None:
    result = scan_html("https://example.com/app", _load("client_rendered.html"))
    output = render_human(result)

    assert f"AI readiness score: {result.scoring.overall_score}/100" in output
    assert f"(grade {result.scoring.grade})" in output
    assert "Top issues:" in output
    assert "[EXTRACT-001]" in output
    assert "Chunking:" in output
    assert "body: none" in output
    assert "Rule errors:" not in output


def test_render_human_lists_rule_errors() -> None:
    registry = RuleRegistry()
    registry.register(_BrokenRule.descriptor, _BrokenRule)
    result = scan_html("https://example.com/", _load("clean.html"), registry=registry)

    output = render_human(result)
    assert "Rule errors:" in output
    assert "- BROKEN-1: KeyError: 'missing'" in output


def test_render_json_is_stable_and_complete() -> None:
    result = scan_html("https://example.com/guide", _load("hierarchy.html"))
    text = render_json(result)
    payload = json.loads(text)

    assert list(payload) == sorted(payload)
    assert set(payload) == {
        "chunking",
        "entity",
        "errors",
        "extractability",
        "grade",
        "issues",
        "meta",
        "overall_score",
        "quick_wins",
        "scoring",
        "status",
        "top_issues",
        "url",
    }
    assert payload == json.loads(json.dumps(build_json_payload(result), sort_keys=True))
    assert payload["chunking"]["total_chunks"] == 4
    assert [chunk["heading"] for chunk in payload["chunking"]["chunks"]][:2] == [
        "Field Guide",
        "Planning",
    ]
    assert set(payload["top_issues"]) <= {issue["id"] for issue in payload["issues"]}
    assert {run["status"] for run in payload["meta"]["rule_runs"]} == {"ran"}


def test_issue_serialization_carries_location_and_evidence() -> None:
    result = scan_html("https://example.com/notes", _load("paragraphs.html"))
    payload = build_json_payload(result)
    missing_h1 = next(issue for issue in payload["issues"] if issue["id"] == "AIREAD-001")

    assert missing_h1["severity"] == "critical"
    assert missing_h1["category"] == "AIREAD"
    assert missing_h1["location"]["url"] == "https://example.com/notes"
    assert missing_h1["evidence"] == ["No <h1> element found"]


def test_render_human_lists_quick_wins_and_entity() -> None:
    result = scan_html("https://example.com/notes", _load("paragraphs.html"))
    output = render_human(result)

    assert "Quick wins:" in output
    assert "- [AIREAD-001] Missing H1 (+40, medium effort)" in output
    assert "Primary entity: Article (confidence 0.6)" in output


def test_json_payload_carries_entity_quick_wins_and_element_summary() -> None:
    result = scan_html("https://example.com/widgets", _load("clean.html"))
    payload = build_json_payload(result)

    assert payload["entity"]["entity_type"] == "Organization"
    assert payload["entity"]["name"] == "Acme"
    assert payload["quick_wins"] == []
    nodes = payload["extractability"]["nodes"]
    assert nodes["total_nodes"] == 5
    assert nodes["server_rendered_percent"] == 100
    assert nodes["findings"] == []
    assert payload["chunking"]["content_tokens"] <= payload["chunking"]["total_tokens"]


def test_comparison_renderers() -> None:
    before = scan_html("https://example.com/", _load("client_rendered.html"))
    after = scan_html("https://example.com/", _load("clean.html"))
    comparison = compare_scans(before, after)

    human = render_comparison_human(comparison)
    assert f"Score: {before.scoring.overall_score} -> 100.0" in human
    assert "Resolved:" in human
    assert "New:" not in human

    payload = json.loads(render_comparison_json(comparison))
    assert payload["after_score"] == 100.0
    assert payload["new_issues"] == []
    assert payload["resolved_issues"] == [issue.id for issue in comparison.resolved_issues]
    assert [change["category"] for change in payload["category_changes"]]


def _load(name: str) -> str:
    return (FIXTURE_DIR / name).read_text(encoding="utf-8")


class _BrokenRule:
    descriptor = RuleDescriptor(
        id="BROKEN-1",
        title="Broken",
        category=Category.MISC,
        default_severity=Severity.LOW,
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> None:
        raise KeyError("missing")
