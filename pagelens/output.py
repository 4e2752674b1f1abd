"""Output rendering."""

from __future__ import annotations

import json
from typing import Any

import click

from pagelens import __version__
from pagelens.chunker import ChunkingResult, ContentChunk
from pagelens.extractability import ExtractabilityMap, NodeSummary
from pagelens.issues import Issue
from pagelens.scan import ScanResult
from pagelens.scoring import ScanComparison

_SEVERITY_COLORS = {
    "critical": "red",
    "high": "red",
    "medium": "yellow",
    "low": "cyan",
    "info": "white",
}


def render_human(result: ScanResult) -> str:
    """Render a compact colorized summary."""
    scoring = result.scoring
    color = _grade_color(scoring.grade)
    lines: list[str] = [
        click.style(
            f"AI readiness score: {scoring.overall_score}/100 (grade {scoring.grade})",
            fg=color,
            bold=True,
        ),
        f"URL: {result.url}",
        f"Issues: {scoring.total_issues}, normalized score {scoring.normalized_score}/100",
    ]
    if not result.complete:
        lines.append(
            click.style("Scan incomplete: some checks hit the deadline.", fg="yellow")
        )

    if scoring.category_scores:
        lines.append(click.style("Categories:", bold=True))
        for item in scoring.category_scores:
            lines.append(
                f"- {item.category.value}: {item.score:g}/100 "
                f"({item.issue_count} issues, weight {item.weight:g})"
            )

    top = result.top_issues()
    if top:
        lines.append(click.style("Top issues:", bold=True))
        for index, issue in enumerate(top, start=1):
            severity = click.style(
                issue.severity.value.upper(), fg=_SEVERITY_COLORS[issue.severity.value]
            )
            lines.append(f"{index}. [{issue.id}] {severity} -{issue.impact_score:g} {issue.title}")
            lines.append(f"   {issue.description}")
            lines.append(f"   fix: {issue.remediation}")

    chunking = result.chunking
    lines.append(click.style("Chunking:", bold=True))
    lines.append(
        f"- {chunking.strategy.value}, {chunking.total_chunks} chunks, "
        f"{chunking.average_tokens_per_chunk:g} avg tokens, "
        f"heading coverage {chunking.heading_coverage:.0%}"
    )

    extractability = result.extractability
    lines.append(click.style("Extractability:", bold=True))
    lines.append(
        f"- score {extractability.score:g}/100, {extractability.script_count} scripts"
        + (", client-only content detected" if extractability.has_client_only_content else "")
    )
    for region in extractability.regions:
        lines.append(f"  {region.content_source}: {region.level.value} ({region.reason})")
    nodes = extractability.node_summary
    if nodes.total_nodes:
        lines.append(
            f"  elements: {nodes.extractable_percent}% extractable, "
            f"{nodes.server_rendered_percent}% server-rendered, "
            f"{nodes.hidden_percent}% hidden"
        )
    for finding in nodes.findings:
        lines.append(f"  [{finding.severity.value}] {finding.description}")

    if result.quick_wins:
        lines.append(click.style("Quick wins:", bold=True))
        for win in result.quick_wins:
            lines.append(f"- [{win.issue_id}] {win.title} (+{win.impact:g}, {win.effort} effort)")

    entity = result.primary_entity
    if entity is not None:
        name = f' "{entity.name}"' if entity.name else ""
        lines.append(
            f"Primary entity: {entity.entity_type}{name} (confidence {entity.confidence:g})"
        )

    if result.errors:
        lines.append(click.style("Rule errors:", fg="yellow", bold=True))
        for error in result.errors:
            lines.append(f"- {error.rule_id}: {error.message}")
    return "\n".join(lines)


def render_json(result: ScanResult) -> str:
    """Render stable JSON output for CI and automation."""
    return json.dumps(build_json_payload(result), sort_keys=True)


def build_json_payload(result: ScanResult) -> dict[str, Any]:
    scoring = result.scoring
    return {
        "url": result.url,
        "status": result.status,
        "overall_score": scoring.overall_score,
        "grade": scoring.grade,
        "scoring": {
            "overall_score": scoring.overall_score,
            "normalized_score": scoring.normalized_score,
            "max_possible_score": scoring.max_possible_score,
            "total_issues": scoring.total_issues,
            "severity_breakdown": dict(scoring.severity_breakdown),
            "category_scores": [
                {
                    "category": item.category.value,
                    "score": item.score,
                    "issue_count": item.issue_count,
                    "total_impact": item.total_impact,
                    "weight": item.weight,
                    "severity_buckets": dict(item.severity_buckets),
                }
                for item in scoring.category_scores
            ],
        },
        "issues": [_serialize_issue(issue) for issue in result.issues],
        "top_issues": [issue.id for issue in result.top_issues()],
        "quick_wins": [win.to_dict() for win in result.quick_wins],
        "entity": None if result.primary_entity is None else result.primary_entity.to_dict(),
        "chunking": _serialize_chunking(result.chunking),
        "extractability": _serialize_extractability(result.extractability),
        "errors": [error.to_dict() for error in result.errors],
        "meta": {
            "generated_at": result.timestamp,
            "duration_ms": result.duration_ms,
            "rule_runs": [run.to_dict() for run in result.rule_runs],
            "version": __version__,
        },
    }


def render_comparison_human(comparison: ScanComparison) -> str:
    direction = "green" if comparison.score_change > 0 else "red"
    if comparison.score_change == 0:
        direction = "white"
    lines = [
        click.style(
            f"Score: {comparison.before_score} -> {comparison.after_score} "
            f"({comparison.score_change:+g})",
            fg=direction,
            bold=True,
        ),
        f"Grade: {comparison.grade_change}",
        f"Issue count change: {comparison.issue_change:+d}",
    ]
    if comparison.category_changes:
        lines.append(click.style("Category changes:", bold=True))
        for change in comparison.category_changes:
            lines.append(
                f"- {change.category.value}: {change.before:g} -> {change.after:g} "
                f"({change.delta:+g})"
            )
    if comparison.resolved_issues:
        lines.append(click.style("Resolved:", fg="green", bold=True))
        lines.extend(f"- [{issue.id}] {issue.title}" for issue in comparison.resolved_issues)
    if comparison.new_issues:
        lines.append(click.style("New:", fg="red", bold=True))
        lines.extend(f"- [{issue.id}] {issue.title}" for issue in comparison.new_issues)
    return "\n".join(lines)


def render_comparison_json(comparison: ScanComparison) -> str:
    payload = {
        "before_score": comparison.before_score,
        "after_score": comparison.after_score,
        "score_change": comparison.score_change,
        "grade_change": comparison.grade_change,
        "issue_change": comparison.issue_change,
        "category_changes": [
            {
                "category": change.category.value,
                "before": change.before,
                "after": change.after,
                "delta": change.delta,
            }
            for change in comparison.category_changes
        ],
        "new_issues": [issue.id for issue in comparison.new_issues],
        "resolved_issues": [issue.id for issue in comparison.resolved_issues],
    }
    return json.dumps(payload, sort_keys=True, ensure_ascii=False)


def _serialize_issue(issue: Issue) -> dict[str, Any]:
    location = issue.location
    return {
        "id": issue.id,
        "title": issue.title,
        "severity": issue.severity.value,
        "category": issue.category.value,
        "description": issue.description,
        "remediation": issue.remediation,
        "impact_score": issue.impact_score,
        "location": None
        if location is None
        else {
            "url": location.url,
            "selector": location.selector,
            "text_snippet": location.text_snippet,
        },
        "evidence": list(issue.evidence),
        "tags": list(issue.tags),
        "confidence": issue.confidence,
        "timestamp": issue.timestamp,
    }


def _serialize_chunk(chunk: ContentChunk) -> dict[str, Any]:
    return {
        "index": chunk.index,
        "heading": chunk.heading,
        "heading_level": chunk.heading_level,
        "token_count": chunk.token_count,
        "noise_ratio": chunk.noise_ratio,
        "word_count": chunk.word_count,
        "character_count": chunk.character_count,
        "has_code": chunk.has_code,
        "has_lists": chunk.has_lists,
        "has_tables": chunk.has_tables,
        "quality": chunk.quality.value,
        "quality_issues": list(chunk.quality_issues),
        "recommendations": list(chunk.recommendations),
    }


def _serialize_chunking(chunking: ChunkingResult) -> dict[str, Any]:
    return {
        "strategy": chunking.strategy.value,
        "total_chunks": chunking.total_chunks,
        "total_tokens": chunking.total_tokens,
        "content_tokens": chunking.content_tokens,
        "average_tokens_per_chunk": chunking.average_tokens_per_chunk,
        "average_noise_ratio": chunking.average_noise_ratio,
        "heading_coverage": chunking.heading_coverage,
        "quality_counts": chunking.quality_counts(),
        "chunks": [_serialize_chunk(chunk) for chunk in chunking.chunks],
    }


def _serialize_extractability(extractability: ExtractabilityMap) -> dict[str, Any]:
    return {
        "score": extractability.score,
        "has_client_only_content": extractability.has_client_only_content,
        "script_count": extractability.script_count,
        "hydration_markers": list(extractability.hydration_markers),
        "empty_mount_points": list(extractability.empty_mount_points),
        "regions": [
            {
                "content_source": region.content_source,
                "level": region.level.value,
                "reason": region.reason,
                "text_length": region.text_length,
                "word_count": region.word_count,
            }
            for region in extractability.regions
        ],
        "content_types": [
            {
                "content_type": item.content_type,
                "total": item.total,
                "visible": item.visible,
                "hidden": item.hidden,
            }
            for item in extractability.content_types
        ],
        "nodes": _serialize_node_summary(extractability.node_summary),
    }


def _serialize_node_summary(summary: NodeSummary) -> dict[str, Any]:
    return {
        "total_nodes": summary.total_nodes,
        "extractable_nodes": summary.extractable_nodes,
        "hidden_nodes": summary.hidden_nodes,
        "interactive_nodes": summary.interactive_nodes,
        "iframe_nodes": summary.iframe_nodes,
        "client_rendered_nodes": summary.client_rendered_nodes,
        "server_rendered_nodes": summary.server_rendered_nodes,
        "noscript_elements": summary.noscript_elements,
        "extractable_percent": summary.extractable_percent,
        "server_rendered_percent": summary.server_rendered_percent,
        "hidden_percent": summary.hidden_percent,
        "interactive_percent": summary.interactive_percent,
        "iframe_percent": summary.iframe_percent,
        "findings": [
            {
                "kind": finding.kind,
                "severity": finding.severity.value,
                "description": finding.description,
                "count": finding.count,
            }
            for finding in summary.findings
        ],
        "recommendations": list(summary.recommendations),
    }


def _grade_color(letter: str) -> str:
    if letter in {"A", "B"}:
        return "green"
    if letter == "C":
        return "yellow"
    return "red"
