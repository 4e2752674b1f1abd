"""Tests for the extractability mapper."""

from __future__ import annotations

from pathlib import Path

from pagelens.config import ScanConfig
from pagelens.document import DocumentSnapshot
from pagelens.extractability import (
    ExtractabilityLevel,
    build_extractability_map,
    count_scripts,
    summarize_nodes,
)
from pagelens.issues import Severity

FIXTURE_DIR = Path(__file__).parent / "fixtures" / "pages"


def test_script_heavy_page_without_main_is_not_extractable() -> None:
    html = (FIXTURE_DIR / "client_rendered.html").read_text(encoding="utf-8")
    result = build_extractability_map(_snapshot(html), ScanConfig())

    assert len(result.regions) == 1
    region = result.regions[0]
    assert region.content_source == "body"
    assert region.word_count == 10
    assert region.level is ExtractabilityLevel.NONE
    assert result.script_count == 20
    assert result.has_client_only_content
    assert result.score == 0.0


def test_static_article_is_fully_extractable() -> None:
    text = "Plain server rendered prose. " * 12
    result = build_extractability_map(
        _snapshot(f"<html><body><main id='content'><p>{text}</p></main></body></html>"),
        ScanConfig(),
    )
    assert [region.content_source for region in result.regions] == ["main#content"]
    assert result.regions[0].level is ExtractabilityLevel.FULL
    assert not result.has_client_only_content
    assert result.score == 100.0


def test_hydration_marker_with_static_text_is_partial() -> None:
    text = "Server rendered product description. " * 10
    html = (
        "<html><body><main>"
        f"<p>{text}</p>"
        "</main>"
        '<script id="__NEXT_DATA__" type="application/json">{"props": {}}</script>'
        "</body></html>"
    )
    result = build_extractability_map(_snapshot(html), ScanConfig())

    assert result.hydration_markers == ("__NEXT_DATA__",)
    assert result.script_count == 0
    assert result.regions[0].level is ExtractabilityLevel.PARTIAL
    assert result.score == 50.0


def test_empty_mount_point_with_little_text_is_not_extractable() -> None:
    html = '<html><body><div id="root"></div><script src="/app.js"></script></body></html>'
    result = build_extractability_map(_snapshot(html), ScanConfig())
    assert result.empty_mount_points == ("#root",)
    assert result.regions[0].level is ExtractabilityLevel.NONE


def test_short_static_page_without_client_signals_is_full() -> None:
    result = build_extractability_map(
        _snapshot("<html><body><p>Short note.</p></body></html>"), ScanConfig()
    )
    assert result.regions[0].level is ExtractabilityLevel.FULL


def test_each_main_region_is_classified() -> None:
    text = "Enough static text to pass the floor. " * 8
    html = (
        "<html><body>"
        f"<article><p>{text}</p></article>"
        '<div role="main"><p>tiny</p></div>'
        + "".join(f'<script src="/{index}.js"></script>' for index in range(12))
        + "</body></html>"
    )
    result = build_extractability_map(_snapshot(html), ScanConfig())
    levels = {region.content_source: region.level for region in result.regions}
    assert levels == {
        "article": ExtractabilityLevel.FULL,
        'div[role="main"]': ExtractabilityLevel.NONE,
    }
    assert result.has_client_only_content
    assert result.score == 50.0


def test_count_scripts_skips_json_and_counts_preloads() -> None:
    html = (
        "<html><head>"
        '<script type="application/ld+json">{}</script>'
        '<script src="/a.js"></script>'
        '<script type="module">import "/b.js";</script>'
        '<link rel="modulepreload" href="/c.js">'
        '<link rel="preload" as="script" href="/d.js">'
        '<link rel="preload" as="style" href="/e.css">'
        "</head><body><p>x</p></body></html>"
    )
    assert count_scripts(_snapshot(html)) == 4


def test_content_types_split_visible_and_hidden() -> None:
    html = (
        "<html><body>"
        '<img src="/a.png" alt="a">'
        '<div style="display:none"><img src="/b.png" alt="b"></div>'
        '<a href="/x">x</a>'
        "</body></html>"
    )
    result = build_extractability_map(_snapshot(html), ScanConfig())
    counts = {item.content_type: item for item in result.content_types}
    assert counts["images"].total == 2
    assert counts["images"].visible == 1
    assert counts["images"].hidden == 1
    assert counts["links"].visible == 1


def test_empty_landmark_with_static_text_elsewhere_is_partial() -> None:
    outside = "Static introduction rendered on the server for every visitor. " * 5
    html = (
        "<html><body>"
        f"<section><p>{outside}</p></section>"
        '<main id="app"></main>'
        '<script src="/bundle.js"></script>'
        "</body></html>"
    )
    result = build_extractability_map(_snapshot(html), ScanConfig())

    region = result.regions[0]
    assert region.content_source == "main#app"
    assert region.text_length == 0
    assert region.level is ExtractabilityLevel.PARTIAL
    assert "outside the content landmarks" in region.reason
    assert not result.has_client_only_content
    assert result.score == 50.0


def test_node_summary_attributes_each_element_to_one_source() -> None:
    html = (
        "<html><body><main>"
        "<p>Visible server text</p>"
        '<div style="display:none"><p>Secret</p></div>'
        "<iframe><p>Framed text</p></iframe>"
        '<div role="tab">Tab label</div>'
        '<p data-toggle="collapse">Toggle me</p>'
        "</main><noscript><p>Enable JavaScript</p></noscript></body></html>"
    )
    summary = summarize_nodes(_snapshot(html))

    assert summary.total_nodes == 7
    assert summary.hidden_nodes == 2
    assert summary.interactive_nodes == 2
    assert summary.iframe_nodes == 1
    assert summary.server_rendered_nodes == 2
    assert summary.extractable_nodes == 4
    assert summary.noscript_elements == 1
    assert summary.hidden_percent == 29
    assert summary.interactive_percent == 29
    assert summary.iframe_percent == 14
    assert summary.extractable_percent == 57
    assert [finding.kind for finding in summary.findings] == [
        "hidden-content",
        "iframe-content",
        "client-rendered",
        "noscript-fallback",
    ]
    assert summary.findings[0].severity is Severity.MEDIUM
    assert summary.findings[0].description == "29% of content is hidden from view"
    assert len(summary.recommendations) == 4


def test_node_summary_flags_framework_mount_points() -> None:
    html = (
        "<html><body>"
        '<div id="__next" data-reactroot=""><div data-component="hero"></div></div>'
        "</body></html>"
    )
    summary = summarize_nodes(_snapshot(html))

    assert summary.total_nodes == 2
    assert summary.client_rendered_nodes == 2
    assert summary.server_rendered_percent == 0
    assert summary.extractable_nodes == 2
    assert [finding.kind for finding in summary.findings] == ["client-rendered"]
    assert summary.findings[0].severity is Severity.HIGH


def test_node_summary_treats_shadow_hosts_as_unreadable() -> None:
    html = (
        "<html><body>"
        '<div><template shadowrootmode="open"><p>x</p></template></div>'
        "</body></html>"
    )
    summary = summarize_nodes(_snapshot(html))

    assert summary.total_nodes == 1
    assert summary.extractable_nodes == 0
    assert summary.server_rendered_nodes == 0


def test_node_summary_of_empty_page_has_no_findings() -> None:
    summary = summarize_nodes(_snapshot("<html><body></body></html>"))
    assert summary.total_nodes == 0
    assert summary.server_rendered_percent == 0
    assert summary.findings == ()
    assert summary.recommendations == ()


def test_node_summary_stops_at_max_nodes() -> None:
    html = "<html><body>" + "<p>line</p>" * 20 + "</body></html>"
    assert summarize_nodes(_snapshot(html), max_nodes=5).total_nodes == 5


def _snapshot(html: str) -> DocumentSnapshot:
    return DocumentSnapshot.parse("https://example.com/", html)
