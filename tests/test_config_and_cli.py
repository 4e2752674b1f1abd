"""Tests for config loading and the pagelens CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from pagelens import __version__
from pagelens.cli import app
from pagelens.config import (
    DEFAULT_CATEGORY_WEIGHTS,
    ConfigurationError,
    ScanConfig,
    load_app_config,
)
from pagelens.issues import Category
from pagelens.log import configure_logging

runner = CliRunner()
FIXTURE_DIR = Path(__file__).parent / "fixtures" / "pages"
CLEAN_PAGE = FIXTURE_DIR / "clean.html"
CLIENT_PAGE = FIXTURE_DIR / "client_rendered.html"


def test_load_app_config_prefers_dot_file_over_pyproject(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "\n".join(["[tool.pagelens]", 'format = "human"', "fail_below = 80"]),
        encoding="utf-8",
    )
    (tmp_path / ".pagelens.toml").write_text(
        "\n".join(
            [
                'format = "json"',
                "fail_below = 50",
                "",
                "[rules]",
                'disable = ["AIREAD-002"]',
                'disable_categories = ["kg"]',
                "",
                "[scan]",
                "chunk_token_budget = 300",
                "",
                "[scan.category_weights]",
                "TECH = 2.0",
            ]
        ),
        encoding="utf-8",
    )

    config = load_app_config(tmp_path)
    assert config.format == "json"
    assert config.fail_below == 50
    assert config.rule_disable == ["AIREAD-002"]
    assert config.disable_categories == [Category.KG]
    assert config.scan.chunk_token_budget == 300
    assert config.scan.weight_for(Category.TECH) == 2.0
    assert config.scan.weight_for(Category.AIREAD) == 1.5
    assert config.source == str(tmp_path.resolve() / ".pagelens.toml")


def test_load_app_config_reads_pyproject_tool_section(tmp_path: Path) -> None:
    (tmp_path / "pyproject.toml").write_text(
        "\n".join(
            [
                "[project]",
                'name = "site"',
                "",
                "[tool.pagelens.rules]",
                'enable = ["TECH-001"]',
                "",
                "[tool.pagelens.scan]",
                "enable_network_checks = true",
            ]
        ),
        encoding="utf-8",
    )

    config = load_app_config(tmp_path)
    assert config.rule_enable == ["TECH-001"]
    assert config.scan.enable_network_checks
    assert config.source == str(tmp_path.resolve() / "pyproject.toml")


def test_load_app_config_defaults_without_files(tmp_path: Path) -> None:
    config = load_app_config(tmp_path)
    assert config.source is None
    assert config.format == "human"
    assert config.scan.chunk_token_budget == 500


@pytest.mark.parametrize(
    "content",
    [
        "[scan]\nchunk_token_budget = 0",
        "[scan]\nheading_coverage_threshold = 1.5",
        "[scan]\noverall_timeout_ms = true",
        "[scan.category_weights]\nSEO = 1.0",
        "[scan.severity_impact_defaults]\ncritical = 80",
        "[scan.severity_impact_defaults]\nhigh = nan",
        "[scan.category_weights]\nAIREAD = nan",
        "[scan.category_weights]\nAIREAD = inf",
        "[scan]\nnoise_ratio_threshold = nan",
        "[scan]\nmax_reading_grade = inf",
        'format = "xml"',
        "fail_below = 120",
        "[rules]\ndisable = \"AIREAD-001\"",
        "this is not toml",
    ],
)
def test_invalid_config_is_rejected(tmp_path: Path, content: str) -> None:
    (tmp_path / ".pagelens.toml").write_text(content, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_app_config(tmp_path)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), float("-inf")])
def test_scan_config_rejects_non_finite_weights(value: float) -> None:
    weights = {**DEFAULT_CATEGORY_WEIGHTS, Category.AIREAD: value}
    with pytest.raises(ConfigurationError, match="category_weights.AIREAD"):
        ScanConfig(category_weights=weights).validate()


def test_scan_config_rejects_non_finite_thresholds() -> None:
    with pytest.raises(ConfigurationError, match="heading_coverage_threshold"):
        ScanConfig(heading_coverage_threshold=float("nan")).validate()
    with pytest.raises(ConfigurationError, match="max_avg_sentence_words"):
        ScanConfig(max_avg_sentence_words=float("inf")).validate()


def test_missing_explicit_config_is_rejected(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="does not exist"):
        load_app_config(tmp_path, config_path=Path("missing.toml"))


def test_configure_logging_rejects_unknown_level() -> None:
    with pytest.raises(ValueError, match="Unknown log level"):
        configure_logging("verbose")


def test_version_flag() -> None:
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert result.stdout.strip() == __version__


def test_scan_json_for_clean_page(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "scan",
            "--url",
            "https://example.com/widgets",
            "--html-file",
            str(CLEAN_PAGE),
            "--repo",
            str(tmp_path),
            "--format",
            "json",
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["url"] == "https://example.com/widgets"
    assert payload["status"] == "complete"
    assert payload["overall_score"] == 100.0
    assert payload["grade"] == "A"
    assert payload["issues"] == []
    assert payload["chunking"]["strategy"] == "heading-based"
    assert payload["extractability"]["score"] == 100.0
    assert payload["meta"]["version"] == __version__


def test_scan_reads_stdin_and_prints_human_report(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        ["scan", "--url", "https://example.com/", "--stdin", "--repo", str(tmp_path)],
        input=CLIENT_PAGE.read_text(encoding="utf-8"),
    )
    assert result.exit_code == 0, result.output
    assert "AI readiness score:" in result.stdout
    assert "EXTRACT-001" in result.stdout


def test_scan_fail_below_exits_nonzero(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "scan",
            "--url",
            "https://example.com/",
            "--html-file",
            str(CLIENT_PAGE),
            "--repo",
            str(tmp_path),
            "--fail-below",
            "99",
        ],
    )
    assert result.exit_code == 1


def test_scan_fail_below_from_config(tmp_path: Path) -> None:
    (tmp_path / ".pagelens.toml").write_text("fail_below = 99\n", encoding="utf-8")
    args = ["scan", "--url", "https://example.com/", "--repo", str(tmp_path), "--html-file"]

    assert runner.invoke(app, [*args, str(CLIENT_PAGE)]).exit_code == 1
    assert runner.invoke(app, [*args, str(CLEAN_PAGE)]).exit_code == 0


def test_scan_rejects_unusable_input(tmp_path: Path) -> None:
    empty = tmp_path / "empty.html"
    empty.write_text("   ", encoding="utf-8")
    base = ["scan", "--repo", str(tmp_path), "--html-file"]

    result = runner.invoke(app, [*base, str(empty), "--url", "https://example.com/"])
    assert result.exit_code == 2

    relative = runner.invoke(app, [*base, str(CLEAN_PAGE), "--url", "/widgets"])
    assert relative.exit_code == 2


def test_scan_requires_exactly_one_input_source(tmp_path: Path) -> None:
    result = runner.invoke(app, ["scan", "--url", "https://example.com/", "--repo", str(tmp_path)])
    assert result.exit_code == 2


def test_scan_rejects_invalid_override(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "scan",
            "--url",
            "https://example.com/",
            "--html-file",
            str(CLEAN_PAGE),
            "--repo",
            str(tmp_path),
            "--chunk-budget",
            "0",
        ],
    )
    assert result.exit_code == 2


def test_scan_emits_structured_logs_when_requested(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "--log-level",
            "info",
            "--log-json",
            "scan",
            "--url",
            "https://example.com/",
            "--html-file",
            str(CLEAN_PAGE),
            "--repo",
            str(tmp_path),
        ],
    )
    assert result.exit_code == 0
    assert "scan_finished" in result.output


def test_unknown_log_level_is_rejected() -> None:
    result = runner.invoke(app, ["--log-level", "loud", "rules"])
    assert result.exit_code == 2


def test_rules_command_json_reports_enabled_state(tmp_path: Path) -> None:
    (tmp_path / ".pagelens.toml").write_text(
        '[rules]\ndisable = ["TECH-002"]\n', encoding="utf-8"
    )
    result = runner.invoke(app, ["rules", "--repo", str(tmp_path), "--format", "json"])
    assert result.exit_code == 0, result.output

    payload = json.loads(result.stdout)
    enabled = {item["rule_id"]: item["enabled"] for item in payload["rules"]}
    assert len(enabled) == 16
    assert enabled["AIREAD-009"] is False
    assert enabled["TECH-002"] is False
    assert enabled["AIREAD-001"] is True
    assert payload["meta"]["config_source"] == str(tmp_path.resolve() / ".pagelens.toml")


def test_rules_command_rejects_unknown_rule_ids_in_config(tmp_path: Path) -> None:
    (tmp_path / ".pagelens.toml").write_text('[rules]\ndisable = ["NOPE-9"]\n', encoding="utf-8")
    result = runner.invoke(app, ["rules", "--repo", str(tmp_path)])
    assert result.exit_code == 2


def test_config_init_then_validate(tmp_path: Path) -> None:
    out = tmp_path / ".pagelens.toml"
    created = runner.invoke(app, ["config-init", "--out", str(out)])
    assert created.exit_code == 0, created.output
    assert out.exists()

    refused = runner.invoke(app, ["config-init", "--out", str(out)])
    assert refused.exit_code == 2
    assert runner.invoke(app, ["config-init", "--out", str(out), "--force"]).exit_code == 0

    validated = runner.invoke(
        app, ["config-validate", "--repo", str(tmp_path), "--format", "json"]
    )
    assert validated.exit_code == 0, validated.output
    payload = json.loads(validated.stdout)
    assert payload["ok"] is True
    assert "AIREAD-002" not in payload["active_rule_ids"]
    assert "AIREAD-001" in payload["active_rule_ids"]


def test_config_command_json_includes_active_rules(tmp_path: Path) -> None:
    result = runner.invoke(app, ["config", "--repo", str(tmp_path), "--format", "json"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["source"] is None
    assert payload["scan"]["chunk_token_budget"] == 500
    assert len(payload["active_rule_ids"]) == 15


def test_compare_command_json(tmp_path: Path) -> None:
    result = runner.invoke(
        app,
        [
            "compare",
            "--before",
            str(CLIENT_PAGE),
            "--after",
            str(CLEAN_PAGE),
            "--url",
            "https://example.com/",
            "--repo",
            str(tmp_path),
            "--format",
            "json",
        ],
    )
    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload["after_score"] == 100.0
    assert payload["score_change"] > 0
    assert "EXTRACT-001" in payload["resolved_issues"]
    assert "AIREAD-001" in payload["resolved_issues"]
    assert payload["new_issues"] == []
