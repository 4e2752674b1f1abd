"""CLI entrypoint for pagelens."""

from __future__ import annotations

import dataclasses
import json
import sys
from pathlib import Path
from typing import Annotated

import typer

from pagelens import __version__
from pagelens.config import AppConfig, ConfigurationError, default_config_template, load_app_config
from pagelens.document import MalformedInputError
from pagelens.log import LOG_LEVELS, configure_logging
from pagelens.output import (
    render_comparison_human,
    render_comparison_json,
    render_human,
    render_json,
)
from pagelens.rules import build_registry, list_rule_info
from pagelens.rules.registry import RuleRegistry
from pagelens.scan import ScanResult, scan_html
from pagelens.scoring import compare_scans

app = typer.Typer(
    name="pagelens",
    no_args_is_help=True,
    help="Audit web pages for AI readability, chunking and extractability.",
)


def version_callback(value: bool) -> None:
    """Print version and exit when --version is provided."""
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option("--version", help="Show version and exit.", callback=version_callback),
    ] = False,
    log_level: Annotated[
        str, typer.Option("--log-level", help="debug|info|warning|error")
    ] = "warning",
    log_json: Annotated[
        bool, typer.Option("--log-json", help="Emit log events as JSON on stderr.")
    ] = False,
) -> None:
    """Root command callback."""
    _ = version
    if log_level.lower() not in LOG_LEVELS:
        choices = ", ".join(LOG_LEVELS)
        raise typer.BadParameter(f"log level must be one of: {choices}", param_hint="--log-level")
    configure_logging(log_level, json_output=log_json)


@app.command("scan")
def scan_command(
    url: Annotated[str, typer.Option(help="Absolute URL the markup was fetched from.")],
    html_file: Annotated[Path | None, typer.Option(help="Path to an HTML file.")] = None,
    stdin: Annotated[bool, typer.Option(help="Read HTML from stdin.")] = False,
    http_status: Annotated[
        int | None, typer.Option(help="HTTP status the page was served with.")
    ] = None,
    repo: Annotated[Path, typer.Option(help="Project path used for config lookup.")] = Path("."),
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    fail_below: Annotated[
        float | None, typer.Option(help="Exit nonzero if overall score is below this value.")
    ] = None,
    timeout_ms: Annotated[
        int | None, typer.Option(help="Overall deadline for rule execution.")
    ] = None,
    chunk_budget: Annotated[
        int | None, typer.Option(help="Token budget for paragraph-based chunks.")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Scan one page and print its AI readiness report."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _output_format_or_raise(format or app_config.format)
    app_config = _apply_overrides_or_raise(
        app_config, timeout_ms=timeout_ms, chunk_budget=chunk_budget
    )
    html = _read_html_input(html_file=html_file, stdin=stdin)
    registry = _build_configured_registry_or_raise(app_config)
    result = _scan_or_raise(url, html, app_config, registry, http_status=http_status)

    if output_format == "json":
        typer.echo(render_json(result))
    else:
        typer.echo(render_human(result))

    threshold = fail_below if fail_below is not None else app_config.fail_below
    if threshold is not None and result.scoring.overall_score < threshold:
        raise typer.Exit(code=1)


@app.command("compare")
def compare_command(
    before: Annotated[Path, typer.Option(help="HTML file for the earlier version.")],
    after: Annotated[Path, typer.Option(help="HTML file for the later version.")],
    url: Annotated[str, typer.Option(help="Absolute URL both versions were served from.")],
    repo: Annotated[Path, typer.Option(help="Project path used for config lookup.")] = Path("."),
    format: Annotated[
        str | None, typer.Option(help="Output format: human|json.", show_default="human")
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Scan two versions of a page and show what changed."""
    app_config = _load_config_or_raise(repo, config_file)
    output_format = _output_format_or_raise(format or app_config.format)
    registry = _build_configured_registry_or_raise(app_config)

    before_result = _scan_or_raise(url, _read_html_file(before), app_config, registry)
    after_result = _scan_or_raise(url, _read_html_file(after), app_config, registry)
    comparison = compare_scans(before_result, after_result)

    if output_format == "json":
        typer.echo(render_comparison_json(comparison))
    else:
        typer.echo(render_comparison_human(comparison))


@app.command("rules")
def rules_command(
    repo: Annotated[Path, typer.Option(help="Project path used for config lookup.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """List available checks and whether they are enabled."""
    output_format = _output_format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    registry = _build_configured_registry_or_raise(app_config)
    rule_info = list_rule_info(app_config.scan)

    if output_format == "json":
        payload = {
            "rules": [
                {
                    "rule_id": item.rule_id,
                    "title": item.title,
                    "category": item.category,
                    "severity": item.severity,
                    "priority": item.priority,
                    "description": item.description,
                    "network": item.network,
                    "default_enabled": item.default_enabled,
                    "enabled": item.rule_id in registry,
                }
                for item in rule_info
            ],
            "meta": {"config_source": app_config.source},
        }
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    lines = ["Available rules:"]
    for item in rule_info:
        status = "enabled" if item.rule_id in registry else "disabled"
        network = ", network" if item.network else ""
        lines.append(
            f"- {item.rule_id} [{status}] ({item.category}, {item.severity}{network}) "
            f"- {item.title}"
        )
    typer.echo("\n".join(lines))


@app.command("config")
def config_command(
    repo: Annotated[Path, typer.Option(help="Project path used for config lookup.")] = Path("."),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
    config_file: Annotated[
        Path | None,
        typer.Option("--config", help="Path to config TOML file."),
    ] = None,
) -> None:
    """Show resolved configuration."""
    output_format = _output_format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    registry = _build_configured_registry_or_raise(app_config)
    payload = app_config.to_dict()
    payload["active_rule_ids"] = [entry.rule_id for entry in registry.list()]

    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return

    scan = payload["scan"]
    lines = [
        "Resolved configuration:",
        f"- source: {payload['source'] or 'defaults'}",
        f"- format: {payload['format']}",
        f"- fail_below: {payload['fail_below']}",
        f"- rules.enable: {payload['rules']['enable']}",
        f"- rules.disable: {payload['rules']['disable']}",
        f"- rules.disable_categories: {payload['rules']['disable_categories']}",
        f"- scan.chunk_token_budget: {scan['chunk_token_budget']}",
        f"- scan.overall_timeout_ms: {scan['overall_timeout_ms']}",
        f"- scan.enable_network_checks: {scan['enable_network_checks']}",
        f"- active_rule_ids: {payload['active_rule_ids']}",
    ]
    typer.echo("\n".join(lines))


@app.command("config-init")
def config_init_command(
    out: Annotated[Path, typer.Option(help="Output path for starter config TOML.")] = Path(
        ".pagelens.toml"
    ),
    force: Annotated[
        bool,
        typer.Option("--force", help="Overwrite if file already exists."),
    ] = False,
) -> None:
    """Create a starter config file."""
    out_path = out.resolve()
    if out_path.exists() and not force:
        raise typer.BadParameter(
            f"Refusing to overwrite existing file: {out_path}. Use --force to overwrite."
        )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(default_config_template(), encoding="utf-8")
    typer.echo(f"Wrote starter config: {out_path}")


@app.command("config-validate")
def config_validate_command(
    repo: Annotated[Path, typer.Option(help="Project path used for config lookup.")] = Path("."),
    config_file: Annotated[
        Path,
        typer.Option("--config", help="Path to config TOML file to validate."),
    ] = Path(".pagelens.toml"),
    format: Annotated[str, typer.Option(help="Output format: human|json.")] = "human",
) -> None:
    """Validate a config file and report active rules."""
    output_format = _output_format_or_raise(format)
    app_config = _load_config_or_raise(repo, config_file)
    registry = _build_configured_registry_or_raise(app_config)
    payload = {
        "ok": True,
        "source": app_config.source,
        "active_rule_ids": [entry.rule_id for entry in registry.list()],
    }
    if output_format == "json":
        typer.echo(json.dumps(payload, sort_keys=True))
        return
    typer.echo(
        "\n".join(
            [
                "Config is valid.",
                f"- source: {payload['source']}",
                f"- active_rule_ids: {payload['active_rule_ids']}",
            ]
        )
    )


def main() -> None:
    """Console script entrypoint."""
    app()


def _read_html_input(*, html_file: Path | None, stdin: bool) -> str:
    if html_file is not None and stdin:
        raise typer.BadParameter("Use either --html-file or --stdin, not both.")
    if html_file is not None:
        return _read_html_file(html_file)
    if stdin:
        return sys.stdin.read()
    raise typer.BadParameter("Provide page markup with --html-file or --stdin.")


def _read_html_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise typer.BadParameter(f"Cannot read {path}: {exc}") from exc


def _scan_or_raise(
    url: str,
    html: str,
    app_config: AppConfig,
    registry: RuleRegistry,
    *,
    http_status: int | None = None,
) -> ScanResult:
    try:
        return scan_html(url, html, app_config.scan, http_status=http_status, registry=registry)
    except MalformedInputError as exc:
        raise typer.BadParameter(str(exc), param_hint="input") from exc


def _load_config_or_raise(repo: Path, config_file: Path | None = None) -> AppConfig:
    try:
        return load_app_config(repo, config_path=config_file)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config") from exc


def _build_configured_registry_or_raise(app_config: AppConfig) -> RuleRegistry:
    try:
        return build_registry(
            app_config.scan,
            enabled_rule_ids=app_config.rule_enable,
            disabled_rule_ids=app_config.rule_disable,
            disabled_categories=app_config.disable_categories,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="config.rules") from exc


def _apply_overrides_or_raise(
    app_config: AppConfig, *, timeout_ms: int | None, chunk_budget: int | None
) -> AppConfig:
    overrides: dict[str, int] = {}
    if timeout_ms is not None:
        overrides["overall_timeout_ms"] = timeout_ms
    if chunk_budget is not None:
        overrides["chunk_token_budget"] = chunk_budget
    if not overrides:
        return app_config
    try:
        scan_config = dataclasses.replace(app_config.scan, **overrides).validate()
    except ConfigurationError as exc:
        raise typer.BadParameter(str(exc)) from exc
    return dataclasses.replace(app_config, scan=scan_config)


def _output_format_or_raise(value: str) -> str:
    output_format = value.lower()
    if output_format not in {"human", "json"}:
        raise typer.BadParameter("format must be one of: human, json", param_hint="--format")
    return output_format
