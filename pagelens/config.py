"""Configuration loading for pagelens."""

from __future__ import annotations

import math
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pagelens.issues import Category, Severity

CONFIG_FILENAMES = (".pagelens.toml", "pagelens.toml")
PYPROJECT_FILENAME = "pyproject.toml"
PYPROJECT_TOOL_KEYS = ("pagelens",)

DEFAULT_CATEGORY_WEIGHTS: dict[Category, float] = {
    Category.AIREAD: 1.5,
    Category.EXTRACT: 1.4,
    Category.CHUNK: 1.3,
    Category.CRAWL: 1.2,
    Category.A11Y: 1.2,
    Category.KG: 1.1,
    Category.TECH: 1.0,
    Category.MISC: 0.5,
}

DEFAULT_SEVERITY_IMPACTS: dict[Severity, float] = {
    Severity.CRITICAL: 40.0,
    Severity.HIGH: 25.0,
    Severity.MEDIUM: 10.0,
    Severity.LOW: 5.0,
    Severity.INFO: 0.0,
}


class ConfigurationError(ValueError):
    """Raised when scan configuration is invalid."""


@dataclass(slots=True)
class ScanConfig:
    """Thresholds and weights for a single scan. Passed explicitly, never global."""

    category_weights: dict[Category, float] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_WEIGHTS)
    )
    severity_impact_defaults: dict[Severity, float] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITY_IMPACTS)
    )
    chunk_token_budget: int = 500
    heading_coverage_threshold: float = 0.5
    noise_ratio_threshold: float = 0.5
    overall_timeout_ms: int = 15000
    max_workers: int | None = None
    large_chunk_tokens: int = 1000
    small_chunk_tokens: int = 50
    extractability_text_floor: int = 200
    extractability_script_ceiling: int = 10
    max_content_tokens: int = 1200
    max_reading_grade: float = 12.0
    max_avg_sentence_words: float = 25.0
    top_issues_limit: int = 10
    enable_network_checks: bool = False
    network_timeout_ms: int = 5000

    def validate(self) -> ScanConfig:
        """Reject invalid values instead of silently defaulting them."""
        for category, weight in self.category_weights.items():
            if not isinstance(category, Category):
                raise ConfigurationError(f"Unknown category weight key: {category!r}")
            if not math.isfinite(weight) or weight < 0:
                raise ConfigurationError(
                    f"category_weights.{category.value} must be finite and non-negative, "
                    f"got {weight}"
                )
        for severity, impact in self.severity_impact_defaults.items():
            if not isinstance(severity, Severity):
                raise ConfigurationError(f"Unknown severity impact key: {severity!r}")
            if not math.isfinite(impact) or not 0 <= impact <= 50:
                raise ConfigurationError(
                    f"severity_impact_defaults.{severity.value} must be within [0, 50], "
                    f"got {impact}"
                )

        positive_ints = {
            "chunk_token_budget": self.chunk_token_budget,
            "overall_timeout_ms": self.overall_timeout_ms,
            "large_chunk_tokens": self.large_chunk_tokens,
            "max_content_tokens": self.max_content_tokens,
            "top_issues_limit": self.top_issues_limit,
            "network_timeout_ms": self.network_timeout_ms,
        }
        for name, value in positive_ints.items():
            if value <= 0:
                raise ConfigurationError(f"{name} must be > 0, got {value}")
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigurationError(f"max_workers must be > 0, got {self.max_workers}")

        non_negative = {
            "small_chunk_tokens": self.small_chunk_tokens,
            "extractability_text_floor": self.extractability_text_floor,
            "extractability_script_ceiling": self.extractability_script_ceiling,
            "max_reading_grade": self.max_reading_grade,
            "max_avg_sentence_words": self.max_avg_sentence_words,
        }
        for name, value in non_negative.items():
            if not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"{name} must be finite and non-negative, got {value}")

        for name, ratio in (
            ("heading_coverage_threshold", self.heading_coverage_threshold),
            ("noise_ratio_threshold", self.noise_ratio_threshold),
        ):
            if not math.isfinite(ratio) or not 0.0 <= ratio <= 1.0:
                raise ConfigurationError(f"{name} must be within [0, 1], got {ratio}")
        return self

    def weight_for(self, category: Category) -> float:
        return self.category_weights.get(category, 1.0)

    def impact_for(self, severity: Severity) -> float:
        return self.severity_impact_defaults.get(severity, DEFAULT_SEVERITY_IMPACTS[severity])

    def resolved_max_workers(self) -> int:
        if self.max_workers is not None:
            return self.max_workers
        return min(32, (os.cpu_count() or 1) + 4)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category_weights": {key.value: value for key, value in self.category_weights.items()},
            "severity_impact_defaults": {
                key.value: value for key, value in self.severity_impact_defaults.items()
            },
            "chunk_token_budget": self.chunk_token_budget,
            "heading_coverage_threshold": self.heading_coverage_threshold,
            "noise_ratio_threshold": self.noise_ratio_threshold,
            "overall_timeout_ms": self.overall_timeout_ms,
            "max_workers": self.max_workers,
            "large_chunk_tokens": self.large_chunk_tokens,
            "small_chunk_tokens": self.small_chunk_tokens,
            "extractability_text_floor": self.extractability_text_floor,
            "extractability_script_ceiling": self.extractability_script_ceiling,
            "max_content_tokens": self.max_content_tokens,
            "max_reading_grade": self.max_reading_grade,
            "max_avg_sentence_words": self.max_avg_sentence_words,
            "top_issues_limit": self.top_issues_limit,
            "enable_network_checks": self.enable_network_checks,
            "network_timeout_ms": self.network_timeout_ms,
        }


@dataclass(slots=True)
class AppConfig:
    """Runtime configuration values resolved from project files."""

    format: str = "human"
    fail_below: float | None = None
    rule_enable: list[str] | None = None
    rule_disable: list[str] = field(default_factory=list)
    disable_categories: list[Category] = field(default_factory=list)
    scan: ScanConfig = field(default_factory=ScanConfig)
    source: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "format": self.format,
            "fail_below": self.fail_below,
            "rules": {
                "enable": list(self.rule_enable) if self.rule_enable is not None else None,
                "disable": list(self.rule_disable),
                "disable_categories": [item.value for item in self.disable_categories],
            },
            "scan": self.scan.to_dict(),
            "source": self.source,
        }


def load_app_config(repo: Path, config_path: Path | None = None) -> AppConfig:
    """Load config from explicit path or repository-local files with precedence."""
    repo = repo.resolve()
    if config_path is not None:
        resolved = config_path if config_path.is_absolute() else (repo / config_path)
        if not resolved.exists():
            raise ConfigurationError(f"Config file does not exist: {resolved}")
        mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
        return _from_mapping(mapping, source=str(resolved))

    for filename in CONFIG_FILENAMES:
        resolved = repo / filename
        if resolved.exists():
            mapping = _extract_config_mapping(_load_toml(resolved), source_path=resolved)
            return _from_mapping(mapping, source=str(resolved))

    pyproject_path = repo / PYPROJECT_FILENAME
    if pyproject_path.exists():
        mapping = _extract_config_mapping(_load_toml(pyproject_path), source_path=pyproject_path)
        if mapping:
            return _from_mapping(mapping, source=str(pyproject_path))

    return AppConfig()


def default_config_template() -> str:
    """Return a starter config template."""
    return "\n".join(
        [
            'format = "human"',
            "fail_below = 60",
            "",
            "[rules]",
            '# enable = ["AIREAD-001", "KG-001"]',
            'disable = ["AIREAD-002"]',
            "disable_categories = []",
            "",
            "[scan]",
            "chunk_token_budget = 500",
            "heading_coverage_threshold = 0.5",
            "noise_ratio_threshold = 0.5",
            "overall_timeout_ms = 15000",
            "# max_workers = 8",
            "large_chunk_tokens = 1000",
            "small_chunk_tokens = 50",
            "extractability_text_floor = 200",
            "extractability_script_ceiling = 10",
            "max_content_tokens = 1200",
            "max_reading_grade = 12.0",
            "max_avg_sentence_words = 25.0",
            "top_issues_limit = 10",
            "enable_network_checks = false",
            "network_timeout_ms = 5000",
            "",
            "[scan.category_weights]",
            "AIREAD = 1.5",
            "EXTRACT = 1.4",
            "CHUNK = 1.3",
            "CRAWL = 1.2",
            "A11Y = 1.2",
            "KG = 1.1",
            "TECH = 1.0",
            "MISC = 0.5",
            "",
            "[scan.severity_impact_defaults]",
            "critical = 40",
            "high = 25",
            "medium = 10",
            "low = 5",
            "info = 0",
            "",
        ]
    )


def _load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as file_obj:
            loaded = tomllib.load(file_obj)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {path}: {exc}") from exc
    if not isinstance(loaded, dict):
        return {}
    return loaded


def _extract_config_mapping(loaded: dict[str, Any], *, source_path: Path) -> dict[str, Any]:
    if source_path.name == PYPROJECT_FILENAME:
        section = _find_pyproject_tool_section(loaded)
        return section if section is not None else {}

    tool_section = _find_pyproject_tool_section(loaded)
    if tool_section is not None:
        return tool_section
    return loaded


def _find_pyproject_tool_section(loaded: dict[str, Any]) -> dict[str, Any] | None:
    tool = loaded.get("tool")
    if not isinstance(tool, dict):
        return None
    for key in PYPROJECT_TOOL_KEYS:
        section = tool.get(key)
        if isinstance(section, dict):
            return section
    return None


def _from_mapping(mapping: dict[str, Any], *, source: str) -> AppConfig:
    rules_mapping = _as_table(mapping.get("rules"), "rules")
    scan_mapping = _as_table(mapping.get("scan"), "scan")

    format_value = _as_choice(mapping.get("format", "human"), {"human", "json"}, "format")

    raw_fail = mapping.get("fail_below")
    fail_value = None if raw_fail is None else _as_float(raw_fail, "fail_below")
    if fail_value is not None and not 0 <= fail_value <= 100:
        raise ConfigurationError("fail_below must be within [0, 100]")

    return AppConfig(
        format=format_value,
        fail_below=fail_value,
        rule_enable=_as_str_list_or_none(rules_mapping.get("enable"), "rules.enable"),
        rule_disable=_as_str_list(rules_mapping.get("disable"), "rules.disable"),
        disable_categories=[
            _as_category(item, "rules.disable_categories")
            for item in _as_str_list(
                rules_mapping.get("disable_categories"), "rules.disable_categories"
            )
        ],
        scan=parse_scan_config(scan_mapping),
        source=source,
    )


def parse_scan_config(value: dict[str, Any]) -> ScanConfig:
    """Build and validate a ScanConfig from a ``[scan]`` table."""
    defaults = ScanConfig()
    weights = _as_float_mapping(value.get("category_weights"), "scan.category_weights")
    impacts = _as_float_mapping(
        value.get("severity_impact_defaults"), "scan.severity_impact_defaults"
    )

    category_weights = dict(DEFAULT_CATEGORY_WEIGHTS)
    for key, weight in weights.items():
        category_weights[_as_category(key, "scan.category_weights")] = weight

    severity_impacts = dict(DEFAULT_SEVERITY_IMPACTS)
    for key, impact in impacts.items():
        severity_impacts[_as_severity(key, "scan.severity_impact_defaults")] = impact

    raw_workers = value.get("max_workers")
    config = ScanConfig(
        category_weights=category_weights,
        severity_impact_defaults=severity_impacts,
        chunk_token_budget=_as_int(
            value.get("chunk_token_budget", defaults.chunk_token_budget),
            "scan.chunk_token_budget",
        ),
        heading_coverage_threshold=_as_float(
            value.get("heading_coverage_threshold", defaults.heading_coverage_threshold),
            "scan.heading_coverage_threshold",
        ),
        noise_ratio_threshold=_as_float(
            value.get("noise_ratio_threshold", defaults.noise_ratio_threshold),
            "scan.noise_ratio_threshold",
        ),
        overall_timeout_ms=_as_int(
            value.get("overall_timeout_ms", defaults.overall_timeout_ms),
            "scan.overall_timeout_ms",
        ),
        max_workers=None if raw_workers is None else _as_int(raw_workers, "scan.max_workers"),
        large_chunk_tokens=_as_int(
            value.get("large_chunk_tokens", defaults.large_chunk_tokens),
            "scan.large_chunk_tokens",
        ),
        small_chunk_tokens=_as_int(
            value.get("small_chunk_tokens", defaults.small_chunk_tokens),
            "scan.small_chunk_tokens",
        ),
        extractability_text_floor=_as_int(
            value.get("extractability_text_floor", defaults.extractability_text_floor),
            "scan.extractability_text_floor",
        ),
        extractability_script_ceiling=_as_int(
            value.get("extractability_script_ceiling", defaults.extractability_script_ceiling),
            "scan.extractability_script_ceiling",
        ),
        max_content_tokens=_as_int(
            value.get("max_content_tokens", defaults.max_content_tokens),
            "scan.max_content_tokens",
        ),
        max_reading_grade=_as_float(
            value.get("max_reading_grade", defaults.max_reading_grade),
            "scan.max_reading_grade",
        ),
        max_avg_sentence_words=_as_float(
            value.get("max_avg_sentence_words", defaults.max_avg_sentence_words),
            "scan.max_avg_sentence_words",
        ),
        top_issues_limit=_as_int(
            value.get("top_issues_limit", defaults.top_issues_limit),
            "scan.top_issues_limit",
        ),
        enable_network_checks=_as_bool(
            value.get("enable_network_checks", defaults.enable_network_checks),
            "scan.enable_network_checks",
        ),
        network_timeout_ms=_as_int(
            value.get("network_timeout_ms", defaults.network_timeout_ms),
            "scan.network_timeout_ms",
        ),
    )
    return config.validate()


def _as_table(value: Any, field_name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{field_name} must be a table/object")
    return value


def _as_str_list(value: Any, field_name: str) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ConfigurationError(f"{field_name} must be a list of strings")
    items: list[str] = []
    for item in value:
        if not isinstance(item, str):
            raise ConfigurationError(f"{field_name} must be a list of strings")
        items.append(item)
    return items


def _as_str_list_or_none(value: Any, field_name: str) -> list[str] | None:
    if value is None:
        return None
    return _as_str_list(value, field_name)


def _as_choice(raw: Any, allowed: set[str], field_name: str) -> str:
    value = str(raw).lower()
    if value not in allowed:
        choices = ", ".join(sorted(allowed))
        raise ConfigurationError(f"{field_name} must be one of: {choices}")
    return value


def _as_category(raw: str, field_name: str) -> Category:
    try:
        return Category(raw.upper())
    except ValueError:
        choices = ", ".join(item.value for item in Category)
        raise ConfigurationError(
            f"{field_name}: unknown category '{raw}'. Expected one of: {choices}"
        ) from None


def _as_severity(raw: str, field_name: str) -> Severity:
    try:
        return Severity(raw.lower())
    except ValueError:
        choices = ", ".join(item.value for item in Severity)
        raise ConfigurationError(
            f"{field_name}: unknown severity '{raw}'. Expected one of: {choices}"
        ) from None


def _as_int(raw: Any, field_name: str) -> int:
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ConfigurationError(f"{field_name} must be an integer")
    return raw


def _as_bool(raw: Any, field_name: str) -> bool:
    if not isinstance(raw, bool):
        raise ConfigurationError(f"{field_name} must be a boolean")
    return raw


def _as_float_mapping(value: Any, field_name: str) -> dict[str, float]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigurationError(f"{field_name} must be a table/object")

    parsed: dict[str, float] = {}
    for key, raw in value.items():
        if not isinstance(key, str):
            raise ConfigurationError(f"{field_name} keys must be strings")
        parsed[key] = _as_float(raw, f"{field_name}.{key}")
    return parsed


def _as_float(raw: Any, field_name: str) -> float:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise ConfigurationError(f"{field_name} must be a number")
    return float(raw)
