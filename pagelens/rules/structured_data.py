"""Knowledge-graph markup checks."""

from __future__ import annotations

from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue
from pagelens.structured_data import extract_json_ld


class MissingJsonLdRule:
    """Flags pages without any typed JSON-LD object."""

    descriptor = RuleDescriptor(
        id="KG-001",
        title="No JSON-LD structured data",
        category=Category.KG,
        default_severity=Severity.HIGH,
        tags=("schema", "json-ld", "knowledge-graph"),
        priority=10,
        description="Checks for Schema.org data in JSON-LD format.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        extraction = extract_json_ld(context.snapshot)
        if extraction.types:
            return None
        evidence = ["No JSON-LD structured data found"]
        if extraction.block_count:
            evidence = [f"{extraction.block_count} JSON-LD block(s) without a usable @type"]
        return build_issue(
            self.descriptor,
            context,
            description=(
                "The page has no Schema.org structured data in JSON-LD, so AI systems "
                "cannot attach its content to known entities."
            ),
            remediation=(
                "Add a JSON-LD block describing the page, for example Organization, "
                "Article, Product or WebPage."
            ),
            impact_score=30,
            selector='script[type="application/ld+json"]',
            evidence=evidence,
        )


class InvalidJsonLdRule:
    """Flags JSON-LD blocks that fail to parse."""

    descriptor = RuleDescriptor(
        id="KG-002",
        title="Invalid JSON-LD",
        category=Category.KG,
        default_severity=Severity.HIGH,
        tags=("schema", "validation", "json-ld"),
        priority=10,
        description="Detects JSON-LD scripts with parse errors; crawlers ignore them.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        extraction = extract_json_ld(context.snapshot)
        if not extraction.errors:
            return None
        return build_issue(
            self.descriptor,
            context,
            description=(
                f"Found {len(extraction.errors)} JSON-LD block(s) that are not valid JSON. "
                "Invalid structured data is ignored by crawlers."
            ),
            remediation="Validate the JSON-LD with a schema.org validator and fix syntax errors.",
            impact_score=20,
            selector='script[type="application/ld+json"]',
            evidence=[f"Block {error.index + 1}: {error.message}" for error in extraction.errors],
        )
