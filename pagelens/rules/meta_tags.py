"""Title and description metadata checks."""

from __future__ import annotations

from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue


class MissingTitleRule:
    """Flags pages without a non-empty <title>."""

    descriptor = RuleDescriptor(
        id="TECH-001",
        title="Missing page title",
        category=Category.TECH,
        default_severity=Severity.HIGH,
        tags=("metadata",),
        priority=25,
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        if context.snapshot.text_of("title"):
            return None
        return build_issue(
            self.descriptor,
            context,
            description="The document has no <title>, which AI answers use as the page label.",
            remediation="Add a concise, descriptive <title> to the document head.",
            impact_score=20,
            selector="title",
        )


class MissingMetaDescriptionRule:
    """Flags pages without a meta description."""

    descriptor = RuleDescriptor(
        id="TECH-002",
        title="Missing meta description",
        category=Category.TECH,
        default_severity=Severity.MEDIUM,
        tags=("metadata",),
        priority=26,
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        for element in snapshot.select("meta[name]"):
            name = (snapshot.attr(element, "name") or "").strip().lower()
            if name == "description" and (snapshot.attr(element, "content") or "").strip():
                return None
        return build_issue(
            self.descriptor,
            context,
            description="No meta description summarises the page for search and AI snippets.",
            remediation='Add <meta name="description" content="..."> with a one-sentence summary.',
            impact_score=10,
            selector='meta[name="description"]',
        )
