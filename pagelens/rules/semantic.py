"""Semantic container check."""

from __future__ import annotations

from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue

MAIN_CONTAINER_SELECTOR = "main, article, [role=main]"


class MissingMainContainerRule:
    """Flags pages without a main, article or role=main landmark."""

    descriptor = RuleDescriptor(
        id="AIREAD-014",
        title="Missing main semantic container",
        category=Category.AIREAD,
        default_severity=Severity.HIGH,
        tags=("semantic-html", "structure"),
        priority=14,
        description="Checks for a landmark that separates primary content from navigation.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        if context.snapshot.count(MAIN_CONTAINER_SELECTOR):
            return None
        return build_issue(
            self.descriptor,
            context,
            description=(
                "No <main>, <article> or role=\"main\" element was found, so extractors "
                "cannot tell primary content from headers, footers and navigation."
            ),
            remediation="Wrap the primary page content in a <main> element.",
            evidence=["Selectors checked: main, article, [role=main]"],
        )
