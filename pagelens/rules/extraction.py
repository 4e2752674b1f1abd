"""Client-side rendering dependency check."""

from __future__ import annotations

from pagelens.extractability import ExtractabilityLevel, build_extractability_map
from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue


class ClientRenderedContentRule:
    """Flags regions whose content only appears after JavaScript runs."""

    descriptor = RuleDescriptor(
        id="EXTRACT-001",
        title="Content requires client-side rendering",
        category=Category.EXTRACT,
        default_severity=Severity.CRITICAL,
        tags=("content", "extraction", "javascript"),
        priority=15,
        description=(
            "Detects regions with little static text alongside heavy scripting, hydration "
            "markers or empty client mount points."
        ),
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        extractability = build_extractability_map(context.snapshot, context.config)
        blocked = [
            region
            for region in extractability.regions
            if region.level is ExtractabilityLevel.NONE
        ]
        if not blocked:
            return None

        evidence = [f"{region.content_source}: {region.reason}" for region in blocked]
        evidence.append(f"Script-loading elements: {extractability.script_count}")
        if extractability.hydration_markers:
            evidence.append(f"Hydration markers: {', '.join(extractability.hydration_markers)}")
        return build_issue(
            self.descriptor,
            context,
            description=(
                f"{len(blocked)} content region(s) have almost no text in the served HTML. "
                "Crawlers that do not execute JavaScript will see an empty page."
            ),
            remediation=(
                "Render primary content on the server (SSR or static generation) so it is "
                "present in the initial HTML response."
            ),
            selector=blocked[0].content_source,
            evidence=evidence,
            confidence=0.9,
        )
