"""Image alternative text check."""

from __future__ import annotations

from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue


class MissingAltTextRule:
    """Flags images without an alt attribute.

    ``alt=""`` marks an image as decorative and is accepted.
    """

    descriptor = RuleDescriptor(
        id="A11Y-001",
        title="Images missing alt text",
        category=Category.A11Y,
        default_severity=Severity.MEDIUM,
        tags=("accessibility", "images", "alt-text"),
        priority=35,
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        images = snapshot.select("img")
        missing = [image for image in images if image.get("alt") is None]
        if not missing:
            return None
        examples = [(snapshot.attr(image, "src") or "(no src)")[:80] for image in missing[:3]]
        return build_issue(
            self.descriptor,
            context,
            description=(
                f"{len(missing)} of {len(images)} image(s) have no alt attribute, so their "
                "content is invisible to text-only readers."
            ),
            remediation=(
                'Add descriptive alt text to content images and alt="" to decorative ones.'
            ),
            impact_score=10,
            selector="img:not([alt])",
            evidence=[f"Images without alt: {len(missing)}", *examples],
        )
