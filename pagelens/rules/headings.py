"""Heading hierarchy checks."""

from __future__ import annotations

from pagelens.document import DocumentSnapshot
from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue

HEADING_SELECTOR = "h1, h2, h3, h4, h5, h6"
MULTIPLE_H1_LIMIT = 5


class MissingH1Rule:
    """Flags pages without a single non-empty h1."""

    descriptor = RuleDescriptor(
        id="AIREAD-001",
        title="Missing H1",
        category=Category.AIREAD,
        default_severity=Severity.CRITICAL,
        tags=("headings", "structure"),
        priority=10,
        description="Checks that the page has a top-level heading describing its topic.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        h1_elements = snapshot.select("h1")
        if any(snapshot.text_of(element) for element in h1_elements):
            return None

        evidence = ["No <h1> element found"]
        if h1_elements:
            evidence = [f"{len(h1_elements)} <h1> element(s) found, all empty"]
        return build_issue(
            self.descriptor,
            context,
            description=(
                "The page has no non-empty <h1>. AI systems use the top-level heading "
                "to identify what the page is about."
            ),
            remediation="Add one descriptive <h1> that states the page topic.",
            selector="h1",
            evidence=evidence,
        )


class MultipleH1Rule:
    """Flags pages that spread their topic across many h1 headings."""

    descriptor = RuleDescriptor(
        id="AIREAD-002",
        title="Multiple H1 headings",
        category=Category.MISC,
        default_severity=Severity.INFO,
        tags=("headings",),
        priority=11,
        description="Informational check for pages with more than five non-empty h1 headings.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        texts = [text for text in (snapshot.text_of(h) for h in snapshot.select("h1")) if text]
        if len(texts) <= MULTIPLE_H1_LIMIT:
            return None
        return build_issue(
            self.descriptor,
            context,
            description=(
                f"The page has {len(texts)} non-empty <h1> headings, which blurs the "
                "primary topic."
            ),
            remediation="Keep one <h1> for the page topic and demote the rest to <h2>.",
            impact_score=2,
            selector="h1",
            text_snippet=texts[0][:120],
            evidence=[f"H1 count: {len(texts)}"],
        )


class SkippedHeadingLevelsRule:
    """Flags heading sequences that jump more than one level down."""

    descriptor = RuleDescriptor(
        id="AIREAD-003",
        title="Skipped heading levels",
        category=Category.AIREAD,
        default_severity=Severity.LOW,
        tags=("headings", "structure"),
        priority=12,
        description="Checks that headings descend one level at a time (h2 after h1, not h4).",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        skips = heading_level_skips(context.snapshot)
        if not skips:
            return None
        return build_issue(
            self.descriptor,
            context,
            description=(
                f"Found {len(skips)} place(s) where the heading hierarchy skips a level. "
                "Gaps make the outline ambiguous for section-based chunking."
            ),
            remediation="Nest headings sequentially so each level follows its parent level.",
            impact_score=8,
            selector=HEADING_SELECTOR,
            evidence=skips[:5],
        )


def heading_levels(snapshot: DocumentSnapshot) -> list[int]:
    """Levels of non-empty headings in document order."""
    return [
        int(element.name[1])
        for element in snapshot.select(HEADING_SELECTOR)
        if snapshot.text_of(element)
    ]


def heading_level_skips(snapshot: DocumentSnapshot) -> list[str]:
    skips: list[str] = []
    previous: int | None = None
    for level in heading_levels(snapshot):
        if previous is not None and level > previous + 1:
            skips.append(f"h{previous} -> h{level}")
        previous = level
    return skips
