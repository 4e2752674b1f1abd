"""Token window check for primary content."""

from __future__ import annotations

from pagelens.chunker import estimate_tokens
from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue


class ContentTokenWindowRule:
    """Flags primary content that will not fit a single retrieval window."""

    descriptor = RuleDescriptor(
        id="CHUNK-001",
        title="Main content exceeds token window",
        category=Category.CHUNK,
        default_severity=Severity.CRITICAL,
        tags=("performance", "llm"),
        priority=20,
        description="Compares the estimated token count of primary content with a window limit.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        limit = context.config.max_content_tokens
        tokens = estimate_tokens(snapshot.text_of(snapshot.primary_container()))
        if tokens <= limit:
            return None
        return build_issue(
            self.descriptor,
            context,
            description=(
                f"Primary content holds about {tokens} tokens, above the recommended "
                f"window of {limit} tokens."
            ),
            remediation=(
                "Split long pages into focused sections or separate pages so each fits "
                f"within {limit} tokens."
            ),
            evidence=[f"Total tokens: {tokens}", f"Recommended max tokens: {limit}"],
            confidence=0.9,
        )
