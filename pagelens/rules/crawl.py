"""Crawlability checks: response status, indexing directives and canonical URL."""

from __future__ import annotations

from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue

ROBOTS_META_NAMES = ("robots", "googlebot", "bingbot")


class HttpStatusRule:
    """Flags pages served with an informational, client error or server error status."""

    descriptor = RuleDescriptor(
        id="CRAWL-001",
        title="HTTP status not OK",
        category=Category.CRAWL,
        default_severity=Severity.CRITICAL,
        tags=("crawl", "http"),
        priority=1,
        description="Checks that the page was served with a 2xx or 3xx status.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        status = context.snapshot.http_status
        if status is None or 200 <= status < 400:
            return None
        return build_issue(
            self.descriptor,
            context,
            description=f"The page responded with HTTP {status}; crawlers will not index it.",
            remediation="Serve the page with a 200 status or redirect to a working URL.",
            impact_score=50,
            evidence=[f"HTTP status: {status}"],
        )


class NoindexRule:
    """Flags pages that ask crawlers not to index them."""

    descriptor = RuleDescriptor(
        id="CRAWL-002",
        title="robots meta noindex",
        category=Category.CRAWL,
        default_severity=Severity.CRITICAL,
        tags=("crawl", "robots", "indexing"),
        priority=2,
        description="Detects noindex in robots meta tags or the X-Robots-Tag header.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        evidence: list[str] = []
        for element in snapshot.select("meta[name]"):
            name = (snapshot.attr(element, "name") or "").strip().lower()
            if name not in ROBOTS_META_NAMES:
                continue
            content = (snapshot.attr(element, "content") or "").lower()
            if "noindex" in content or "none" in _directives(content):
                evidence.append(f'<meta name="{name}" content="{content}">')

        header = snapshot.headers.get("x-robots-tag", "").lower()
        if "noindex" in header or "none" in _directives(header):
            evidence.append(f"X-Robots-Tag: {header}")

        if not evidence:
            return None
        return build_issue(
            self.descriptor,
            context,
            description="The page tells crawlers not to index it, so it cannot be retrieved.",
            remediation="Remove the noindex directive if the page should be discoverable.",
            impact_score=45,
            selector='meta[name="robots"]',
            evidence=evidence,
        )


class MissingCanonicalRule:
    """Flags pages without a canonical link."""

    descriptor = RuleDescriptor(
        id="CRAWL-003",
        title="Missing canonical link",
        category=Category.CRAWL,
        default_severity=Severity.LOW,
        tags=("crawl", "duplicates"),
        priority=30,
        description="Checks for <link rel=\"canonical\"> with a non-empty href.",
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        snapshot = context.snapshot
        for element in snapshot.select("link[rel]"):
            rel = (snapshot.attr(element, "rel") or "").lower().split()
            if "canonical" in rel and (snapshot.attr(element, "href") or "").strip():
                return None
        return build_issue(
            self.descriptor,
            context,
            description=(
                "No canonical URL is declared, so duplicate URLs may split ranking and "
                "retrieval signals."
            ),
            remediation='Add <link rel="canonical" href="..."> pointing at the preferred URL.',
            impact_score=5,
            selector='link[rel="canonical"]',
        )


def _directives(value: str) -> list[str]:
    return [item.strip() for item in value.split(",")]
