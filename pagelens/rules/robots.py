"""Network-backed robots.txt check for AI crawler access."""

from __future__ import annotations

from urllib.robotparser import RobotFileParser

import httpx
import structlog

from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue

logger = structlog.get_logger(__name__)

AI_CRAWLERS = (
    "GPTBot",
    "ChatGPT-User",
    "ClaudeBot",
    "Claude-Web",
    "anthropic-ai",
    "PerplexityBot",
    "Google-Extended",
    "CCBot",
    "cohere-ai",
    "Bytespider",
    "Diffbot",
)
MAX_ROBOTS_BYTES = 512_000
PREVIEW_CHARS = 400


class RobotsAiCrawlerRule:
    """Flags robots.txt rules that keep known AI crawlers away from the page.

    Any transport failure or non-2xx response yields no issue.
    """

    descriptor = RuleDescriptor(
        id="AIREAD-009",
        title="robots.txt blocks AI crawlers",
        category=Category.AIREAD,
        default_severity=Severity.CRITICAL,
        tags=("crawl", "robots", "ai-agents", "network"),
        priority=5,
        description=(
            "Fetches /robots.txt and checks whether GPTBot, ClaudeBot, PerplexityBot and "
            "other AI crawlers may fetch the page."
        ),
    )

    def __init__(self, transport: httpx.BaseTransport | None = None) -> None:
        self._transport = transport

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        robots_url = f"{context.snapshot.origin}/robots.txt"
        content = self._fetch(robots_url, timeout=context.config.network_timeout_ms / 1000)
        if content is None:
            return None

        parser = RobotFileParser(robots_url)
        parser.parse(content.splitlines())
        blocked = [agent for agent in AI_CRAWLERS if not parser.can_fetch(agent, context.url)]
        if not blocked:
            return None

        return build_issue(
            self.descriptor,
            context,
            description=(
                f"robots.txt disallows {len(blocked)} known AI crawler(s) from this page: "
                f"{', '.join(blocked)}."
            ),
            remediation=(
                "Allow the AI crawlers you want to reach your content in robots.txt, or "
                "scope Disallow rules to paths that should stay private."
            ),
            evidence=[
                f"Blocked crawlers: {', '.join(blocked)}",
                f"robots.txt preview: {content[:PREVIEW_CHARS]}",
            ],
            confidence=0.95,
        )

    def _fetch(self, robots_url: str, *, timeout: float) -> str | None:
        try:
            with httpx.Client(
                timeout=timeout,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = client.get(robots_url)
        except httpx.HTTPError as exc:
            logger.info("robots_fetch_failed", url=robots_url, error=str(exc))
            return None

        if not response.is_success:
            logger.info("robots_fetch_skipped", url=robots_url, status=response.status_code)
            return None
        if len(response.content) > MAX_ROBOTS_BYTES:
            logger.info("robots_fetch_skipped", url=robots_url, reason="too-large")
            return None
        return response.text
