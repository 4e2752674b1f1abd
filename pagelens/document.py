"""Read-only parsed page snapshot shared by every analysis stage."""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any
from urllib.parse import urlsplit

from bs4 import (
    BeautifulSoup,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

PARSER = "html.parser"
NON_CONTENT_TAGS = frozenset({"script", "style", "noscript", "template"})
_SKIPPED_STRING_TYPES = (Comment, Declaration, Doctype, ProcessingInstruction)
_WHITESPACE_RE = re.compile(r"\s+")
_ZERO_OPACITY_RE = re.compile(r"opacity:0(?:\.0*)?(?:;|$)")


class MalformedInputError(ValueError):
    """Raised when raw markup cannot be turned into a queryable snapshot."""


@dataclass(frozen=True, slots=True)
class DocumentSnapshot:
    """One fetched and parsed page.

    Rules receive the snapshot through ``RuleContext`` and must treat every
    returned ``Tag`` as read-only; the tree is shared by concurrent rules.
    """

    url: str
    raw_html: str
    soup: BeautifulSoup = field(repr=False, compare=False)
    http_status: int | None = None
    headers: MappingProxyType[str, str] = field(
        default_factory=lambda: MappingProxyType({}), repr=False
    )

    @classmethod
    def parse(
        cls,
        url: str,
        raw_html: Any,
        *,
        http_status: int | None = None,
        headers: dict[str, str] | None = None,
    ) -> DocumentSnapshot:
        """Parse markup into a snapshot, failing fast on unusable input."""
        if not isinstance(url, str) or not url.strip():
            raise MalformedInputError("url must be a non-empty string")
        parts = urlsplit(url.strip())
        if not parts.scheme or not parts.netloc:
            raise MalformedInputError(f"url must be absolute with scheme and host: {url!r}")
        if not isinstance(raw_html, str):
            raise MalformedInputError(
                f"raw_html must be a string, got {type(raw_html).__name__}"
            )
        if not raw_html.strip():
            raise MalformedInputError("raw_html is empty")
        if http_status is not None and not 100 <= http_status <= 599:
            raise MalformedInputError(f"http_status out of range: {http_status}")

        try:
            soup = BeautifulSoup(raw_html, PARSER)
        except Exception as exc:
            raise MalformedInputError(f"Could not parse markup: {exc}") from exc
        if soup.find(True) is None:
            raise MalformedInputError("markup contains no elements")

        normalized_headers = {key.lower(): value for key, value in (headers or {}).items()}
        return cls(
            url=url.strip(),
            raw_html=raw_html,
            soup=soup,
            http_status=http_status,
            headers=MappingProxyType(normalized_headers),
        )

    def select(self, selector: str) -> list[Tag]:
        """Return all elements matching a CSS selector, in document order."""
        return list(self.soup.select(selector))

    def select_one(self, selector: str) -> Tag | None:
        return self.soup.select_one(selector)

    def count(self, selector: str) -> int:
        return len(self.soup.select(selector))

    def attr(self, element: Tag, name: str) -> str | None:
        """Return an attribute as a string; multi-valued attributes are space-joined."""
        value = element.get(name)
        if value is None:
            return None
        if isinstance(value, list):
            return " ".join(value)
        return str(value)

    def text_of(self, target: str | Tag | None = None) -> str:
        """Visible text of a selector match or element, whitespace-collapsed.

        A selector returns the text of its first match, or ``""`` when nothing
        matches. ``None`` means the whole document.
        """
        if target is None:
            element: Tag | None = self.soup
        elif isinstance(target, str):
            element = self.select_one(target)
        else:
            element = target
        if element is None:
            return ""
        return normalize_text(raw_text(element))

    def body_text(self) -> str:
        body = self.soup.body
        return self.text_of(body if body is not None else None)

    def primary_container(self) -> Tag:
        """First ``main``, else first ``article``, else ``body``, else the document."""
        for name in ("main", "article", "body"):
            element = self.soup.find(name)
            if isinstance(element, Tag):
                return element
        return self.soup

    def contains_marker(self, marker: str) -> bool:
        """Check the raw markup for a literal marker string."""
        return marker in self.raw_html

    @property
    def host(self) -> str:
        return urlsplit(self.url).netloc

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"


def visible_text_nodes(element: Tag) -> Iterator[NavigableString]:
    """Yield text nodes outside script/style/noscript/template and comments."""
    for node in element.descendants:
        if not isinstance(node, NavigableString) or isinstance(node, _SKIPPED_STRING_TYPES):
            continue
        if _inside_non_content(node, stop=element):
            continue
        yield node


def raw_text(element: Tag) -> str:
    """Concatenate visible text nodes without touching their whitespace."""
    if element.name in NON_CONTENT_TAGS:
        return ""
    return "".join(str(node) for node in visible_text_nodes(element))


def normalize_text(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def is_hidden(element: Tag) -> bool:
    """Heuristic visibility check based on attributes, inline style and utility classes."""
    if element.get("hidden") is not None:
        return True
    if str(element.get("aria-hidden", "")).lower() == "true":
        return True
    style = str(element.get("style", "")).replace(" ", "").lower()
    if "display:none" in style or "visibility:hidden" in style:
        return True
    if _ZERO_OPACITY_RE.search(style):
        return True
    classes = element.get("class") or []
    return any(name in _HIDDEN_CLASSES for name in classes)


_HIDDEN_CLASSES = frozenset({"hidden", "invisible", "d-none", "sr-only", "visually-hidden"})


def _inside_non_content(node: NavigableString, *, stop: Tag) -> bool:
    parent = node.parent
    while parent is not None and parent is not stop:
        if parent.name in NON_CONTENT_TAGS:
            return True
        parent = parent.parent
    return False
