"""JSON-LD extraction with bounded traversal."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlsplit

from pagelens.document import DocumentSnapshot

JSON_LD_SELECTOR = 'script[type="application/ld+json"]'
MAX_DEPTH = 32
MAIN_ENTITY_TYPES = frozenset(
    {"Organization", "Person", "Article", "NewsArticle", "BlogPosting", "WebPage", "Product"}
)
_SCHEMA_PREFIXES = ("https://schema.org/", "http://schema.org/", "schema:")
ORGANIZATION_TYPES = frozenset({"Organization", "LocalBusiness", "Corporation"})
PRODUCT_HINT_SELECTOR = (
    '[class*="product"], [itemtype*="Product"], [data-product], .price, .add-to-cart, '
    '.buy-now, [class*="cart"]'
)
ORGANIZATION_HINT_SELECTOR = '[class*="about"], [class*="company"], [class*="organization"]'
ARTICLE_HINT_SELECTOR = 'article, [class*="post"], [class*="blog"], [class*="article"]'
SOCIAL_DOMAINS = ("facebook.com", "twitter.com", "linkedin.com", "instagram.com", "youtube.com")
_TITLE_SEPARATOR_RE = re.compile("[-|:\u2013\u2014]")


@dataclass(frozen=True, slots=True)
class JsonLdError:
    index: int
    message: str


@dataclass(slots=True)
class JsonLdExtraction:
    """Typed objects found across every JSON-LD block of a page."""

    block_count: int = 0
    schemas: list[dict[str, Any]] = field(default_factory=list)
    types: set[str] = field(default_factory=set)
    errors: list[JsonLdError] = field(default_factory=list)

    @property
    def has_main_entity(self) -> bool:
        return bool(self.types & MAIN_ENTITY_TYPES)


@dataclass(frozen=True, slots=True)
class PrimaryEntity:
    """What the page is about, from JSON-LD when declared, else from markup hints."""

    entity_type: str
    name: str | None
    description: str | None
    same_as: tuple[str, ...] = ()
    confidence: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_type": self.entity_type,
            "name": self.name,
            "description": self.description,
            "same_as": list(self.same_as),
            "confidence": self.confidence,
        }


def extract_json_ld(snapshot: DocumentSnapshot) -> JsonLdExtraction:
    """Parse every ld+json script; malformed blocks are recorded, not raised."""
    extraction = JsonLdExtraction()
    for index, element in enumerate(snapshot.select(JSON_LD_SELECTOR)):
        extraction.block_count += 1
        content = "".join(str(child) for child in element.contents).strip()
        if not content:
            continue
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            extraction.errors.append(JsonLdError(index=index, message=exc.msg))
            continue
        _walk(data, extraction, depth=0, seen=set())
    return extraction


def detect_primary_entity(
    snapshot: DocumentSnapshot, extraction: JsonLdExtraction | None = None
) -> PrimaryEntity:
    """Pick the page's primary entity.

    A Product schema wins, then an Organization-like schema. Without either,
    the entity is inferred from class names, the URL path and landmarks with
    a lower confidence.
    """
    extraction = extraction if extraction is not None else extract_json_ld(snapshot)
    description = _meta_description(snapshot)

    for schema in extraction.schemas:
        if "Product" in _types_of(schema):
            return PrimaryEntity(
                entity_type="Product",
                name=_string(schema.get("name")) or _first_heading(snapshot),
                description=_string(schema.get("description")) or description,
                same_as=_same_as(schema),
                confidence=1.0,
            )
    for schema in extraction.schemas:
        types = set(_types_of(schema))
        if types & ORGANIZATION_TYPES:
            return PrimaryEntity(
                entity_type="LocalBusiness" if "LocalBusiness" in types else "Organization",
                name=_string(schema.get("name")) or _title_lead(snapshot),
                description=_string(schema.get("description")) or description,
                same_as=_same_as(schema),
                confidence=1.0,
            )

    if snapshot.count(PRODUCT_HINT_SELECTOR) > 2:
        return PrimaryEntity(
            entity_type="Product",
            name=_first_heading(snapshot) or _title_lead(snapshot),
            description=description,
            confidence=0.6,
        )
    if urlsplit(snapshot.url).path in {"", "/"} or snapshot.count(ORGANIZATION_HINT_SELECTOR):
        return PrimaryEntity(
            entity_type="Organization",
            name=_first_heading(snapshot) or _title_lead(snapshot),
            description=description,
            same_as=_social_links(snapshot),
            confidence=0.5,
        )
    if snapshot.count(ARTICLE_HINT_SELECTOR):
        return PrimaryEntity(
            entity_type="Article",
            name=_first_heading(snapshot),
            description=description,
            confidence=0.6,
        )
    return PrimaryEntity(
        entity_type="WebPage",
        name=snapshot.text_of("title") or None,
        description=description,
        confidence=0.4,
    )


def normalize_type(value: str) -> str:
    for prefix in _SCHEMA_PREFIXES:
        if value.startswith(prefix):
            return value[len(prefix):]
    return value


def _walk(node: Any, extraction: JsonLdExtraction, *, depth: int, seen: set[int]) -> None:
    if depth > MAX_DEPTH or not isinstance(node, (dict, list)):
        return
    if id(node) in seen:
        return
    seen.add(id(node))

    if isinstance(node, list):
        for item in node:
            _walk(item, extraction, depth=depth + 1, seen=seen)
        return

    graph = node.get("@graph")
    if isinstance(graph, list):
        _walk(graph, extraction, depth=depth + 1, seen=seen)

    types = _types_of(node)
    if types:
        extraction.schemas.append(node)
        extraction.types.update(types)

    for key, value in node.items():
        if key == "@graph":
            continue
        if isinstance(value, dict) and "@type" in value:
            _walk(value, extraction, depth=depth + 1, seen=seen)
        elif isinstance(value, list):
            for item in value:
                if isinstance(item, dict) and "@type" in item:
                    _walk(item, extraction, depth=depth + 1, seen=seen)


def _types_of(node: dict[str, Any]) -> list[str]:
    raw = node.get("@type")
    if isinstance(raw, str):
        return [normalize_type(raw)] if raw else []
    if isinstance(raw, list):
        return [normalize_type(item) for item in raw if isinstance(item, str) and item]
    return []


def _string(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _same_as(schema: dict[str, Any]) -> tuple[str, ...]:
    raw = schema.get("sameAs")
    if isinstance(raw, str):
        return (raw,)
    if isinstance(raw, list):
        return tuple(item for item in raw if isinstance(item, str))
    return ()


def _meta_description(snapshot: DocumentSnapshot) -> str | None:
    element = snapshot.select_one('meta[name="description"]')
    if element is None:
        return None
    return _string(snapshot.attr(element, "content"))


def _first_heading(snapshot: DocumentSnapshot) -> str | None:
    return snapshot.text_of("h1") or None


def _title_lead(snapshot: DocumentSnapshot) -> str | None:
    title = snapshot.text_of("title")
    return _TITLE_SEPARATOR_RE.split(title, maxsplit=1)[0].strip() or None


def _social_links(snapshot: DocumentSnapshot) -> tuple[str, ...]:
    links: list[str] = []
    for element in snapshot.select("a[href]"):
        href = snapshot.attr(element, "href") or ""
        if any(domain in href for domain in SOCIAL_DOMAINS) and href not in links:
            links.append(href)
    return tuple(links)
