"""Estimate how much page content a non-rendering fetcher can read."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from enum import Enum

from bs4 import Tag

from pagelens.config import ScanConfig
from pagelens.document import (
    NON_CONTENT_TAGS,
    DocumentSnapshot,
    is_hidden,
    normalize_text,
    visible_text_nodes,
)
from pagelens.issues import Severity

REGION_SELECTOR = "main, article, [role=main]"
HYDRATION_MARKERS = (
    "__NEXT_DATA__",
    "__NUXT__",
    "window.__INITIAL_STATE__",
    "window.__APOLLO_STATE__",
    "self.__next_f",
    "__remixContext",
    "data-server-rendered",
    "ng-version",
    "astro-island",
)
MOUNT_POINT_SELECTORS = ("#root", "#app", "#__next", "#__nuxt")
JSON_SCRIPT_TYPES = frozenset({"application/ld+json", "application/json"})
CONTENT_TYPE_SELECTORS = {
    "text": "p, h1, h2, h3, h4, h5, h6, li, blockquote, pre",
    "images": "img, picture, svg",
    "links": "a[href]",
    "structured": "table, ul, ol, dl",
}
NODE_SELECTOR = (
    "p, h1, h2, h3, h4, h5, h6, article, section, main, div, span, li, td, th, "
    "blockquote, pre, code"
)
MAX_NODES = 1000
INTERACTIVE_ATTRIBUTES = (
    "onclick",
    "onmouseover",
    "data-toggle",
    "data-dropdown",
    "data-modal",
    "data-accordion",
)
INTERACTIVE_ROLES = frozenset({"button", "tab", "menu", "menuitem", "tooltip", "dialog"})
FRAMEWORK_ATTRIBUTES = (
    "data-react-root",
    "data-reactroot",
    "ng-app",
    "ng-controller",
    "v-app",
    "data-vue-app",
    "data-gatsby",
    "data-svelte",
)
FRAMEWORK_ID_PREFIXES = ("__next", "__nuxt")
CLIENT_ROOT_IDS = frozenset({"root", "app", "main-app", "__next", "__nuxt"})


class ExtractabilityLevel(str, Enum):
    FULL = "full"
    PARTIAL = "partial"
    NONE = "none"


LEVEL_SCORES = {
    ExtractabilityLevel.FULL: 100.0,
    ExtractabilityLevel.PARTIAL: 50.0,
    ExtractabilityLevel.NONE: 0.0,
}


@dataclass(frozen=True, slots=True)
class RegionExtractability:
    content_source: str
    level: ExtractabilityLevel
    reason: str
    text_length: int
    word_count: int


@dataclass(frozen=True, slots=True)
class ContentTypeCount:
    content_type: str
    total: int
    visible: int

    @property
    def hidden(self) -> int:
        return self.total - self.visible

    @property
    def visible_ratio(self) -> float:
        return round(self.visible / self.total, 3) if self.total else 1.0


class NodeSource(str, Enum):
    SERVER_RENDERED = "server-rendered"
    CLIENT_RENDERED = "client-rendered"
    HIDDEN = "hidden"
    INTERACTIVE = "interactive"
    IFRAME = "iframe"
    SHADOW_DOM = "shadow-dom"


class NodeExtractability(str, Enum):
    EASY = "easy"
    MODERATE = "moderate"
    DIFFICULT = "difficult"
    IMPOSSIBLE = "impossible"


@dataclass(frozen=True, slots=True)
class ExtractabilityFinding:
    kind: str
    severity: Severity
    description: str
    count: int


@dataclass(frozen=True, slots=True)
class NodeSummary:
    """Per-element tally over the content elements of a page.

    Percentages are whole numbers rounded half up, and 0 when no content
    elements were examined.
    """

    total_nodes: int = 0
    extractable_nodes: int = 0
    hidden_nodes: int = 0
    interactive_nodes: int = 0
    iframe_nodes: int = 0
    client_rendered_nodes: int = 0
    server_rendered_nodes: int = 0
    noscript_elements: int = 0
    findings: tuple[ExtractabilityFinding, ...] = ()
    recommendations: tuple[str, ...] = ()

    @property
    def extractable_percent(self) -> int:
        return _percent(self.extractable_nodes, self.total_nodes)

    @property
    def server_rendered_percent(self) -> int:
        return _percent(self.server_rendered_nodes, self.total_nodes)

    @property
    def hidden_percent(self) -> int:
        return _percent(self.hidden_nodes, self.total_nodes)

    @property
    def interactive_percent(self) -> int:
        return _percent(self.interactive_nodes, self.total_nodes)

    @property
    def iframe_percent(self) -> int:
        return _percent(self.iframe_nodes, self.total_nodes)


@dataclass(frozen=True, slots=True)
class ExtractabilityMap:
    regions: tuple[RegionExtractability, ...]
    has_client_only_content: bool
    script_count: int
    hydration_markers: tuple[str, ...]
    empty_mount_points: tuple[str, ...]
    score: float
    content_types: tuple[ContentTypeCount, ...] = ()
    node_summary: NodeSummary = field(default_factory=NodeSummary)


def build_extractability_map(snapshot: DocumentSnapshot, config: ScanConfig) -> ExtractabilityMap:
    """Classify each primary content region as full, partial or none."""
    script_count = count_scripts(snapshot)
    markers = tuple(find_hydration_markers(snapshot))
    mounts = tuple(find_empty_mount_points(snapshot))
    floor = config.extractability_text_floor
    ceiling = config.extractability_script_ceiling

    located = _regions(snapshot)
    outside_length = len(_text_outside_regions(snapshot, [element for _, element in located]))

    regions: list[RegionExtractability] = []
    for source, element in located:
        text = snapshot.text_of(element)
        text_length = len(text)
        client_signals = _client_signals(script_count, ceiling, markers, mounts)

        if text_length < floor and client_signals and outside_length >= floor:
            level = ExtractabilityLevel.PARTIAL
            reason = (
                f"Only {text_length} characters of static text in {source} but "
                f"{outside_length} outside the content landmarks; client rendering signals: "
                f"{', '.join(client_signals)}"
            )
        elif text_length < floor and client_signals:
            level = ExtractabilityLevel.NONE
            reason = (
                f"Only {text_length} characters of static text ({floor} needed) and "
                f"client rendering signals: {', '.join(client_signals)}"
            )
        elif text_length >= floor and markers:
            level = ExtractabilityLevel.PARTIAL
            reason = (
                f"Static text present but hydration markers found: {', '.join(markers)}"
            )
        else:
            level = ExtractabilityLevel.FULL
            reason = "Content is present in the static markup"

        regions.append(
            RegionExtractability(
                content_source=source,
                level=level,
                reason=reason,
                text_length=text_length,
                word_count=len(text.split()),
            )
        )

    score = (
        round(sum(LEVEL_SCORES[region.level] for region in regions) / len(regions), 1)
        if regions
        else 100.0
    )
    return ExtractabilityMap(
        regions=tuple(regions),
        has_client_only_content=any(
            region.level is ExtractabilityLevel.NONE for region in regions
        ),
        script_count=script_count,
        hydration_markers=markers,
        empty_mount_points=mounts,
        score=score,
        content_types=analyze_content_types(snapshot),
        node_summary=summarize_nodes(snapshot),
    )


def count_scripts(snapshot: DocumentSnapshot) -> int:
    """Script-loading elements, excluding inline JSON data blocks."""
    scripts = 0
    for element in snapshot.select("script"):
        script_type = (snapshot.attr(element, "type") or "").strip().lower()
        if script_type in JSON_SCRIPT_TYPES:
            continue
        scripts += 1
    for element in snapshot.select("link[rel]"):
        rel = (snapshot.attr(element, "rel") or "").lower().split()
        as_value = (snapshot.attr(element, "as") or "").lower()
        if "modulepreload" in rel or ("preload" in rel and as_value == "script"):
            scripts += 1
    return scripts


def find_hydration_markers(snapshot: DocumentSnapshot) -> list[str]:
    return [marker for marker in HYDRATION_MARKERS if snapshot.contains_marker(marker)]


def find_empty_mount_points(snapshot: DocumentSnapshot) -> list[str]:
    """Client mount points that exist in the markup but carry no visible text."""
    empty: list[str] = []
    for selector in MOUNT_POINT_SELECTORS:
        element = snapshot.select_one(selector)
        if element is not None and not snapshot.text_of(element):
            empty.append(selector)
    return empty


def analyze_content_types(snapshot: DocumentSnapshot) -> tuple[ContentTypeCount, ...]:
    counts: list[ContentTypeCount] = []
    for content_type, selector in CONTENT_TYPE_SELECTORS.items():
        elements = snapshot.select(selector)
        visible = sum(1 for element in elements if not _hidden_in_tree(element))
        counts.append(
            ContentTypeCount(content_type=content_type, total=len(elements), visible=visible)
        )
    return tuple(counts)


def summarize_nodes(snapshot: DocumentSnapshot, max_nodes: int = MAX_NODES) -> NodeSummary:
    """Tally where each content element's text comes from and how readable it is.

    At most ``max_nodes`` elements are examined, in document order. Each is
    attributed to one source (shadow DOM, iframe, interactive, hidden, client
    rendered, then server rendered, first match wins) and graded from easy to
    impossible. Easy and moderate elements count as extractable.
    """
    tally: Counter[str] = Counter()
    for element in snapshot.select(NODE_SELECTOR):
        if tally["total"] >= max_nodes:
            break
        # Markup inside <template> or <noscript> is not part of the rendered page.
        if element.find_parent(list(NON_CONTENT_TAGS)) is not None:
            continue
        hidden = _hidden_in_tree(element)
        interactive = _requires_interaction(element)
        in_iframe = element.find_parent("iframe") is not None
        client = _client_rendered(element)
        source = _node_source(
            shadow=_hosts_shadow_root(element),
            in_iframe=in_iframe,
            interactive=interactive,
            hidden=hidden,
            client=client,
        )
        level = _node_level(
            source,
            hidden=hidden,
            interactive=interactive,
            has_text=bool(snapshot.text_of(element)),
        )
        tally["total"] += 1
        tally["extractable"] += level in (NodeExtractability.EASY, NodeExtractability.MODERATE)
        tally["hidden"] += hidden
        tally["interactive"] += interactive
        tally["iframe"] += in_iframe
        tally["client"] += client
        tally["server"] += source is NodeSource.SERVER_RENDERED

    counts = NodeSummary(
        total_nodes=tally["total"],
        extractable_nodes=tally["extractable"],
        hidden_nodes=tally["hidden"],
        interactive_nodes=tally["interactive"],
        iframe_nodes=tally["iframe"],
        client_rendered_nodes=tally["client"],
        server_rendered_nodes=tally["server"],
        noscript_elements=snapshot.count("noscript"),
    )
    return replace(
        counts,
        findings=tuple(_node_findings(counts)),
        recommendations=tuple(_node_recommendations(counts)),
    )


def _node_findings(summary: NodeSummary) -> list[ExtractabilityFinding]:
    findings: list[ExtractabilityFinding] = []
    if summary.hidden_percent > 20:
        findings.append(
            ExtractabilityFinding(
                kind="hidden-content",
                severity=Severity.MEDIUM,
                description=f"{summary.hidden_percent}% of content is hidden from view",
                count=summary.hidden_nodes,
            )
        )
    if summary.interactive_percent > 30:
        findings.append(
            ExtractabilityFinding(
                kind="interactive-content",
                severity=Severity.HIGH,
                description=(
                    f"{summary.interactive_percent}% of content requires user interaction"
                ),
                count=summary.interactive_nodes,
            )
        )
    if summary.iframe_percent > 10:
        findings.append(
            ExtractabilityFinding(
                kind="iframe-content",
                severity=Severity.MEDIUM,
                description=f"{summary.iframe_percent}% of content is in iframes",
                count=summary.iframe_nodes,
            )
        )
    if summary.total_nodes and summary.server_rendered_percent < 50:
        findings.append(
            ExtractabilityFinding(
                kind="client-rendered",
                severity=Severity.HIGH,
                description=(
                    f"Only {summary.server_rendered_percent}% of content is server-rendered"
                ),
                count=summary.client_rendered_nodes,
            )
        )
    if summary.noscript_elements:
        findings.append(
            ExtractabilityFinding(
                kind="noscript-fallback",
                severity=Severity.LOW,
                description="Page has noscript fallback content",
                count=summary.noscript_elements,
            )
        )
    return findings


def _node_recommendations(summary: NodeSummary) -> list[str]:
    recommendations: list[str] = []
    if summary.total_nodes and summary.extractable_percent < 70:
        recommendations.append(
            "Improve content extractability by reducing client-side rendering and hidden content"
        )
    if summary.hidden_percent > 20:
        recommendations.append("Reduce hidden content or provide accessible alternatives")
    if summary.interactive_percent > 30:
        recommendations.append(
            "Make interactive content readable without JavaScript or render it on the server"
        )
    if summary.iframe_percent > 10:
        recommendations.append("Minimize iframe usage or provide the content inline")
    if summary.total_nodes and summary.server_rendered_percent < 50:
        recommendations.append(
            "Render more content on the server for crawlers that skip JavaScript"
        )
    return recommendations


def _regions(snapshot: DocumentSnapshot) -> list[tuple[str, Tag]]:
    matches = snapshot.select(REGION_SELECTOR)
    if matches:
        return [(_describe(element), element) for element in matches]
    body = snapshot.soup.body
    if body is not None:
        return [("body", body)]
    return [("document", snapshot.soup)]


def _client_signals(
    script_count: int,
    ceiling: int,
    markers: tuple[str, ...],
    mounts: tuple[str, ...],
) -> list[str]:
    signals: list[str] = []
    if script_count > ceiling:
        signals.append(f"{script_count} scripts (ceiling {ceiling})")
    signals.extend(f"marker {marker}" for marker in markers)
    signals.extend(f"empty mount {mount}" for mount in mounts)
    return signals


def _describe(element: Tag) -> str:
    label = element.name
    element_id = element.get("id")
    if element_id:
        return f"{label}#{element_id}"
    if element.get("role") == "main" and label != "main":
        return f'{label}[role="main"]'
    return label


def _hidden_in_tree(element: Tag) -> bool:
    node: Tag | None = element
    while node is not None and node.name != "[document]":
        if is_hidden(node):
            return True
        node = node.parent
    return False


def _requires_interaction(element: Tag) -> bool:
    if any(element.get(name) for name in INTERACTIVE_ATTRIBUTES):
        return True
    if str(element.get("role", "")).lower() in INTERACTIVE_ROLES:
        return True
    # Content of a closed <details> stays collapsed until clicked.
    for details in element.find_parents("details"):
        if details.get("open") is None:
            return True
    return False


def _client_rendered(element: Tag) -> bool:
    node: Tag | None = element
    while node is not None and node.name != "[document]":
        if any(node.get(name) is not None for name in FRAMEWORK_ATTRIBUTES):
            return True
        if str(node.get("id", "")).startswith(FRAMEWORK_ID_PREFIXES):
            return True
        node = node.parent
    if element.get("id") in CLIENT_ROOT_IDS:
        return True
    has_data_attributes = any(name.startswith("data-") for name in element.attrs)
    return has_data_attributes and not element.get_text(strip=True) and not element.find(True)


def _hosts_shadow_root(element: Tag) -> bool:
    if element.get("shadowroot") is not None or element.get("shadowrootmode") is not None:
        return True
    template = element.find("template", recursive=False)
    return template is not None and template.get("shadowrootmode") is not None


def _node_source(
    *, shadow: bool, in_iframe: bool, interactive: bool, hidden: bool, client: bool
) -> NodeSource:
    if shadow:
        return NodeSource.SHADOW_DOM
    if in_iframe:
        return NodeSource.IFRAME
    if interactive:
        return NodeSource.INTERACTIVE
    if hidden:
        return NodeSource.HIDDEN
    if client:
        return NodeSource.CLIENT_RENDERED
    return NodeSource.SERVER_RENDERED


def _node_level(
    source: NodeSource, *, hidden: bool, interactive: bool, has_text: bool
) -> NodeExtractability:
    if source is NodeSource.SHADOW_DOM or (hidden and not has_text):
        return NodeExtractability.IMPOSSIBLE
    if interactive or source is NodeSource.IFRAME:
        return NodeExtractability.DIFFICULT
    if hidden or source is NodeSource.CLIENT_RENDERED:
        return NodeExtractability.MODERATE
    return NodeExtractability.EASY


def _percent(part: int, total: int) -> int:
    if not total:
        return 0
    return int(part * 100 / total + 0.5)


def _text_outside_regions(snapshot: DocumentSnapshot, regions: list[Tag]) -> str:
    body = snapshot.soup.body
    if body is None or any(region is body for region in regions):
        return ""
    region_ids = {id(region) for region in regions}
    parts = [
        str(node)
        for node in visible_text_nodes(body)
        if not any(id(parent) in region_ids for parent in node.parents)
    ]
    return normalize_text("".join(parts))
