"""Split primary page content into retrieval-sized chunks and grade them."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field, replace
from enum import Enum

from bs4 import Tag

from pagelens.config import ScanConfig
from pagelens.document import NON_CONTENT_TAGS, DocumentSnapshot, normalize_text, raw_text

CHARS_PER_TOKEN = 4
HEADING_TAGS = frozenset({"h1", "h2", "h3", "h4", "h5", "h6"})
TEXT_BLOCK_TAGS = frozenset(
    {"p", "li", "pre", "blockquote", "dd", "dt", "figcaption", "td", "th"}
)
BLOCK_TAGS = HEADING_TAGS | TEXT_BLOCK_TAGS

# Whitespace beyond the first char of a run, markup left in text, entities,
# and runs of one repeated punctuation mark.
_NOISE_RE = re.compile(r"(\s{2,})|(<[^<>]*>)|(&#?\w+;)|(([^\w\s])\5+)")


class ChunkStrategy(str, Enum):
    HEADING = "heading-based"
    PARAGRAPH = "paragraph-based"


class QualityLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


@dataclass(frozen=True, slots=True)
class ChunkQuality:
    level: QualityLevel
    issues: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ContentChunk:
    """One contiguous span of primary content."""

    index: int
    heading: str | None
    heading_level: int | None
    text: str
    token_count: int
    noise_ratio: float
    word_count: int
    character_count: int
    has_code: bool = False
    has_lists: bool = False
    has_tables: bool = False
    quality: QualityLevel = QualityLevel.EXCELLENT
    quality_issues: tuple[str, ...] = ()
    recommendations: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class ChunkingResult:
    strategy: ChunkStrategy
    chunks: tuple[ContentChunk, ...] = ()
    heading_coverage: float = 0.0
    content_tokens: int = 0

    @property
    def total_chunks(self) -> int:
        return len(self.chunks)

    @property
    def total_tokens(self) -> int:
        """Sum of chunk token counts.

        Heading chunks nest, so a section's text is also counted in every
        enclosing section. ``content_tokens`` counts each block once.
        """
        return sum(chunk.token_count for chunk in self.chunks)

    @property
    def average_tokens_per_chunk(self) -> float:
        if not self.chunks:
            return 0.0
        return round(self.total_tokens / len(self.chunks), 1)

    @property
    def average_noise_ratio(self) -> float:
        if not self.chunks:
            return 0.0
        return round(sum(chunk.noise_ratio for chunk in self.chunks) / len(self.chunks), 3)

    def quality_counts(self) -> dict[str, int]:
        counts = {level.value: 0 for level in QualityLevel}
        for chunk in self.chunks:
            counts[chunk.quality.value] += 1
        return counts


@dataclass(slots=True)
class Block:
    tag: str
    text: str
    raw: str
    has_code: bool

    @property
    def level(self) -> int | None:
        return int(self.tag[1]) if self.tag in HEADING_TAGS else None


@dataclass(slots=True)
class _Draft:
    heading: str | None = None
    heading_level: int | None = None
    blocks: list[Block] = field(default_factory=list)


def estimate_tokens(text: str) -> int:
    """Four characters per token over whitespace-collapsed text."""
    return math.ceil(len(normalize_text(text)) / CHARS_PER_TOKEN)


def noise_ratio(text: str) -> float:
    """Share of boilerplate characters in raw text, capped at 1.0.

    Empty input is all noise.
    """
    if not text:
        return 1.0
    noisy = 0
    for match in _NOISE_RE.finditer(text):
        if match.group(1) is not None:
            noisy += len(match.group(1)) - 1
        else:
            noisy += len(match.group(0))
    return round(min(1.0, noisy / len(text)), 3)


def analyze_chunk_quality(chunk: ContentChunk, config: ScanConfig) -> ChunkQuality:
    issues: list[str] = []
    recommendations: list[str] = []

    if chunk.token_count > config.large_chunk_tokens:
        issues.append(f"Chunk is very large (>{config.large_chunk_tokens} tokens)")
        recommendations.append("Split into smaller sections using subheadings")
    elif chunk.token_count < config.small_chunk_tokens:
        issues.append(f"Chunk is very small (<{config.small_chunk_tokens} tokens)")
        recommendations.append("Consider merging with adjacent sections")

    if chunk.noise_ratio > config.noise_ratio_threshold:
        issues.append(f"High noise ratio (>{config.noise_ratio_threshold:.0%})")
        recommendations.append("Remove excess whitespace, leftover markup or decoration")

    if not chunk.heading:
        issues.append("Chunk lacks a clear heading")
        recommendations.append("Add a descriptive heading to give the chunk context")

    return ChunkQuality(
        level=_quality_level(len(issues)),
        issues=tuple(issues),
        recommendations=tuple(recommendations),
    )


def chunk_document(snapshot: DocumentSnapshot, config: ScanConfig) -> ChunkingResult:
    """Chunk the primary container by headings, or by token budget when headings are sparse."""
    blocks = collect_blocks(snapshot.primary_container())
    coverage = heading_coverage(blocks)
    if coverage > config.heading_coverage_threshold:
        strategy = ChunkStrategy.HEADING
        drafts = _split_by_headings(blocks)
    else:
        strategy = ChunkStrategy.PARAGRAPH
        drafts = _split_by_budget(blocks, config.chunk_token_budget)

    chunks = tuple(
        _finish_chunk(index, draft, config) for index, draft in enumerate(drafts)
    )
    return ChunkingResult(
        strategy=strategy,
        chunks=chunks,
        heading_coverage=round(coverage, 3),
        content_tokens=estimate_tokens(_joined_text(blocks)),
    )


def collect_blocks(container: Tag) -> list[Block]:
    """Outermost headings and text blocks in document order.

    When the container holds text but no block elements, the whole container
    becomes a single block.
    """
    blocks: list[Block] = []
    stack = list(reversed(_child_tags(container)))
    while stack:
        element = stack.pop()
        if element.name in NON_CONTENT_TAGS:
            continue
        if element.name in BLOCK_TAGS:
            raw = raw_text(element)
            text = normalize_text(raw)
            if text:
                blocks.append(
                    Block(
                        tag=element.name,
                        text=text,
                        raw=raw,
                        has_code=element.name == "pre" or element.find("code") is not None,
                    )
                )
            continue
        stack.extend(reversed(_child_tags(element)))

    if not blocks:
        raw = raw_text(container)
        text = normalize_text(raw)
        if text:
            blocks.append(Block(tag="div", text=text, raw=raw, has_code=False))
    return blocks


def heading_coverage(blocks: list[Block]) -> float:
    """Share of block characters at or after the first heading."""
    total = sum(len(block.text) for block in blocks)
    if total == 0:
        return 0.0
    for position, block in enumerate(blocks):
        if block.level is not None:
            covered = sum(len(item.text) for item in blocks[position:])
            return covered / total
    return 0.0


def _split_by_headings(blocks: list[Block]) -> list[_Draft]:
    drafts: list[_Draft] = []
    first_heading = next(
        (position for position, block in enumerate(blocks) if block.level is not None),
        len(blocks),
    )
    if first_heading:
        drafts.append(_Draft(blocks=blocks[:first_heading]))

    for position in range(first_heading, len(blocks)):
        heading = blocks[position]
        level = heading.level
        if level is None:
            continue
        end = position + 1
        while end < len(blocks):
            next_level = blocks[end].level
            if next_level is not None and next_level <= level:
                break
            end += 1
        drafts.append(
            _Draft(heading=heading.text, heading_level=level, blocks=blocks[position:end])
        )
    return drafts


def _split_by_budget(blocks: list[Block], budget: int) -> list[_Draft]:
    drafts: list[_Draft] = []
    current = _Draft()
    for block in blocks:
        current.blocks.append(block)
        if estimate_tokens(_joined_text(current.blocks)) >= budget:
            drafts.append(current)
            current = _Draft()
    if current.blocks:
        drafts.append(current)
    return drafts


def _finish_chunk(index: int, draft: _Draft, config: ScanConfig) -> ContentChunk:
    text = _joined_text(draft.blocks)
    raw = "\n".join(block.raw for block in draft.blocks)
    chunk = ContentChunk(
        index=index,
        heading=draft.heading,
        heading_level=draft.heading_level,
        text=text,
        token_count=estimate_tokens(text),
        noise_ratio=noise_ratio(raw),
        word_count=len(text.split()),
        character_count=len(text),
        has_code=any(block.has_code for block in draft.blocks),
        has_lists=any(block.tag in {"li", "dd", "dt"} for block in draft.blocks),
        has_tables=any(block.tag in {"td", "th"} for block in draft.blocks),
    )
    quality = analyze_chunk_quality(chunk, config)
    return replace(
        chunk,
        quality=quality.level,
        quality_issues=quality.issues,
        recommendations=quality.recommendations,
    )


def _joined_text(blocks: list[Block]) -> str:
    return "\n\n".join(block.text for block in blocks)


def _child_tags(element: Tag) -> list[Tag]:
    return [child for child in element.children if isinstance(child, Tag)]


def _quality_level(issue_count: int) -> QualityLevel:
    if issue_count == 0:
        return QualityLevel.EXCELLENT
    if issue_count == 1:
        return QualityLevel.GOOD
    if issue_count == 2:
        return QualityLevel.FAIR
    return QualityLevel.POOR
