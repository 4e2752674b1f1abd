"""Reading-level check for primary prose."""

from __future__ import annotations

import re
from dataclasses import dataclass

from pagelens.document import DocumentSnapshot
from pagelens.issues import Category, Issue, Severity
from pagelens.rules.base import RuleContext, RuleDescriptor, build_issue

MIN_WORDS = 100

_SENTENCE_END_RE = re.compile(r"[.!?]+(?:\s+|$)")
_WORD_RE = re.compile(r"[A-Za-z]+(?:'[A-Za-z]+)?")
_VOWEL_GROUP_RE = re.compile(r"[aeiouy]+")


@dataclass(frozen=True, slots=True)
class ReadingStats:
    words: int
    sentences: int
    syllables: int

    @property
    def avg_sentence_words(self) -> float:
        return self.words / self.sentences if self.sentences else 0.0

    @property
    def grade(self) -> float:
        """Flesch-Kincaid grade level."""
        if not self.words or not self.sentences:
            return 0.0
        return (
            0.39 * (self.words / self.sentences)
            + 11.8 * (self.syllables / self.words)
            - 15.59
        )


class ComplexReadingLevelRule:
    """Flags prose whose grade level or sentence length exceeds configured limits."""

    descriptor = RuleDescriptor(
        id="AIREAD-020",
        title="Complex reading level",
        category=Category.AIREAD,
        default_severity=Severity.MEDIUM,
        tags=("readability", "content"),
        priority=40,
        description=(
            "Estimates the Flesch-Kincaid grade and average sentence length of paragraph "
            "text in the primary container."
        ),
    )

    def meta(self) -> RuleDescriptor:
        return self.descriptor

    def execute(self, context: RuleContext) -> Issue | None:
        config = context.config
        stats = reading_stats(context.snapshot)
        if stats.words < MIN_WORDS:
            return None

        grade = stats.grade
        avg_words = stats.avg_sentence_words
        if grade <= config.max_reading_grade and avg_words <= config.max_avg_sentence_words:
            return None

        return build_issue(
            self.descriptor,
            context,
            description=(
                f"Paragraph text reads at grade {grade:.1f} with {avg_words:.1f} words per "
                "sentence. Dense prose lowers answer extraction accuracy."
            ),
            remediation="Shorten sentences and prefer plain wording for key facts.",
            evidence=[
                f"Grade level: {grade:.1f} (limit {config.max_reading_grade:g})",
                f"Average sentence words: {avg_words:.1f} "
                f"(limit {config.max_avg_sentence_words:g})",
                f"Words analysed: {stats.words}",
            ],
            confidence=0.7,
        )


def reading_stats(snapshot: DocumentSnapshot) -> ReadingStats:
    container = snapshot.primary_container()
    words = sentences = syllables = 0
    for paragraph in container.find_all("p"):
        text = snapshot.text_of(paragraph)
        if not text:
            continue
        for sentence in _SENTENCE_END_RE.split(text):
            tokens = _WORD_RE.findall(sentence)
            if not tokens:
                continue
            sentences += 1
            words += len(tokens)
            syllables += sum(count_syllables(token) for token in tokens)
    return ReadingStats(words=words, sentences=sentences, syllables=syllables)


def count_syllables(word: str) -> int:
    lowered = word.lower()
    count = len(_VOWEL_GROUP_RE.findall(lowered))
    if lowered.endswith("e") and not lowered.endswith(("le", "ee")) and count > 1:
        count -= 1
    return max(1, count)
