"""Keyword-overlap estimate of how close a support reply is to a known solution.

Used where a classification call to the language model is not wanted. Terms are
taken from the solution text and matched on their first characters so that
inflected Finnish forms ("tulostin", "tulostimen") count as the same term.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from helpdesk_ai.agents.base import ConversationMessage, ProgressLabel

STOPWORDS = frozenset({"joka", "että", "tämä", "niin", "kuin", "voit", "olla", "myös"})
MAX_WORDS = 20
MAX_BIGRAMS = 10
STEM_LENGTH = 6
# Short or stoplisted words dropped from the solution may sit between the two halves of a bigram.
MAX_BIGRAM_GAP = 2

_WORD = re.compile(r"\w+")


@dataclass(frozen=True)
class KeyTerms:
    words: Tuple[str, ...] = ()
    bigrams: Tuple[Tuple[str, str], ...] = ()

    @property
    def total(self) -> int:
        return len(self.words) + len(self.bigrams)


@dataclass(frozen=True)
class KeywordOverlap:
    label: ProgressLabel
    percentage: int = 0
    matched: int = 0
    total: int = 0
    matched_terms: Tuple[str, ...] = field(default_factory=tuple)


def _tokens(text: str) -> List[str]:
    return _WORD.findall((text or "").lower())


def _stem(word: str) -> str:
    return word[:STEM_LENGTH]


def extract_key_terms(solution: str) -> KeyTerms:
    filtered = [word for word in _tokens(solution) if len(word) > 3 and word not in STOPWORDS]

    words: List[str] = []
    for word in filtered:
        if word not in words:
            words.append(word)
        if len(words) == MAX_WORDS:
            break

    bigrams: List[Tuple[str, str]] = []
    for first, second in zip(filtered, filtered[1:]):
        pair = (first, second)
        if pair not in bigrams:
            bigrams.append(pair)
        if len(bigrams) == MAX_BIGRAMS:
            break

    return KeyTerms(words=tuple(words), bigrams=tuple(bigrams))


def bucket_percentage(percentage: float) -> ProgressLabel:
    if percentage < 25:
        return ProgressLabel.EARLY
    if percentage < 60:
        return ProgressLabel.PROGRESSING
    if percentage < 90:
        return ProgressLabel.CLOSE
    return ProgressLabel.SOLVED


def measure_overlap(solution: str, texts: Iterable[str]) -> KeywordOverlap:
    terms = extract_key_terms(solution)
    if not terms.total:
        return KeywordOverlap(label=ProgressLabel.UNKNOWN)

    haystack = " ".join(token for text in texts for token in _tokens(text))
    matched: List[str] = [word for word in terms.words if _stem(word) in haystack]
    for first, second in terms.bigrams:
        pattern = re.escape(_stem(first)) + r"\w*(?:\s+\w+){0,%d}?\s+" % MAX_BIGRAM_GAP + re.escape(_stem(second))
        if re.search(pattern, haystack):
            matched.append(f"{first} {second}")

    percentage = round(len(matched) / terms.total * 100)
    return KeywordOverlap(
        label=bucket_percentage(percentage),
        percentage=percentage,
        matched=len(matched),
        total=terms.total,
        matched_terms=tuple(matched),
    )


def estimate_solution_progress(
    current_comment: str,
    solution: Optional[str],
    conversation_history: Sequence[ConversationMessage] = (),
) -> ProgressLabel:
    if not solution or not solution.strip():
        return ProgressLabel.UNKNOWN
    texts = [message.content for message in conversation_history]
    texts.append(current_comment)
    return measure_overlap(solution, texts).label
