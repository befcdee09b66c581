"""Score feedback snippets against tracked issues with term-frequency cosine similarity."""

from __future__ import annotations

from collections import Counter
from collections.abc import Mapping
from dataclasses import dataclass
import math
import re
from typing import Any, Collection, Iterable, Optional, Protocol, Sequence

STOPWORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
        "be", "have", "has", "had", "do", "does", "did", "will", "would", "could",
        "should", "may", "might", "must", "shall", "can", "need", "dare", "ought",
        "used", "it", "its", "this", "that", "these", "those", "i", "you", "he",
        "she", "we", "they", "what", "which", "who", "whom", "when", "where",
        "why", "how", "all", "each", "every", "both", "few", "more", "most",
        "other", "some", "such", "no", "nor", "not", "only", "own", "same", "so",
        "than", "too", "very", "just", "also", "now", "here", "there", "then",
        "once", "if", "because", "until", "while", "about", "into", "through",
        "during", "before", "after", "above", "below", "between", "under", "again",
        "further", "any", "our", "your", "their", "my", "his", "her", "up", "down",
        "out", "off", "over", "am", "being", "get", "got", "getting", "make",
        "made", "let", "us", "me", "him", "them", "myself", "yourself", "himself",
        "herself", "itself", "ourselves", "themselves", "much", "many", "like",
        "want", "please", "thanks", "thank", "hi", "hello", "hey",
    }
)

NON_TERM_RE = re.compile(r"[^a-z0-9\s]")


class TextRecord(Protocol):
    """Anything with a title and an optional longer description."""

    title: str
    description: Optional[str]


@dataclass(frozen=True)
class ScoredCandidate:
    item: Any
    score: float


def tokenize(text: str | None, stopwords: Collection[str] = STOPWORDS) -> list[str]:
    """Lowercase, strip punctuation and drop short words and stopwords, keeping source order."""
    if not text:
        return []

    cleaned = NON_TERM_RE.sub(" ", text.lower())
    return [word for word in cleaned.split() if len(word) > 1 and word not in stopwords]


def term_frequency(tokens: Iterable[str]) -> Counter[str]:
    return Counter(tokens)


def _squared_magnitude(vector: Mapping[str, int]) -> int:
    return sum(count * count for count in vector.values())


def cosine_similarity(left: Mapping[str, int], right: Mapping[str, int]) -> float:
    """Return the cosine of two term-frequency vectors, 0.0 when either is empty."""
    if not left or not right:
        return 0.0

    dot = sum(count * right.get(term, 0) for term, count in left.items())
    left_sq = _squared_magnitude(left)
    right_sq = _squared_magnitude(right)
    if left_sq == 0 or right_sq == 0:
        return 0.0
    # One sqrt over the integer product keeps equal vectors at exactly 1.0.
    return dot / math.sqrt(left_sq * right_sq)


def text_vector(text: str | None) -> Counter[str]:
    return term_frequency(tokenize(text))


def score_text(left: str | None, right: str | None) -> float:
    return cosine_similarity(text_vector(left), text_vector(right))


def record_field(record: Any, name: str) -> Any:
    """Read a field from a mapping or an attribute-style record; missing fields read as None."""
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


def comparable_text(record: TextRecord | Mapping[str, Any]) -> str:
    title = record_field(record, "title")
    description = record_field(record, "description")
    title = "" if title is None else str(title)
    if description is None or description == "":
        return title
    return f"{title} {description}"


def rank_candidates(
    query_text: str | None,
    candidates: Sequence[TextRecord | Mapping[str, Any]],
    min_score: float = 0.0,
) -> list[ScoredCandidate]:
    """Score every candidate against the query, highest first.

    Candidates scoring below ``min_score`` are dropped. Equal scores keep
    their input order. The full ranked list is returned; callers slice it
    for a top-k view.
    """
    query_vector = text_vector(query_text)

    scored = [
        ScoredCandidate(item=candidate, score=cosine_similarity(query_vector, text_vector(comparable_text(candidate))))
        for candidate in candidates
    ]
    kept = [candidate for candidate in scored if candidate.score >= min_score]
    # sorted() is stable, so ties stay in input order
    return sorted(kept, key=lambda candidate: candidate.score, reverse=True)
