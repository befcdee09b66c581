"""Find near-duplicate pairs within an issue catalog."""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
import json
import logging
from typing import Any, Sequence

from similarity import comparable_text, cosine_similarity, record_field, text_vector

logger = logging.getLogger(__name__)

LARGE_CORPUS_CUTOFF = 400
SIGNATURE_SIZE = 10
MIN_SHARED_TERMS = 2


@dataclass(frozen=True)
class SimilarityPair:
    record_a: Any
    record_b: Any
    score: float

    @property
    def id_a(self) -> Any:
        return record_field(self.record_a, "id")

    @property
    def id_b(self) -> Any:
        return record_field(self.record_b, "id")

    def as_dict(self) -> dict[str, object]:
        return {"id_a": self.id_a, "id_b": self.id_b, "score": self.score}


def signature_terms(vector: Counter[str], size: int = SIGNATURE_SIZE) -> set[str]:
    """Top ``size`` terms by count; equal counts keep first-occurrence order."""
    return {term for term, _ in vector.most_common(size)}


def exact_pairs(records: Sequence[Any], threshold: float) -> list[SimilarityPair]:
    vectors = [text_vector(comparable_text(record)) for record in records]
    pairs: list[SimilarityPair] = []

    for i in range(len(records)):
        for j in range(i + 1, len(records)):
            score = cosine_similarity(vectors[i], vectors[j])
            if score >= threshold:
                pairs.append(SimilarityPair(record_a=records[i], record_b=records[j], score=score))

    return pairs


def bucketed_pairs(
    records: Sequence[Any],
    threshold: float,
    signature_size: int = SIGNATURE_SIZE,
    min_shared_terms: int = MIN_SHARED_TERMS,
) -> list[SimilarityPair]:
    """Score only pairs whose signature sets overlap in ``min_shared_terms`` or more terms.

    This trades recall for speed on large catalogs: two records that are
    similar overall but share fewer than ``min_shared_terms`` of their top
    terms are never scored, so they are missed. Every pair that is returned
    carries its full cosine score, so nothing is returned that the exact
    comparison would reject.
    """
    vectors = [text_vector(comparable_text(record)) for record in records]
    signatures = [signature_terms(vector, signature_size) for vector in vectors]

    term_index: dict[str, set[int]] = defaultdict(set)
    for idx, signature in enumerate(signatures):
        for term in signature:
            term_index[term].add(idx)

    pairs: list[SimilarityPair] = []
    scored_count = 0
    for i, signature in enumerate(signatures):
        shared: Counter[int] = Counter()
        for term in signature:
            shared.update(j for j in term_index[term] if j > i)

        for j in sorted(shared):
            if shared[j] < min_shared_terms:
                continue
            scored_count += 1
            score = cosine_similarity(vectors[i], vectors[j])
            if score >= threshold:
                pairs.append(SimilarityPair(record_a=records[i], record_b=records[j], score=score))

    logger.debug(
        "Bucketed comparison scored %d candidate pairs across %d records (%d terms indexed)",
        scored_count,
        len(records),
        len(term_index),
    )
    return pairs


def find_similar_pairs(
    records: Sequence[Any],
    threshold: float,
    large_corpus_cutoff: int = LARGE_CORPUS_CUTOFF,
) -> tuple[list[SimilarityPair], bool]:
    """Return unsorted pairs at or above ``threshold`` and whether the approximate strategy ran."""
    approximation_mode = len(records) > large_corpus_cutoff
    if approximation_mode:
        logger.debug("Using bucketed comparison for %d records (cutoff %d)", len(records), large_corpus_cutoff)
        return bucketed_pairs(records, threshold), True

    logger.debug("Using exact comparison for %d records", len(records))
    return exact_pairs(records, threshold), False


def find_consolidation_pairs(
    records: Sequence[Any],
    threshold: float,
    large_corpus_cutoff: int = LARGE_CORPUS_CUTOFF,
) -> list[SimilarityPair]:
    pairs, _ = find_similar_pairs(records, threshold, large_corpus_cutoff)
    # Ties keep generation order: ascending (i, j) record index.
    return sorted(pairs, key=lambda pair: pair.score, reverse=True)


def main() -> None:
    import argparse

    parser = argparse.ArgumentParser(description="List near-duplicate issue pairs.")
    parser.add_argument("--issues", required=True, help="Path to JSON file containing a list of issues.")
    parser.add_argument("--threshold", type=float, default=0.5, help="Minimum similarity between 0 and 1.")
    parser.add_argument(
        "--cutoff",
        type=int,
        default=LARGE_CORPUS_CUTOFF,
        help="Catalog size above which the approximate comparison is used.",
    )
    args = parser.parse_args()

    if not 0 <= args.threshold <= 1:
        parser.error("--threshold must be between 0 and 1")

    with open(args.issues, "r", encoding="utf-8") as fh:
        payload = json.load(fh)

    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise ValueError("Issues JSON must be a list of objects")

    pairs = find_consolidation_pairs(payload, args.threshold, args.cutoff)
    print(json.dumps([pair.as_dict() for pair in pairs], indent=2))


if __name__ == "__main__":
    main()
