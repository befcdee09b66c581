from __future__ import annotations

from datetime import datetime, timezone
from io import BytesIO
import re

import pandas as pd

from consolidation import find_similar_pairs
from similarity import rank_candidates

from .config import LARGE_CORPUS_CUTOFF, SUGGESTION_LIMIT, SUGGESTION_MIN_SCORE
from .schemas import (
    Candidate,
    ConsolidationResponse,
    FeedbackSuggestions,
    Issue,
    LinkFeedbackResponse,
    SimilarityPairOut,
    Suggestion,
)

REQUIRED_COLUMNS = {"feedback"}
ISSUE_ID_RE = re.compile(r"^[A-Z]+-\d+$", re.IGNORECASE)

# Positional layout of the tracker's CSV export, used when headers are unnamed.
ISSUE_COLUMN_POSITIONS = {"id": 0, "title": 2, "description": 3, "status": 4}


def load_feedback_csv(file_bytes: bytes) -> pd.DataFrame:
    df = pd.read_csv(BytesIO(file_bytes))
    missing = REQUIRED_COLUMNS - set(df.columns)
    if missing:
        raise ValueError(f"Missing required columns: {', '.join(sorted(missing))}")
    df = df.dropna(subset=["feedback"]).copy()
    df["feedback"] = df["feedback"].astype(str).str.strip()
    df = df[df["feedback"] != ""]
    return df.reset_index(drop=True)


def _locate_issue_columns(columns: list[str]) -> dict[str, str]:
    by_name = {str(column).strip().lower(): column for column in columns}
    located = {field: by_name[field] for field in ISSUE_COLUMN_POSITIONS if field in by_name}
    if "id" in located and "title" in located:
        return located

    located = {
        field: columns[position]
        for field, position in ISSUE_COLUMN_POSITIONS.items()
        if position < len(columns)
    }
    if "id" not in located or "title" not in located:
        raise ValueError("CSV does not look like an issue export: missing ID and Title columns")
    return located


def _cell(row: pd.Series, column: str | None) -> str:
    if column is None or pd.isna(row[column]):
        return ""
    return str(row[column]).strip()


def load_issues_csv(file_bytes: bytes) -> list[Issue]:
    """Parse an issue-tracker CSV export.

    Rows whose ID does not look like ``ENG-123`` but which carry a
    description are folded into the previous issue's description; any
    other malformed row, including an issue ID without a title, is
    skipped. Rows wider than the header are cut to the header width.
    """
    width = len(pd.read_csv(BytesIO(file_bytes), nrows=0).columns)
    # Rows with stray unquoted commas keep their first `width` fields.
    df = pd.read_csv(
        BytesIO(file_bytes),
        dtype=str,
        keep_default_na=False,
        engine="python",
        on_bad_lines=lambda fields: fields[:width],
    )
    columns = _locate_issue_columns(list(df.columns))

    issues: list[dict[str, str | None]] = []
    pending: dict[str, str | None] | None = None
    for _, row in df.iterrows():
        issue_id = _cell(row, columns.get("id"))
        title = _cell(row, columns.get("title"))
        description = _cell(row, columns.get("description"))

        if ISSUE_ID_RE.match(issue_id) and title:
            if pending is not None:
                issues.append(pending)
            pending = {
                "id": issue_id,
                "title": title,
                "description": description or None,
                "status": _cell(row, columns.get("status")) or None,
            }
        elif pending is not None and description and not ISSUE_ID_RE.match(issue_id):
            previous = pending["description"]
            pending["description"] = f"{previous}\n{description}" if previous else description

    if pending is not None:
        issues.append(pending)

    return [Issue(**issue) for issue in issues]


def suggest_issues(
    text: str,
    issues: list[Candidate],
    min_score: float = SUGGESTION_MIN_SCORE,
    limit: int = SUGGESTION_LIMIT,
) -> list[Suggestion]:
    ranked = rank_candidates(text, issues, min_score=min_score)
    return [Suggestion(issue=candidate.item, score=candidate.score) for candidate in ranked[:limit]]


def link_feedback(
    feedback_df: pd.DataFrame,
    issues: list[Issue],
    min_score: float = SUGGESTION_MIN_SCORE,
    limit: int = SUGGESTION_LIMIT,
) -> LinkFeedbackResponse:
    results = [
        FeedbackSuggestions(
            feedback=text,
            suggestions=suggest_issues(text, issues, min_score=min_score, limit=limit),
        )
        for text in feedback_df["feedback"].tolist()
    ]
    return LinkFeedbackResponse(
        total_feedback_items=len(feedback_df),
        total_issues=len(issues),
        results=results,
    )


def build_consolidation_report(
    issues: list[Issue],
    threshold: float,
    large_corpus_cutoff: int = LARGE_CORPUS_CUTOFF,
) -> ConsolidationResponse:
    pairs, approximation_mode = find_similar_pairs(issues, threshold, large_corpus_cutoff)
    pairs = sorted(pairs, key=lambda pair: pair.score, reverse=True)

    return ConsolidationResponse(
        generated_at=datetime.now(timezone.utc),
        threshold=threshold,
        total_issues=len(issues),
        total_pairs_returned=len(pairs),
        approximation_mode=approximation_mode,
        pairs=[
            SimilarityPairOut(issue_a=pair.record_a, issue_b=pair.record_b, similarity=pair.score)
            for pair in pairs
        ],
    )
