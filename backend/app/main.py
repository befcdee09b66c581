from __future__ import annotations

import logging

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from .config import CONSOLIDATION_THRESHOLD, LARGE_CORPUS_CUTOFF, LOG_LEVEL, SUGGESTION_LIMIT, SUGGESTION_MIN_SCORE
from .pipeline import build_consolidation_report, link_feedback, load_feedback_csv, load_issues_csv, suggest_issues
from .schemas import (
    ConsolidationRequest,
    ConsolidationResponse,
    IssueUploadResponse,
    LinkFeedbackResponse,
    SuggestionRequest,
    SuggestionResponse,
)

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Feedback Issue Matcher", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _require_csv(file: UploadFile) -> None:
    if not (file.filename or "").endswith(".csv"):
        raise HTTPException(status_code=400, detail="Please upload a CSV file")


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/issues/upload", response_model=IssueUploadResponse)
async def upload_issues(file: UploadFile = File(...)) -> IssueUploadResponse:
    _require_csv(file)

    content = await file.read()
    try:
        issues = load_issues_csv(content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=400, detail=f"Failed to parse CSV: {exc}") from exc

    return IssueUploadResponse(total_issues=len(issues), issues=issues)


@app.post("/suggestions", response_model=SuggestionResponse)
def suggestions(request: SuggestionRequest) -> SuggestionResponse:
    min_score = SUGGESTION_MIN_SCORE if request.min_score is None else request.min_score
    limit = SUGGESTION_LIMIT if request.limit is None else request.limit
    return SuggestionResponse(
        suggestions=suggest_issues(request.text, request.issues, min_score=min_score, limit=limit)
    )


@app.post("/feedback/link", response_model=LinkFeedbackResponse)
async def link(feedback: UploadFile = File(...), issues: UploadFile = File(...)) -> LinkFeedbackResponse:
    _require_csv(feedback)
    _require_csv(issues)

    feedback_content = await feedback.read()
    issues_content = await issues.read()
    try:
        feedback_df = load_feedback_csv(feedback_content)
        issue_list = load_issues_csv(issues_content)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        raise HTTPException(status_code=400, detail=f"Failed to parse CSV: {exc}") from exc

    if feedback_df.empty:
        raise HTTPException(status_code=400, detail="CSV does not contain usable feedback rows")

    return link_feedback(feedback_df, issue_list)


@app.get("/consolidation-opportunities")
def consolidation_usage() -> dict[str, str]:
    return {"message": "Use POST with { issues: [...] } body. Optional query param: ?threshold=0.5"}


@app.post("/consolidation-opportunities", response_model=ConsolidationResponse)
def consolidation_opportunities(
    request: ConsolidationRequest,
    threshold: str = Query(default=str(CONSOLIDATION_THRESHOLD)),
) -> ConsolidationResponse:
    try:
        value = float(threshold)
    except ValueError:
        value = float("nan")
    # NaN fails both comparisons
    if not 0 <= value <= 1:
        raise HTTPException(status_code=400, detail="Invalid threshold. Must be between 0 and 1.")

    try:
        return build_consolidation_report(request.issues, value, LARGE_CORPUS_CUTOFF)
    except Exception as exc:
        logger.exception("Consolidation analysis failed for %d issues", len(request.issues))
        raise HTTPException(status_code=500, detail="Internal server error") from exc
