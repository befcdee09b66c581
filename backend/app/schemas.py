from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class Candidate(BaseModel):
    id: str | None = None
    title: str
    description: str | None = None
    status: str | None = None


class Issue(Candidate):
    id: str


class Suggestion(BaseModel):
    issue: Candidate
    score: float = Field(..., ge=0, le=1)


class SuggestionRequest(BaseModel):
    text: str = ""
    issues: list[Candidate] = Field(default_factory=list)
    min_score: float | None = None
    limit: int | None = Field(default=None, ge=1)


class SuggestionResponse(BaseModel):
    suggestions: list[Suggestion]


class FeedbackSuggestions(BaseModel):
    feedback: str
    suggestions: list[Suggestion]


class LinkFeedbackResponse(BaseModel):
    total_feedback_items: int = Field(..., ge=0)
    total_issues: int = Field(..., ge=0)
    results: list[FeedbackSuggestions]


class IssueUploadResponse(BaseModel):
    total_issues: int = Field(..., ge=0)
    issues: list[Issue]


class ConsolidationRequest(BaseModel):
    issues: list[Issue] = Field(default_factory=list)


class SimilarityPairOut(BaseModel):
    issue_a: Issue
    issue_b: Issue
    similarity: float = Field(..., ge=0, le=1)


class ConsolidationResponse(BaseModel):
    generated_at: datetime
    threshold: float
    total_issues: int = Field(..., ge=0)
    total_pairs_returned: int = Field(..., ge=0)
    approximation_mode: bool
    pairs: list[SimilarityPairOut]
