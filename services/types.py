"""Shared domain types for the session core."""
from __future__ import annotations

from typing import Annotated, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

Score = Annotated[int, Field(ge=0, le=100)]
ScoreBand = Literal["low", "mid", "high"]
ResizeAction = Literal["expand", "shrink", "reset"]


class PoolMetrics(BaseModel):
    active: int = Field(default=0, ge=0)
    available: int = Field(default=100, ge=0)
    total: int = Field(default=100, ge=0)
    avg_latency_ms: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _balanced(self) -> "PoolMetrics":
        if self.active + self.available != self.total:
            raise ValueError("active + available must equal total")
        return self


class ResizeOutcome(BaseModel):
    status: Literal["completed", "rejected"]
    action: str
    previous_metrics: PoolMetrics
    new_metrics: PoolMetrics
    reason: Optional[str] = None


class DetailedAnalysis(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    keyword_usage: Dict[str, int] = Field(default_factory=dict, alias="keywordUsage")
    sentiment: str = "neutral"
    complexity: str = "moderate"
    length: str = "appropriate"


class FeedbackRecord(BaseModel):
    session_id: str
    question_id: str
    overall_score: Score
    categories: Dict[str, Score] = Field(default_factory=dict)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    detailed_analysis: Optional[DetailedAnalysis] = None
    response_length: Optional[int] = Field(default=None, ge=0)
    timestamp: float = 0.0

    @property
    def doc_id(self) -> str:
        return f"{self.session_id}_{self.question_id}"


class SessionSummary(BaseModel):
    session_id: str
    average_score: int = 0
    strength_areas: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    feedback_processed: bool = False
    processed_at: Optional[str] = None


class GeneratedQuestion(BaseModel):
    text: str
    category: str = "general"
    difficulty: str = "medium"
    time_limit: int = 120
    follow_up_questions: List[str] = Field(default_factory=list)
    expected_keywords: List[str] = Field(default_factory=list)
    evaluation_criteria: List[str] = Field(default_factory=list)
    adaptive_reasoning: Optional[str] = None


__all__ = [
    "DetailedAnalysis",
    "FeedbackRecord",
    "GeneratedQuestion",
    "PoolMetrics",
    "ResizeAction",
    "ResizeOutcome",
    "Score",
    "ScoreBand",
    "SessionSummary",
]
