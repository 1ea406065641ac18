"""Pydantic schemas for the session core API."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from services.difficulty import DifficultySignal
from services.types import FeedbackRecord, GeneratedQuestion, PoolMetrics


class PoolActionReq(BaseModel):
    action: str
    count: Optional[int] = None


class CreateSessionReq(BaseModel):
    user_id: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SessionResp(BaseModel):
    session: Dict[str, Any]
    pool_metrics: PoolMetrics


class StartInterviewReq(BaseModel):
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    config: Dict[str, Any] = Field(default_factory=dict)


class GenerateFeedbackReq(BaseModel):
    session_id: str
    question_id: str
    response: str


class GenerateFeedbackResp(BaseModel):
    record: FeedbackRecord
    fallback_used: bool
    processing_ms: int


class QuestionResp(BaseModel):
    question: GeneratedQuestion
    adaptive: Optional[DifficultySignal] = None


class PageResp(BaseModel):
    documents: List[Dict[str, Any]] = Field(default_factory=list)
    last_cursor: Optional[str] = None
    has_more: bool = False
