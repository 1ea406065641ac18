"""FastAPI routes for pool administration, sessions, feedback and questions."""
from __future__ import annotations

import time
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, HTTPException

from api.schemas import (
    CreateSessionReq,
    GenerateFeedbackReq,
    GenerateFeedbackResp,
    PageResp,
    PoolActionReq,
    QuestionResp,
    SessionResp,
    StartInterviewReq,
)
from llm_gateway import LlmGatewayError
from services import feedback as feedback_service
from services import sessions as session_service
from services.questions import QuestionRequest, generate_question
from services.runtime import get_runtime
from services.types import FeedbackRecord, PoolMetrics, ResizeOutcome, SessionSummary
from storage.errors import RejectedWriteError, TransientStoreError


router = APIRouter(prefix="/api")


@contextmanager
def _store_errors() -> Iterator[None]:
    try:
        yield
    except RejectedWriteError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except TransientStoreError as exc:
        raise HTTPException(
            status_code=503,
            detail={"error": str(exc), "operation": exc.operation, "duration_ms": exc.duration_ms},
        ) from exc
    except LlmGatewayError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc


@router.get("/sessions/pool-status", response_model=PoolMetrics)
def pool_status() -> PoolMetrics:
    return get_runtime().pool.snapshot()


@router.post("/sessions/pool-status", response_model=ResizeOutcome)
def manage_pool(req: PoolActionReq) -> ResizeOutcome:
    with _store_errors():
        outcome = get_runtime().pool.resize(req.action, req.count)
    if outcome.status == "rejected":
        raise HTTPException(status_code=400, detail=outcome.model_dump())
    return outcome


@router.post("/sessions", response_model=SessionResp)
def create_session(req: CreateSessionReq) -> SessionResp:
    runtime = get_runtime()
    start = time.perf_counter()
    with _store_errors():
        session = session_service.create_session(runtime, req.user_id, req.metadata)
    if session is None:
        raise HTTPException(status_code=503, detail="session pool exhausted")
    metrics = runtime.pool.observe_latency((time.perf_counter() - start) * 1000)
    return SessionResp(session=session, pool_metrics=metrics)


@router.delete("/sessions/{session_id}", response_model=SessionResp)
def terminate_session(session_id: str) -> SessionResp:
    runtime = get_runtime()
    try:
        with _store_errors():
            session = session_service.terminate_session(runtime, session_id)
    except session_service.SessionNotFound:
        raise HTTPException(status_code=404, detail="session not found")
    return SessionResp(session=session, pool_metrics=runtime.pool.snapshot())


@router.get("/sessions/active", response_model=PageResp)
def active_sessions(user_id: Optional[str] = None) -> PageResp:
    with _store_errors():
        page = session_service.active_sessions(get_runtime(), user_id)
    return PageResp(**page.model_dump())


@router.post("/interviews/start")
def start_interview(req: StartInterviewReq) -> dict:
    with _store_errors():
        return session_service.start_interview(
            get_runtime(), req.session_id or str(uuid.uuid4()), req.user_id, req.config
        )


@router.get("/interviews/history", response_model=PageResp)
def interview_history(user_id: str, cursor: Optional[str] = None) -> PageResp:
    with _store_errors():
        page = session_service.interview_history(get_runtime(), user_id, cursor)
    return PageResp(**page.model_dump())


@router.post("/feedback", response_model=FeedbackRecord)
def submit_feedback(record: FeedbackRecord) -> FeedbackRecord:
    if not record.timestamp:
        record = record.model_copy(update={"timestamp": time.time()})
    with _store_errors():
        feedback_service.record_feedback(get_runtime(), [record])
    return record


@router.post("/feedback/generate", response_model=GenerateFeedbackResp)
def generate_feedback(req: GenerateFeedbackReq) -> GenerateFeedbackResp:
    start = time.perf_counter()
    with _store_errors():
        record, fallback_used = feedback_service.generate_feedback(
            get_runtime(), req.session_id, req.question_id, req.response
        )
    return GenerateFeedbackResp(
        record=record,
        fallback_used=fallback_used,
        processing_ms=int((time.perf_counter() - start) * 1000),
    )


@router.post("/feedback/batch/{session_id}", response_model=SessionSummary)
def batch_feedback(session_id: str) -> SessionSummary:
    with _store_errors():
        return feedback_service.summarize_session(get_runtime(), session_id)


@router.get("/sessions/{session_id}/summary", response_model=SessionSummary)
def session_summary(session_id: str) -> SessionSummary:
    with _store_errors():
        return feedback_service.session_summary(get_runtime(), session_id)


@router.post("/questions/generate", response_model=QuestionResp)
def next_question(req: QuestionRequest) -> QuestionResp:
    with _store_errors():
        question, signal = generate_question(get_runtime(), req)
    return QuestionResp(question=question, adaptive=signal)
