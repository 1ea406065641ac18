"""Feedback recording, generation and session-level aggregation."""
from __future__ import annotations

import datetime as dt
import logging
import time
import uuid
from collections import Counter
from textwrap import dedent
from typing import Dict, Iterable, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field

from llm_gateway import parse_or_fallback
from observability.tracing import timed
from storage.document_store import WriteOp, lookup
from storage.errors import RejectedWriteError

from .runtime import Runtime
from .scoring import mean, round_half_up, score_band
from .types import DetailedAnalysis, FeedbackRecord, Score, ScoreBand, SessionSummary

logger = logging.getLogger(__name__)

FEEDBACK_COLLECTION = "feedback"
SESSIONS_COLLECTION = "interview_sessions"
SUMMARY_WRITE_ATTEMPTS = 3

BAND_RECOMMENDATIONS: Dict[ScoreBand, tuple[str, str]] = {
    "low": (
        "Focus on fundamental concepts and build confidence with basic questions",
        "Practice structuring responses with clear introduction and conclusion",
    ),
    "mid": (
        "Work on providing more specific examples and details",
        "Practice advanced problem-solving scenarios",
    ),
    "high": (
        "Focus on advanced topics and industry-specific knowledge",
        "Work on leadership and strategic thinking examples",
    ),
}

AREA_RECOMMENDATIONS: Dict[str, str] = {
    "communication": "Practice active listening and clear articulation of thoughts",
    "confidence": "Use power posing and breathing techniques to boost confidence",
    "structure": "Use the STAR method (Situation, Task, Action, Result) for behavioral questions",
    "technical": "Review core technical concepts and practice coding challenges",
    "content": "Research the company and role to provide more relevant answers",
    "delivery": "Record yourself practicing to identify and eliminate filler words",
}


def normalize_tag(tag: str) -> str:
    return tag.strip().lower()


def rank_tags(tags: Iterable[str], limit: int = 3) -> List[str]:
    """Most frequent normalized tags, ties kept in first-occurrence order."""

    counts = Counter(normalized for normalized in map(normalize_tag, tags) if normalized)
    # Counter preserves first-insertion order and sorted() is stable.
    ranked = sorted(counts.items(), key=lambda item: -item[1])
    return [tag for tag, _ in ranked[:limit]]


def build_recommendations(improvement_areas: Sequence[str], average_score: float, limit: int = 5) -> List[str]:
    recommendations = list(BAND_RECOMMENDATIONS[score_band(average_score)])
    for area in improvement_areas:
        mapped = AREA_RECOMMENDATIONS.get(normalize_tag(area))
        if mapped and mapped not in recommendations:
            recommendations.append(mapped)
    return recommendations[:limit]


def aggregate(
    session_id: str,
    records: Sequence[FeedbackRecord],
    *,
    top_n: int = 3,
    max_recommendations: int = 5,
    processed_at: Optional[str] = None,
) -> SessionSummary:
    """Reduce a session's feedback records to a :class:`SessionSummary`.

    An empty sequence yields a zeroed summary rather than an error.
    """

    if not records:
        return SessionSummary(session_id=session_id, feedback_processed=True, processed_at=processed_at)

    average = round_half_up(mean(record.overall_score for record in records))
    strengths = rank_tags((tag for record in records for tag in record.strengths), top_n)
    improvements = rank_tags((tag for record in records for tag in record.improvements), top_n)
    return SessionSummary(
        session_id=session_id,
        average_score=average,
        strength_areas=strengths,
        improvement_areas=improvements,
        recommendations=build_recommendations(improvements, average, max_recommendations),
        feedback_processed=True,
        processed_at=processed_at,
    )


def load_records(runtime: Runtime, session_id: str) -> List[FeedbackRecord]:
    docs = runtime.gateway.query_all(
        FEEDBACK_COLLECTION,
        filters=[("session_id", "==", session_id)],
        order_by=[("timestamp", "asc")],
    )
    return [FeedbackRecord.model_validate(doc) for doc in docs]


def record_feedback(runtime: Runtime, records: Sequence[FeedbackRecord]) -> None:
    """Write feedback records atomically and flag their sessions' summaries as stale.

    Records are immutable: writing an existing ``(session_id, question_id)``
    rejects the whole batch. Only session documents that already exist are
    touched; each gets a fresh ``summary.revision`` so an aggregation that
    read an older revision cannot mark the summary processed.
    """

    if not records:
        return
    ops = [
        WriteOp(
            type="create",
            collection=FEEDBACK_COLLECTION,
            doc_id=record.doc_id,
            data=record.model_dump(),
        )
        for record in records
    ]
    stamp = _utcnow().isoformat()
    with timed("record_feedback", records[0].session_id, count=len(records)):
        for session_id in dict.fromkeys(record.session_id for record in records):
            if runtime.gateway.get(SESSIONS_COLLECTION, session_id) is None:
                continue
            ops.append(
                WriteOp(
                    type="update",
                    collection=SESSIONS_COLLECTION,
                    doc_id=session_id,
                    data={
                        "summary.feedback_processed": False,
                        "summary.last_updated": stamp,
                        "summary.revision": uuid.uuid4().hex,
                    },
                )
            )
        runtime.gateway.batch_write(ops)


def summarize_session(runtime: Runtime, session_id: str, now: Optional[dt.datetime] = None) -> SessionSummary:
    """Aggregate all feedback for ``session_id`` and merge the summary into its session document.

    The write only applies if no feedback arrived since the records were
    loaded; otherwise aggregation is retried. Summaries of sessions without a
    document, or without feedback, are returned but not stored.
    """

    cfg = runtime.settings
    try:
        with timed("batch_feedback", session_id) as span:
            for _ in range(SUMMARY_WRITE_ATTEMPTS):
                doc = runtime.gateway.get(SESSIONS_COLLECTION, session_id)
                records = load_records(runtime, session_id)
                summary = aggregate(
                    session_id,
                    records,
                    top_n=cfg.TOP_AREAS,
                    max_recommendations=cfg.MAX_RECOMMENDATIONS,
                    processed_at=(now or _utcnow()).isoformat(),
                )
                if doc is None or not records:
                    break
                if _store_summary(runtime, summary, lookup(doc, "summary.revision")):
                    break
            else:
                # Feedback kept arriving; the stored summary stays flagged stale.
                summary = summary.model_copy(update={"feedback_processed": False})
    except Exception as exc:
        runtime.perf.record("batch_feedback_error", span.get("ms", 0), {"session_id": session_id, "error": str(exc)})
        raise
    runtime.perf.record("batch_feedback", span["ms"], {"session_id": session_id, "response_count": len(records)})
    return summary


def _store_summary(runtime: Runtime, summary: SessionSummary, revision: Optional[str]) -> bool:
    op = WriteOp(
        type="set",
        collection=SESSIONS_COLLECTION,
        doc_id=summary.session_id,
        data={"summary": summary.model_dump(exclude={"session_id"})},
        merge=True,
        expect={"summary.revision": revision},
    )
    try:
        runtime.gateway.batch_write([op])
    except RejectedWriteError:
        logger.info("summary for %s superseded by newer feedback; recomputing", summary.session_id)
        return False
    return True


def session_summary(runtime: Runtime, session_id: str) -> SessionSummary:
    """Return the stored summary, computing it first when missing or stale."""

    doc = runtime.gateway.get(SESSIONS_COLLECTION, session_id)
    stored = (doc or {}).get("summary") or {}
    if stored.get("feedback_processed"):
        return SessionSummary.model_validate({**stored, "session_id": session_id})
    return summarize_session(runtime, session_id)


class Evaluation(BaseModel):
    """Evaluation object as returned by the text-generation model."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    overall_score: Score = Field(alias="overallScore")
    categories: Dict[str, Score] = Field(default_factory=dict)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)
    detailed_analysis: Optional[DetailedAnalysis] = Field(default=None, alias="detailedAnalysis")


def fallback_evaluation(_: str = "") -> Evaluation:
    return Evaluation(
        overall_score=75,
        categories={"content": 75, "delivery": 75, "structure": 75, "confidence": 75},
        strengths=["Good response structure"],
        improvements=["Could be more detailed"],
        detailed_analysis=DetailedAnalysis(),
    )


def feedback_prompt(response_text: str) -> str:
    return dedent(
        f"""\
        Analyze this interview response and provide feedback.

        Response: "{response_text}"

        Reply with one JSON object:
        {{"overallScore": 0-100,
          "categories": {{"content": 0-100, "delivery": 0-100, "structure": 0-100, "confidence": 0-100}},
          "strengths": ["..."], "improvements": ["..."],
          "detailedAnalysis": {{"keywordUsage": {{"keyword": 0}}, "sentiment": "positive|neutral|negative",
                               "complexity": "simple|moderate|complex", "length": "too_short|appropriate|too_long"}}}}
        """
    )


def generate_feedback(
    runtime: Runtime,
    session_id: str,
    question_id: str,
    response_text: str,
) -> tuple[FeedbackRecord, bool]:
    """Evaluate one response with the text generator and record the result.

    Returns the stored record and whether the fallback evaluation was used.
    """

    generate = runtime.text_generator()
    try:
        with timed("generate_feedback", session_id, question_id=question_id) as span:
            text = generate(feedback_prompt(response_text), temperature=0.3, max_tokens=800)
            evaluation, used_fallback = parse_or_fallback(
                text, Evaluation, fallback_evaluation, context=f"feedback:{session_id}_{question_id}"
            )
            record = FeedbackRecord(
                session_id=session_id,
                question_id=question_id,
                overall_score=evaluation.overall_score,
                categories=evaluation.categories,
                strengths=evaluation.strengths,
                improvements=evaluation.improvements,
                detailed_analysis=evaluation.detailed_analysis,
                response_length=len(response_text),
                timestamp=time.time(),
            )
            record_feedback(runtime, [record])
    except Exception as exc:
        runtime.perf.record("generate_feedback_error", span.get("ms", 0), {"error": str(exc)})
        raise
    runtime.perf.record(
        "generate_feedback", span["ms"], {"session_id": session_id, "question_id": question_id}
    )
    return record, used_fallback


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


__all__ = [
    "AREA_RECOMMENDATIONS",
    "BAND_RECOMMENDATIONS",
    "Evaluation",
    "aggregate",
    "build_recommendations",
    "fallback_evaluation",
    "generate_feedback",
    "load_records",
    "normalize_tag",
    "rank_tags",
    "record_feedback",
    "session_summary",
    "summarize_session",
]
