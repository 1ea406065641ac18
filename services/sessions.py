"""Helpers for creating, ending and listing interview sessions."""
from __future__ import annotations

import datetime as dt
import time
import uuid
from typing import Any, Dict, Optional

from observability.tracing import timed
from storage.document_store import WriteOp
from storage.errors import RejectedWriteError
from storage.gateway import QueryPage

from .feedback import SESSIONS_COLLECTION as INTERVIEW_SESSIONS_COLLECTION
from .runtime import Runtime

SESSIONS_COLLECTION = "sessions"


class SessionNotFound(KeyError):
    """Raised when a session id does not name an active session."""


def create_session(
    runtime: Runtime,
    user_id: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
) -> Optional[Dict[str, Any]]:
    """Claim a pool slot and persist a new active session.

    Returns ``None`` when the pool is exhausted. The slot is handed back if
    the session document cannot be written.
    """

    if not runtime.pool.acquire():
        return None

    metadata = metadata or {}
    session_id = str(uuid.uuid4())
    session = {
        "id": session_id,
        "user_id": user_id or "anonymous",
        "status": "active",
        "created_at": dt.datetime.now(dt.timezone.utc).isoformat(),
        "last_activity": time.time(),
        "metadata": {
            "user_agent": metadata.get("user_agent", "Unknown"),
            "ip": metadata.get("ip", "Unknown"),
            "device_type": metadata.get("device_type", "desktop"),
        },
    }
    try:
        with timed("create_session", session_id):
            runtime.gateway.batch_write(
                [WriteOp(type="create", collection=SESSIONS_COLLECTION, doc_id=session_id, data=session)]
            )
    except Exception:
        runtime.pool.release()
        raise
    return session


def terminate_session(runtime: Runtime, session_id: str) -> Dict[str, Any]:
    """Mark an active session ended and release its pool slot."""

    doc = runtime.gateway.get(SESSIONS_COLLECTION, session_id)
    if doc is None or doc.get("status") != "active":
        raise SessionNotFound(session_id)
    end = WriteOp(
        type="update",
        collection=SESSIONS_COLLECTION,
        doc_id=session_id,
        data={"status": "ended", "last_activity": time.time()},
        expect={"status": "active"},
    )
    # Rejected if another caller ended the session first.
    try:
        with timed("terminate_session", session_id):
            runtime.gateway.batch_write([end])
    except RejectedWriteError as exc:
        raise SessionNotFound(session_id) from exc
    runtime.pool.release()
    return {**doc, "status": "ended"}


def start_interview(
    runtime: Runtime,
    session_id: str,
    user_id: Optional[str] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Open the interview document that feedback summaries are merged into."""

    config = config or {}
    interview = {
        "session_id": session_id,
        "user_id": user_id or "anonymous",
        "status": "active",
        "start_time": time.time(),
        "config": {
            "job_role": config.get("job_role", "Software Engineer"),
            "experience": config.get("experience", "mid"),
            "difficulty": config.get("difficulty", "medium"),
            "category": config.get("category", "technical"),
        },
    }
    runtime.gateway.batch_write(
        [
            WriteOp(
                type="set",
                collection=INTERVIEW_SESSIONS_COLLECTION,
                doc_id=session_id,
                data=interview,
                merge=True,
            )
        ]
    )
    return {"id": session_id, **interview}


def active_sessions(runtime: Runtime, user_id: Optional[str] = None) -> QueryPage:
    cfg = runtime.settings
    filters = [("status", "==", "active")]
    if user_id:
        filters.insert(0, ("user_id", "==", user_id))
    return runtime.gateway.query_cached(
        SESSIONS_COLLECTION,
        filters,
        cache_key=f"active_sessions:{user_id or 'all'}:{cfg.ACTIVE_SESSIONS_LIMIT}",
        ttl=cfg.ACTIVE_SESSIONS_TTL_S,
        page_size=cfg.ACTIVE_SESSIONS_LIMIT,
        order_by=[("last_activity", "desc")],
    )


def interview_history(runtime: Runtime, user_id: str, cursor: Optional[str] = None) -> QueryPage:
    cfg = runtime.settings
    return runtime.gateway.query_cached(
        INTERVIEW_SESSIONS_COLLECTION,
        [("user_id", "==", user_id)],
        cache_key=f"interview_history:{user_id}:{cfg.HISTORY_PAGE_SIZE}",
        ttl=cfg.HISTORY_TTL_S,
        page_size=cfg.HISTORY_PAGE_SIZE,
        cursor=cursor,
        order_by=[("start_time", "desc")],
    )


__all__ = [
    "SESSIONS_COLLECTION",
    "SessionNotFound",
    "active_sessions",
    "create_session",
    "interview_history",
    "start_interview",
    "terminate_session",
]
