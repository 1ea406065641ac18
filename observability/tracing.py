"""Operation timing helper."""
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator

from .logger import log_event


@contextmanager
def timed(operation: str, session_id: str = "-", **fields: Any) -> Iterator[Dict[str, Any]]:
    """Time the block and log its outcome tagged with ``operation``.

    The yielded dict is filled with ``ms`` once the block exits. Exceptions
    are logged with their type and re-raised unchanged.
    """

    result: Dict[str, Any] = {"operation": operation}
    start = time.perf_counter()
    try:
        yield result
    except Exception as exc:
        result["ms"] = int((time.perf_counter() - start) * 1000)
        log_event(
            "operation",
            session_id,
            level=logging.WARNING,
            operation=operation,
            outcome="error",
            ms=result["ms"],
            error=type(exc).__name__,
            **fields,
        )
        raise
    result["ms"] = int((time.perf_counter() - start) * 1000)
    log_event("operation", session_id, operation=operation, outcome="ok", ms=result["ms"], **fields)


__all__ = ["timed"]
