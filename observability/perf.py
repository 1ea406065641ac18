"""Persisted performance log rows and their retention cleanup."""
from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from storage.document_store import WriteOp
from storage.errors import StoreError
from storage.gateway import DocumentGateway

logger = logging.getLogger(__name__)

PERF_COLLECTION = "performance_logs"
DELETE_CHUNK = 500
SECONDS_PER_DAY = 86400


class PerformanceLog:
    def __init__(self, gateway: DocumentGateway, clock: Callable[[], float] = time.time) -> None:
        self._gateway = gateway
        self._clock = clock

    def record(self, operation: str, duration_ms: int, metadata: Optional[Dict[str, Any]] = None) -> Optional[str]:
        """Store one timing row; a store failure is logged and yields ``None``."""

        doc_id = uuid.uuid4().hex
        op = WriteOp(
            type="create",
            collection=PERF_COLLECTION,
            doc_id=doc_id,
            data={
                "operation": operation,
                "duration_ms": duration_ms,
                "metadata": metadata or {},
                "timestamp": self._clock(),
            },
        )
        try:
            self._gateway.batch_write([op])
        except StoreError as exc:
            logger.warning("performance log for %s not stored: %s", operation, exc)
            return None
        return doc_id

    def latest(self, limit: int = 20) -> List[Dict[str, Any]]:
        rows = self._gateway.query_all(PERF_COLLECTION, order_by=[("timestamp", "desc")])
        return rows[:limit]

    def cleanup(self, retention_days: int) -> int:
        """Delete rows older than ``retention_days``; returns the number removed."""

        cutoff = self._clock() - retention_days * SECONDS_PER_DAY
        stale = self._gateway.query_all(PERF_COLLECTION, filters=[("timestamp", "<", cutoff)])
        for start in range(0, len(stale), DELETE_CHUNK):
            chunk = stale[start : start + DELETE_CHUNK]
            self._gateway.batch_write(
                [WriteOp(type="delete", collection=PERF_COLLECTION, doc_id=doc["id"]) for doc in chunk]
            )
        return len(stale)


__all__ = ["PERF_COLLECTION", "PerformanceLog"]
