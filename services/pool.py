"""Capacity accounting for concurrent interview sessions."""
from __future__ import annotations

import logging
import threading
from typing import Optional

from config.settings import Settings, settings as default_settings
from observability.logger import log_event
from storage.document_store import WriteOp
from storage.errors import StoreError
from storage.gateway import DocumentGateway

from .scoring import round_half_up
from .types import PoolMetrics, ResizeOutcome

logger = logging.getLogger(__name__)

POOL_COLLECTION = "system_metrics"
POOL_DOC_ID = "connection_pool"


class ResourcePoolTracker:
    """Owns the process-wide :class:`PoolMetrics` and serialises every mutation.

    Each mutation runs under one lock and is written through to the gateway
    before the lock is released. If the write fails the in-memory metrics are
    restored to their previous value and the store error propagates, except
    for :meth:`release`, which always frees the slot.
    """

    def __init__(self, gateway: DocumentGateway, cfg: Optional[Settings] = None) -> None:
        self._gateway = gateway
        self._cfg = cfg or default_settings
        self._lock = threading.Lock()
        self._metrics = self._defaults()
        self._latency_samples = 0

    def _defaults(self) -> PoolMetrics:
        total = self._cfg.POOL_DEFAULT_TOTAL
        return PoolMetrics(active=0, available=total, total=total, avg_latency_ms=0)

    def snapshot(self) -> PoolMetrics:
        with self._lock:
            return self._metrics.model_copy()

    def acquire(self) -> bool:
        """Claim one slot; ``False`` means the pool is exhausted."""

        with self._lock:
            current = self._metrics
            if current.available == 0:
                log_event("pool", "-", action="acquire", outcome="exhausted", total=current.total)
                return False
            self._commit(
                current.model_copy(update={"active": current.active + 1, "available": current.available - 1})
            )
            return True

    def release(self) -> PoolMetrics:
        """Return one slot.

        The slot is freed in memory even if persisting fails; the next
        successful write-through carries the corrected counts to the store.
        """

        with self._lock:
            current = self._metrics
            active = max(current.active - 1, 0)
            self._metrics = current.model_copy(update={"active": active, "available": current.total - active})
            try:
                self._persist(self._metrics)
            except StoreError as exc:
                log_event(
                    "pool",
                    "-",
                    level=logging.WARNING,
                    action="release",
                    outcome="persist_failed",
                    error=type(exc).__name__,
                )
            return self._metrics.model_copy()

    def resize(self, action: str, count: Optional[int] = None) -> ResizeOutcome:
        """Apply an administrative ``expand``/``shrink``/``reset``.

        Invalid actions and shrinks that would leave ``total < active`` are
        rejected with the metrics untouched.
        """

        step = self._cfg.POOL_RESIZE_STEP if count is None else count
        with self._lock:
            previous = self._metrics.model_copy()
            if step < 0:
                return self._rejected(action, previous, "count must be non-negative")

            if action == "expand":
                total = min(previous.total + step, self._cfg.POOL_MAX_TOTAL)
                updated = previous.model_copy(update={"total": total, "available": total - previous.active})
            elif action == "shrink":
                if previous.total - step < previous.active:
                    return self._rejected(
                        action,
                        previous,
                        f"shrinking by {step} would leave total below {previous.active} active sessions",
                    )
                total = max(previous.total - step, self._cfg.POOL_MIN_TOTAL)
                updated = previous.model_copy(update={"total": total, "available": total - previous.active})
            elif action == "reset":
                updated = self._defaults()
            else:
                return self._rejected(action, previous, f"invalid action: {action}")

            self._commit(updated)
            if action == "reset":
                self._latency_samples = 0
            log_event("pool", "-", action=action, outcome="completed", total=updated.total)
            return ResizeOutcome(
                status="completed",
                action=action,
                previous_metrics=previous,
                new_metrics=self._metrics.model_copy(),
            )

    def observe_latency(self, latency_ms: float) -> PoolMetrics:
        """Fold one latency sample into the running average."""

        with self._lock:
            current = self._metrics
            samples = self._latency_samples + 1
            avg = current.avg_latency_ms + (max(latency_ms, 0) - current.avg_latency_ms) / samples
            self._commit(current.model_copy(update={"avg_latency_ms": round_half_up(avg)}))
            self._latency_samples = samples
            return self._metrics.model_copy()

    def restore(self) -> PoolMetrics:
        """Adopt the persisted metrics if they are consistent with the configured bounds."""

        doc = self._gateway.get(POOL_COLLECTION, POOL_DOC_ID)
        with self._lock:
            if doc is None:
                return self._metrics.model_copy()
            try:
                persisted = PoolMetrics.model_validate(
                    {key: doc[key] for key in ("active", "available", "total", "avg_latency_ms") if key in doc}
                )
            except ValueError as exc:
                logger.warning("ignoring persisted pool metrics: %s", exc)
                return self._metrics.model_copy()
            if not self._cfg.POOL_MIN_TOTAL <= persisted.total <= self._cfg.POOL_MAX_TOTAL:
                logger.warning("ignoring persisted pool total %d outside bounds", persisted.total)
                return self._metrics.model_copy()
            self._metrics = persisted
            return persisted.model_copy()

    def persisted(self) -> Optional[dict]:
        """Read the persisted copy through the short-lived metrics cache."""
        return self._gateway.get_cached(POOL_COLLECTION, POOL_DOC_ID, ttl=self._cfg.POOL_METRICS_TTL_S)

    def _rejected(self, action: str, previous: PoolMetrics, reason: str) -> ResizeOutcome:
        log_event("pool", "-", action=action, outcome="rejected")
        logger.info("pool resize rejected action=%s reason=%s", action, reason)
        return ResizeOutcome(
            status="rejected",
            action=action,
            previous_metrics=previous,
            new_metrics=previous,
            reason=reason,
        )

    def _commit(self, updated: PoolMetrics) -> None:
        # Caller holds the lock.
        previous = self._metrics
        self._metrics = updated
        try:
            self._persist(updated)
        except Exception:
            self._metrics = previous
            raise

    def _persist(self, metrics: PoolMetrics) -> None:
        payload = metrics.model_dump()
        self._gateway.batch_write(
            [WriteOp(type="set", collection=POOL_COLLECTION, doc_id=POOL_DOC_ID, data=payload, merge=True)]
        )
        self._gateway.prime(
            POOL_COLLECTION,
            POOL_DOC_ID,
            {"id": POOL_DOC_ID, **payload},
            ttl=self._cfg.POOL_METRICS_TTL_S,
        )


__all__ = ["POOL_COLLECTION", "POOL_DOC_ID", "ResourcePoolTracker"]
