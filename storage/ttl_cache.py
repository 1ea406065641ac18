"""In-process key/value cache with per-entry expiry."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at <= self.ttl


class TtlCache:
    """Thread-safe TTL cache with lazy eviction and an optional sweeper thread.

    Expired entries are dropped when looked up and by :meth:`sweep`, which the
    background sweeper calls every ``sweep_interval`` seconds so keys that are
    never read again do not accumulate. ``clock`` returns seconds and can be
    replaced in tests to make expiry deterministic.
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        *,
        sweep_interval: float = 600.0,
        clock: Optional[Clock] = None,
    ) -> None:
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            key=key,
            value=value,
            stored_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        with self._lock:
            self._entries[key] = entry

    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` when absent or expired."""

        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if not entry.is_valid(self._clock()):
                del self._entries[key]
                return default
            return entry.value

    def __contains__(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove every expired entry and return how many were evicted."""

        with self._lock:
            now = self._clock()
            expired = [key for key, entry in self._entries.items() if not entry.is_valid(now)]
            for key in expired:
                del self._entries[key]
        if expired:
            logger.debug("cache sweep evicted %d entries", len(expired))
        return len(expired)

    def start_sweeper(self) -> None:
        if self._sweeper is not None and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(target=self._sweep_loop, name="ttl-cache-sweeper", daemon=True)
        self._sweeper.start()

    def stop_sweeper(self) -> None:
        self._stop.set()
        if self._sweeper is not None:
            self._sweeper.join(timeout=1.0)
            self._sweeper = None

    def _sweep_loop(self) -> None:
        while not self._stop.wait(self.sweep_interval):
            self.sweep()


__all__ = ["CacheEntry", "TtlCache"]
