"""Error taxonomy for document store access."""
from __future__ import annotations


class StoreError(RuntimeError):
    """Base failure talking to the document store.

    ``operation`` is the tag of the call that failed and ``duration_ms`` how
    long it ran before failing, so callers can correlate failures in metrics.
    """

    def __init__(self, message: str, *, operation: str = "", duration_ms: int = 0) -> None:
        super().__init__(message)
        self.operation = operation
        self.duration_ms = duration_ms

    def tagged(self, operation: str, duration_ms: int) -> "StoreError":
        self.operation = operation
        self.duration_ms = duration_ms
        return self


class TransientStoreError(StoreError):
    """Timeout, lock contention or I/O failure; safe to retry."""


class RejectedWriteError(StoreError):
    """Write refused by the store; nothing from the batch was applied."""


__all__ = ["StoreError", "TransientStoreError", "RejectedWriteError"]
