"""Read-through cached access and batched writes over a document store."""
from __future__ import annotations

import copy
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

from pydantic import BaseModel, Field

from .document_store import DocumentStore, Filter, OrderBy, WriteOp
from .errors import StoreError, TransientStoreError
from .ttl_cache import TtlCache

logger = logging.getLogger(__name__)

T = TypeVar("T")


class QueryPage(BaseModel):
    """One page of query results.

    ``has_more`` is ``len(documents) == page_size``: an exactly-full last page
    still reports more, and the following page comes back empty.
    """

    documents: List[Dict[str, Any]] = Field(default_factory=list)
    last_cursor: Optional[str] = None
    has_more: bool = False


class DocumentGateway:
    """Sole path from the core to persistent state.

    Reads go through the TTL cache under ``collection:id`` keys. Writes never
    invalidate cached reads, so a read after a write may be stale for up to
    the entry's TTL; callers needing fresh data use :meth:`get` or
    :meth:`query_all`. Cached values are copied in and out, so callers may
    mutate what they receive.
    """

    def __init__(self, store: DocumentStore, cache: TtlCache) -> None:
        self.store = store
        self.cache = cache

    @staticmethod
    def doc_key(collection: str, doc_id: str) -> str:
        return f"{collection}:{doc_id}"

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self._call("get", lambda: self.store.get(collection, doc_id))

    def get_cached(self, collection: str, doc_id: str, ttl: Optional[float] = None) -> Optional[Dict[str, Any]]:
        key = self.doc_key(collection, doc_id)
        cached = self.cache.get(key)
        if cached is not None:
            return copy.deepcopy(cached)
        doc = self.get(collection, doc_id)
        # Misses are not cached so a later create is seen immediately.
        if doc is not None:
            self.cache.set(key, copy.deepcopy(doc), ttl)
        return doc

    def prime(self, collection: str, doc_id: str, value: Dict[str, Any], ttl: Optional[float] = None) -> None:
        """Refresh the cached copy of a document the caller has just persisted."""
        self.cache.set(self.doc_key(collection, doc_id), copy.deepcopy(value), ttl)

    def query_cached(
        self,
        collection: str,
        filters: Sequence[Filter],
        cache_key: str,
        ttl: Optional[float] = None,
        page_size: int = 20,
        cursor: Optional[str] = None,
        order_by: Sequence[OrderBy] = (),
    ) -> QueryPage:
        """Run a paged query, serving first pages from the cache.

        Continuation pages (``cursor`` given) always hit the store and are
        never cached.
        """

        if cursor is None:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cached.model_copy(deep=True)

        docs = self._call(
            "query",
            lambda: self.store.query(collection, filters, order_by, limit=page_size, cursor=cursor),
        )
        page = QueryPage(
            documents=docs,
            last_cursor=docs[-1]["id"] if docs else None,
            has_more=len(docs) == page_size,
        )
        if cursor is None:
            self.cache.set(cache_key, page.model_copy(deep=True), ttl)
        return page

    def query_all(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[OrderBy] = (),
        page_size: int = 100,
    ) -> List[Dict[str, Any]]:
        """Fetch every matching document page by page, bypassing the cache."""

        results: List[Dict[str, Any]] = []
        cursor: Optional[str] = None
        while True:
            docs = self._call(
                "query",
                lambda: self.store.query(collection, filters, order_by, limit=page_size, cursor=cursor),
            )
            results.extend(docs)
            if len(docs) < page_size:
                return results
            cursor = docs[-1]["id"]

    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        """Apply ``ops`` atomically; raises :class:`StoreError` if nothing was applied."""

        if not ops:
            return
        self._call("batch_write", lambda: self.store.batch_write(ops))
        logger.debug("batch write committed ops=%d", len(ops))

    def _call(self, operation: str, fn: Callable[[], T]) -> T:
        start = time.perf_counter()
        try:
            return fn()
        except StoreError as exc:
            elapsed = int((time.perf_counter() - start) * 1000)
            logger.warning("store %s failed after %dms: %s", operation, elapsed, exc)
            raise exc.tagged(operation, elapsed)
        except TimeoutError as exc:
            elapsed = int((time.perf_counter() - start) * 1000)
            logger.warning("store %s timed out after %dms", operation, elapsed)
            raise TransientStoreError(
                f"{operation} timed out", operation=operation, duration_ms=elapsed
            ) from exc


__all__ = ["DocumentGateway", "QueryPage"]
