"""Persistence layer: TTL cache, document store and cached gateway."""
from .document_store import DocumentStore, SqliteDocumentStore, WriteOp
from .errors import RejectedWriteError, StoreError, TransientStoreError
from .gateway import DocumentGateway, QueryPage
from .ttl_cache import CacheEntry, TtlCache

__all__ = [
    "CacheEntry",
    "DocumentGateway",
    "DocumentStore",
    "QueryPage",
    "RejectedWriteError",
    "SqliteDocumentStore",
    "StoreError",
    "TransientStoreError",
    "TtlCache",
    "WriteOp",
]
