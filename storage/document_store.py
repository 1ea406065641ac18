"""JSON document store backed by SQLite."""
from __future__ import annotations

import copy
import datetime as dt
import json
import sqlite3
from typing import Any, Dict, List, Literal, Optional, Protocol, Sequence, Tuple

from pydantic import BaseModel, Field

from .errors import RejectedWriteError, TransientStoreError
from .sqlite import get_conn

FilterOp = Literal["==", "!=", "<", "<=", ">", ">=", "in"]
Filter = Tuple[str, FilterOp, Any]
OrderBy = Tuple[str, Literal["asc", "desc"]]


class WriteOp(BaseModel):
    """One mutation inside a batch write."""

    type: Literal["create", "set", "update", "delete"]
    collection: str
    doc_id: str
    data: Dict[str, Any] = Field(default_factory=dict)
    merge: bool = False
    # Field values the stored document must hold for the op to apply.
    expect: Dict[str, Any] = Field(default_factory=dict)


class DocumentStore(Protocol):
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]: ...

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> List[Dict[str, Any]]: ...

    def batch_write(self, ops: Sequence[WriteOp]) -> None: ...


def lookup(doc: Dict[str, Any], path: str) -> Any:
    """Resolve a dotted field path, returning ``None`` when any hop is missing."""

    node: Any = doc
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def _assign(doc: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    node = doc
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def deep_merge(base: Dict[str, Any], patch: Dict[str, Any]) -> Dict[str, Any]:
    """Merge ``patch`` into a copy of ``base``; nested maps merge, other values replace."""

    merged = copy.deepcopy(base)
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _matches(doc: Dict[str, Any], flt: Filter) -> bool:
    field, op, expected = flt
    actual = lookup(doc, field)
    if op == "==":
        return actual == expected
    if op == "!=":
        return actual != expected
    if op == "in":
        return actual in expected
    if actual is None:
        return False
    try:
        if op == "<":
            return actual < expected
        if op == "<=":
            return actual <= expected
        if op == ">":
            return actual > expected
        if op == ">=":
            return actual >= expected
    except TypeError:
        return False
    raise ValueError(f"Unsupported filter operator: {op}")


def _sort_key(value: Any) -> Tuple[int, Any]:
    # Grouping by type keeps a field holding mixed types orderable.
    if value is None:
        return (0, 0)
    if isinstance(value, (bool, int, float)):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    return (3, json.dumps(value, sort_keys=True, default=str))


def _sorted(docs: List[Dict[str, Any]], order_by: Sequence[OrderBy]) -> List[Dict[str, Any]]:
    # Stable sorts applied from the least significant key keep earlier keys dominant.
    for field, direction in reversed(list(order_by)):
        docs = sorted(
            docs,
            key=lambda doc: _sort_key(lookup(doc, field)),
            reverse=direction == "desc",
        )
    return docs


class SqliteDocumentStore:
    """Document store keeping each document as a JSON row in ``documents``."""

    def __init__(self, path: str, timeout_s: float = 5.0) -> None:
        self.path = path
        self.timeout_s = timeout_s

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            with get_conn(self.path, self.timeout_s) as conn:
                row = conn.execute(
                    "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                ).fetchone()
        except sqlite3.OperationalError as exc:
            raise TransientStoreError(f"get {collection}/{doc_id} failed: {exc}") from exc
        if row is None:
            return None
        return {"id": doc_id, **json.loads(row[0])}

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        order_by: Sequence[OrderBy] = (),
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return matching documents in order, starting after ``cursor`` when given.

        A cursor naming a document that is no longer part of the result set
        yields an empty page.
        """

        try:
            with get_conn(self.path, self.timeout_s) as conn:
                rows = conn.execute(
                    "SELECT doc_id, data FROM documents WHERE collection = ? ORDER BY seq",
                    (collection,),
                ).fetchall()
        except sqlite3.OperationalError as exc:
            raise TransientStoreError(f"query {collection} failed: {exc}") from exc

        docs = [{"id": doc_id, **json.loads(data)} for doc_id, data in rows]
        docs = [doc for doc in docs if all(_matches(doc, flt) for flt in filters)]
        docs = _sorted(docs, order_by)
        if cursor is not None:
            ids = [doc["id"] for doc in docs]
            docs = docs[ids.index(cursor) + 1 :] if cursor in ids else []
        if limit is not None:
            docs = docs[:limit]
        return docs

    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        """Apply ``ops`` in one transaction; any failure rolls back all of them."""

        now = dt.datetime.now(dt.timezone.utc).isoformat()
        try:
            with get_conn(self.path, self.timeout_s) as conn:
                conn.execute("BEGIN IMMEDIATE")
                for op in ops:
                    self._apply(conn, op, now)
        except sqlite3.OperationalError as exc:
            raise TransientStoreError(f"batch write failed: {exc}") from exc

    def _apply(self, conn: sqlite3.Connection, op: WriteOp, now: str) -> None:
        data = {key: value for key, value in op.data.items() if key != "id"}
        if op.type == "delete":
            conn.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                (op.collection, op.doc_id),
            )
            return

        existing = self._load(conn, op.collection, op.doc_id)
        for path, value in op.expect.items():
            if existing is None or lookup(existing, path) != value:
                raise RejectedWriteError(f"{op.collection}/{op.doc_id} precondition failed on {path}")
        if op.type == "create":
            if existing is not None:
                raise RejectedWriteError(f"{op.collection}/{op.doc_id} already exists")
            body = data
        elif op.type == "update":
            if existing is None:
                raise RejectedWriteError(f"{op.collection}/{op.doc_id} does not exist")
            body = copy.deepcopy(existing)
            for path, value in data.items():
                _assign(body, path, value)
        elif op.merge and existing is not None:
            body = deep_merge(existing, data)
        else:
            body = data

        conn.execute(
            """INSERT INTO documents (collection, doc_id, data, updated_at)
               VALUES (?, ?, ?, ?)
               ON CONFLICT (collection, doc_id)
               DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at""",
            (op.collection, op.doc_id, json.dumps(body, ensure_ascii=False), now),
        )

    @staticmethod
    def _load(conn: sqlite3.Connection, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        row = conn.execute(
            "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
            (collection, doc_id),
        ).fetchone()
        return json.loads(row[0]) if row else None


__all__ = [
    "DocumentStore",
    "Filter",
    "OrderBy",
    "SqliteDocumentStore",
    "WriteOp",
    "deep_merge",
    "lookup",
]
