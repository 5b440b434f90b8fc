"""
Dict-backed document store.

Same semantics as the PostgreSQL backend: atomic batches, shallow merge,
cursor pagination ordered by (field, path). Used for dry runs and tests.
"""

import copy
import threading
from typing import Any, Sequence

from .base import (
    Document,
    DocumentStore,
    Filter,
    Query,
    QueryPage,
    WriteOp,
    decode_cursor,
    encode_cursor,
    field_value,
    parent_collection,
    split_path,
)


def _comparable(a: Any, b: Any) -> bool:
    if isinstance(a, bool) or isinstance(b, bool):
        return isinstance(a, bool) and isinstance(b, bool)
    if isinstance(a, (int, float)) and isinstance(b, (int, float)):
        return True
    return type(a) is type(b)


def matches(data: dict[str, Any], flt: Filter) -> bool:
    """Evaluate one filter against a document body."""
    value = field_value(data, flt.field)

    if flt.op == "==":
        return value is not None and _comparable(value, flt.value) and value == flt.value
    if flt.op == "!=":
        return value is not None and not (_comparable(value, flt.value) and value == flt.value)
    if flt.op == "in":
        return value is not None and any(_comparable(value, v) and value == v for v in flt.value)
    if flt.op == "startswith":
        return isinstance(value, str) and isinstance(flt.value, str) and value.startswith(flt.value)

    if value is None or not _comparable(value, flt.value):
        return False
    if flt.op == "<":
        return value < flt.value
    if flt.op == "<=":
        return value <= flt.value
    if flt.op == ">":
        return value > flt.value
    return value >= flt.value


class InMemoryDocumentStore(DocumentStore):
    """
    Thread-safe in-memory document store.

    Usage:
        store = InMemoryDocumentStore()
        store.batch_write([WriteOp("invoices/INV1", {"invoiceNo": "INV1"})])
        store.get("invoices/INV1").data
    """

    def __init__(self):
        self._docs: dict[str, dict[str, Any]] = {}
        self._lock = threading.RLock()
        self.batch_calls = 0

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> Document | None:
        parent_collection(path)
        with self._lock:
            data = self._docs.get(path.strip("/"))
            return Document(path.strip("/"), copy.deepcopy(data)) if data is not None else None

    def query(self, query: Query) -> QueryPage:
        candidates = self._select(query.collection, query.filters, query.collection_group)

        if query.order_by:
            candidates = [d for d in candidates if field_value(d.data, query.order_by) is not None]

            def sort_key(doc: Document):
                return (field_value(doc.data, query.order_by), doc.path)
        else:
            def sort_key(doc: Document):
                return (None, doc.path)

        candidates.sort(key=lambda d: _key(sort_key(d)), reverse=query.descending)

        if query.cursor is not None:
            after = _key(decode_cursor(query.cursor))
            if query.descending:
                candidates = [d for d in candidates if _key(sort_key(d)) < after]
            else:
                candidates = [d for d in candidates if _key(sort_key(d)) > after]

        page = candidates[: query.limit]
        cursor = None
        if len(candidates) > query.limit:
            order_value, path = sort_key(page[-1])
            cursor = encode_cursor(order_value, path)
        return QueryPage(documents=page, cursor=cursor)

    def count(self, collection: str, filters: Sequence[Filter] = (), collection_group: bool = False) -> int:
        return len(self._select(collection, tuple(filters), collection_group))

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        self.check_batch(ops)
        with self._lock:
            self.batch_calls += 1
            for op in ops:
                path = op.path.strip("/")
                body = copy.deepcopy(op.data)
                if op.merge and path in self._docs:
                    self._docs[path].update(body)
                else:
                    self._docs[path] = body

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def paths(self) -> list[str]:
        with self._lock:
            return sorted(self._docs)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        """Deep copy of every document, keyed by path."""
        with self._lock:
            return copy.deepcopy(self._docs)

    def _select(self, collection: str, filters: tuple[Filter, ...], collection_group: bool) -> list[Document]:
        if collection_group:
            group_id = collection.strip("/")
        else:
            collection_path = "/".join(split_path(collection))

        selected = []
        with self._lock:
            for path, data in self._docs.items():
                coll_path, _ = path.rsplit("/", 1)
                if collection_group:
                    if coll_path.rsplit("/", 1)[-1] != group_id:
                        continue
                elif coll_path != collection_path:
                    continue
                if all(matches(data, f) for f in filters):
                    selected.append(Document(path, copy.deepcopy(data)))
        return selected


def _key(pair: tuple[Any, str]) -> tuple:
    # None sorts first; numbers and strings never share an order_by field
    order_value, path = pair
    if order_value is None:
        return (0, 0, path)
    if isinstance(order_value, (int, float)) and not isinstance(order_value, bool):
        return (1, order_value, path)
    return (2, str(order_value), path)
