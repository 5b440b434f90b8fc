"""
Document store interface.

Paths alternate collection and document ids: ``invoices/INV1`` is a
document, ``invoices/INV1/lines`` a sub-collection and
``invoices/INV1/lines/INV1__1`` a document inside it.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Literal, Sequence

from .errors import InvalidArgumentError

FilterOp = Literal["==", "!=", "<", "<=", ">", ">=", "in", "startswith"]

FILTER_OPS: frozenset[str] = frozenset({"==", "!=", "<", "<=", ">", ">=", "in", "startswith"})

# Hard ceiling on operations in one batch_write call
MAX_BATCH_OPERATIONS = 500


def split_path(path: str) -> list[str]:
    """
    Split a document or collection path into segments.

    Raises:
        InvalidArgumentError: On empty segments
    """
    segments = path.strip("/").split("/")
    if not path.strip("/") or any(not s.strip() for s in segments):
        raise InvalidArgumentError(f"Invalid path: {path!r}", operation="path")
    return segments


def document_path(collection_path: str, doc_id: str) -> str:
    segments = split_path(collection_path)
    if len(segments) % 2 != 1:
        raise InvalidArgumentError(f"Not a collection path: {collection_path!r}", operation="path")
    if not doc_id or "/" in doc_id:
        raise InvalidArgumentError(f"Invalid document id: {doc_id!r}", operation="path")
    return f"{'/'.join(segments)}/{doc_id}"


def parent_collection(path: str) -> tuple[str, str]:
    """
    Return (collection path, document id) for a document path.

    Raises:
        InvalidArgumentError: If the path does not name a document
    """
    segments = split_path(path)
    if len(segments) % 2 != 0:
        raise InvalidArgumentError(f"Not a document path: {path!r}", operation="path")
    return "/".join(segments[:-1]), segments[-1]


def field_value(data: dict[str, Any], field_path: str) -> Any:
    """Resolve a dotted field path; missing fields resolve to None."""
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


@dataclass(frozen=True)
class Document:
    path: str
    data: dict[str, Any]

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def parent_id(self) -> str | None:
        """Id of the document owning this document's collection, if any."""
        segments = self.path.split("/")
        return segments[-3] if len(segments) >= 4 else None

    def get(self, field_path: str, default: Any = None) -> Any:
        value = field_value(self.data, field_path)
        return default if value is None else value


@dataclass(frozen=True)
class WriteOp:
    path: str
    data: dict[str, Any]
    merge: bool = True


@dataclass(frozen=True)
class Filter:
    field: str
    op: FilterOp
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPS:
            raise InvalidArgumentError(f"Unsupported filter operator: {self.op}", operation="query")
        if self.op == "in" and not isinstance(self.value, (list, tuple, set, frozenset)):
            raise InvalidArgumentError("'in' filter needs a sequence value", operation="query")


@dataclass(frozen=True)
class Query:
    """
    A filtered, ordered, paginated read of one collection.

    Attributes:
        collection: Collection path, or a bare collection id when
            collection_group is set (matches that id at any depth)
        filters: Conjunction of filters
        order_by: Field to order by; documents are always tie-broken by path
        cursor: Continuation cursor from a previous page
        limit: Page size
    """

    collection: str
    filters: tuple[Filter, ...] = ()
    order_by: str | None = None
    descending: bool = False
    cursor: str | None = None
    limit: int = 500
    collection_group: bool = False

    def __post_init__(self):
        if self.limit <= 0:
            raise InvalidArgumentError(f"limit must be positive, got {self.limit}", operation="query")


@dataclass(frozen=True)
class QueryPage:
    documents: list[Document] = field(default_factory=list)
    cursor: str | None = None

    def __len__(self) -> int:
        return len(self.documents)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    @property
    def empty(self) -> bool:
        return not self.documents


def encode_cursor(order_value: Any, path: str) -> str:
    return json.dumps([order_value, path], separators=(",", ":"))


def decode_cursor(cursor: str) -> tuple[Any, str]:
    try:
        order_value, path = json.loads(cursor)
    except (ValueError, TypeError) as e:
        raise InvalidArgumentError(f"Malformed cursor: {cursor!r}", operation="query") from e
    return order_value, str(path)


class DocumentStore(ABC):
    """
    Hosted document database as seen by the pipeline and the lookup service.
    """

    max_batch_operations: int = MAX_BATCH_OPERATIONS

    @abstractmethod
    def get(self, path: str) -> Document | None:
        """Fetch one document, or None if it does not exist."""

    def get_all(self, paths: Sequence[str]) -> list[Document | None]:
        """Fetch many documents; the result lines up with ``paths``."""
        return [self.get(path) for path in paths]

    @abstractmethod
    def query(self, query: Query) -> QueryPage:
        """Run one page of a query."""

    @abstractmethod
    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        """
        Apply all writes atomically.

        Raises:
            InvalidArgumentError: If more than max_batch_operations are given
        """

    @abstractmethod
    def count(self, collection: str, filters: Sequence[Filter] = (), collection_group: bool = False) -> int:
        """Count documents matching the filters."""

    def iter_query(self, query: Query) -> Iterator[Document]:
        """Follow continuation cursors until the query is exhausted."""
        current = query
        while True:
            page = self.query(current)
            yield from page.documents
            if page.cursor is None:
                return
            current = replace(current, cursor=page.cursor)

    def check_batch(self, ops: Sequence[WriteOp]) -> None:
        if len(ops) > self.max_batch_operations:
            raise InvalidArgumentError(
                f"Batch of {len(ops)} operations exceeds limit of {self.max_batch_operations}",
                operation="batch_write",
            )
        for op in ops:
            parent_collection(op.path)

    def close(self) -> None:
        """Release backend resources."""
