"""
Document store collaborator: interface, error classification and backends.
"""

from .base import Document, DocumentStore, Filter, Query, QueryPage, WriteOp
from .connection import DatabaseConnectionPool
from .errors import (
    ErrorClass,
    InvalidArgumentError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)
from .memory_store import InMemoryDocumentStore
from .postgres_store import PostgresDocumentStore
from .schema import ensure_schema

__all__ = [
    "DatabaseConnectionPool",
    "Document",
    "DocumentStore",
    "ErrorClass",
    "Filter",
    "InMemoryDocumentStore",
    "InvalidArgumentError",
    "PermanentStoreError",
    "PostgresDocumentStore",
    "Query",
    "QueryPage",
    "StoreError",
    "TransientStoreError",
    "WriteOp",
    "ensure_schema",
]
