"""
PostgreSQL-backed document store.

Documents live in one JSONB table keyed by full path. Driver exceptions are
translated into typed store errors here, at the boundary, so the writer and
the lookup service never inspect driver types or message text.
"""

from contextlib import contextmanager
from itertools import groupby
from typing import Any, Sequence

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql
from psycopg.types.json import Jsonb
from psycopg_pool import PoolTimeout

from sales_index.observability.logger import get_logger
from sales_index.utils.validation import validate_sql_identifier

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
from .connection import DatabaseConnectionPool
from .errors import (
    InvalidArgumentError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)

logger = get_logger(__name__)

_PERMANENT_ERRORS = (
    pg_errors.InsufficientPrivilege,
    pg_errors.InvalidAuthorizationSpecification,
    pg_errors.InvalidPassword,
    pg_errors.UndefinedTable,
)

_INVALID_ARGUMENT_ERRORS = (
    psycopg.DataError,
    psycopg.ProgrammingError,
)

_TRANSIENT_ERRORS = (
    PoolTimeout,
    pg_errors.SerializationFailure,
    pg_errors.DeadlockDetected,
    pg_errors.LockNotAvailable,
    pg_errors.QueryCanceled,
    pg_errors.TooManyConnections,
    pg_errors.AdminShutdown,
    pg_errors.CannotConnectNow,
    psycopg.OperationalError,
)

_RANGE_OPS = {"<", "<=", ">", ">="}


def classify_error(error: Exception) -> type[StoreError]:
    """Map a driver exception onto a store error class."""
    if isinstance(error, _PERMANENT_ERRORS):
        return PermanentStoreError
    if isinstance(error, _TRANSIENT_ERRORS):
        return TransientStoreError
    if isinstance(error, _INVALID_ARGUMENT_ERRORS):
        return InvalidArgumentError
    return PermanentStoreError


@contextmanager
def translate_errors(operation: str):
    """Re-raise psycopg errors as typed store errors."""
    try:
        yield
    except StoreError:
        raise
    except psycopg.Error as e:
        error_cls = classify_error(e)
        message = str(e).strip() or type(e).__name__
        logger.debug(f"{operation} failed ({error_cls.__name__}): {message}")
        raise error_cls(message, operation=operation) from e


_SCALAR_TYPES = (str, int, float, bool)


def _containment(path: list[str], value: Any) -> dict[str, Any]:
    """{"a": {"b": value}} for the path ["a", "b"]."""
    doc = value
    for key in reversed(path):
        doc = {key: doc}
    return doc


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "%"


def _filter_clause(flt: Filter) -> tuple[sql.Composable, list[Any]]:
    """
    Build the WHERE fragment for one filter.

    Scalar equality is written as containment (@>) so the GIN index on
    data serves it. Range comparisons only match values of the same JSON
    type as the operand; strings compare byte-wise (COLLATE "C").
    """
    path = flt.field.split(".")
    value = flt.value

    if flt.op == "==":
        if value is None or isinstance(value, _SCALAR_TYPES):
            return sql.SQL("data @> %s"), [Jsonb(_containment(path, value))]
        return sql.SQL("data #> %s = %s"), [path, Jsonb(value)]

    if flt.op == "!=":
        return (
            sql.SQL("(data #> %s) IS NOT NULL AND data #> %s <> %s"),
            [path, path, Jsonb(value)],
        )

    if flt.op == "in":
        values = list(value)
        if not values:
            return sql.SQL("FALSE"), []
        return sql.SQL("data #> %s = ANY(%s)"), [path, [Jsonb(v) for v in values]]

    if flt.op == "startswith":
        if not isinstance(value, str):
            raise InvalidArgumentError("'startswith' filter needs a string value", operation="query")
        return (
            sql.SQL("jsonb_typeof(data #> %s) = 'string' AND (data #>> %s) LIKE %s"),
            [path, path, _escape_like(value)],
        )

    op = sql.SQL(flt.op)
    if isinstance(value, str):
        clause = sql.SQL(
            "jsonb_typeof(data #> %s) = 'string' AND (data #>> %s) COLLATE \"C\" {op} %s"
        ).format(op=op)
        return clause, [path, path, value]
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        clause = sql.SQL(
            "jsonb_typeof(data #> %s) = 'number' AND (data #>> %s)::numeric {op} %s"
        ).format(op=op)
        return clause, [path, path, value]

    raise InvalidArgumentError(
        f"Range filter on {flt.field!r} needs a string or number, got {type(value).__name__}",
        operation="query",
    )


class PostgresDocumentStore(DocumentStore):
    """
    Document store over a single JSONB table.

    Usage:
        pool = DatabaseConnectionPool()
        pool.open()
        ensure_schema(pool)
        store = PostgresDocumentStore(pool)
    """

    def __init__(self, pool: DatabaseConnectionPool, table: str = "documents"):
        self.pool = pool
        self.table = validate_sql_identifier(table, "table")
        self._ident = sql.Identifier(self.table)

        self._merge_sql = sql.SQL("""
            INSERT INTO {table} (path, collection_path, collection_id, doc_id, data)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (path) DO UPDATE
            SET data = {table}.data || EXCLUDED.data,
                updated_at = now()
        """).format(table=self._ident)

        self._replace_sql = sql.SQL("""
            INSERT INTO {table} (path, collection_path, collection_id, doc_id, data)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (path) DO UPDATE
            SET data = EXCLUDED.data,
                updated_at = now()
        """).format(table=self._ident)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def get(self, path: str) -> Document | None:
        path = "/".join(split_path(path))
        parent_collection(path)
        statement = sql.SQL("SELECT data FROM {table} WHERE path = %s").format(table=self._ident)
        with translate_errors("get"):
            rows = self.pool.execute_query(statement, (path,))
        return Document(path, rows[0]["data"]) if rows else None

    def get_all(self, paths: Sequence[str]) -> list[Document | None]:
        normalized = ["/".join(split_path(p)) for p in paths]
        if not normalized:
            return []
        statement = sql.SQL("SELECT path, data FROM {table} WHERE path = ANY(%s)").format(
            table=self._ident
        )
        with translate_errors("get_all"):
            rows = self.pool.execute_query(statement, (normalized,))
        found = {row["path"]: row["data"] for row in rows}
        return [Document(p, found[p]) if p in found else None for p in normalized]

    def query(self, query: Query) -> QueryPage:
        where, params = self._where(query.collection, query.filters, query.collection_group)
        direction = sql.SQL("DESC" if query.descending else "ASC")
        compare = sql.SQL("<" if query.descending else ">")

        if query.order_by:
            order_path = query.order_by.split(".")
            where.append(sql.SQL("jsonb_typeof(data #> %s) <> 'null'"))
            params.append(order_path)
            if query.cursor is not None:
                after_value, after_path = decode_cursor(query.cursor)
                where.append(sql.SQL(
                    "(data #> %s {cmp} %s OR (data #> %s = %s AND path COLLATE \"C\" {cmp} %s))"
                ).format(cmp=compare))
                params.extend([order_path, Jsonb(after_value), order_path, Jsonb(after_value), after_path])
            order = sql.SQL("ORDER BY data #> %s {dir}, path COLLATE \"C\" {dir}").format(dir=direction)
            order_params = [order_path]
        else:
            if query.cursor is not None:
                _, after_path = decode_cursor(query.cursor)
                where.append(sql.SQL("path COLLATE \"C\" {cmp} %s").format(cmp=compare))
                params.append(after_path)
            order = sql.SQL("ORDER BY path COLLATE \"C\" {dir}").format(dir=direction)
            order_params = []

        statement = sql.SQL("SELECT path, data FROM {table} WHERE {where} {order} LIMIT %s").format(
            table=self._ident,
            where=sql.SQL(" AND ").join(where),
            order=order,
        )
        # One extra row tells us whether another page exists
        with translate_errors("query"):
            rows = self.pool.execute_query(statement, tuple(params + order_params + [query.limit + 1]))

        documents = [Document(row["path"], row["data"]) for row in rows[: query.limit]]
        cursor = None
        if len(rows) > query.limit:
            last = documents[-1]
            order_value = field_value(last.data, query.order_by) if query.order_by else None
            cursor = encode_cursor(order_value, last.path)
        return QueryPage(documents=documents, cursor=cursor)

    def count(self, collection: str, filters: Sequence[Filter] = (), collection_group: bool = False) -> int:
        where, params = self._where(collection, tuple(filters), collection_group)
        statement = sql.SQL("SELECT count(*) AS n FROM {table} WHERE {where}").format(
            table=self._ident,
            where=sql.SQL(" AND ").join(where),
        )
        with translate_errors("count"):
            rows = self.pool.execute_query(statement, tuple(params))
        return int(rows[0]["n"]) if rows else 0

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def batch_write(self, ops: Sequence[WriteOp]) -> None:
        self.check_batch(ops)
        if not ops:
            return

        with translate_errors("batch_write"):
            with self.pool.get_connection() as conn:
                with conn.transaction():
                    with conn.cursor() as cur:
                        # Consecutive runs keep file order for repeated paths
                        for merge, group in groupby(ops, key=lambda op: op.merge):
                            statement = self._merge_sql if merge else self._replace_sql
                            cur.executemany(statement, [self._row(op) for op in group])

        logger.debug(f"Committed {len(ops)} document writes to {self.table}")

    def close(self) -> None:
        self.pool.close()

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _row(op: WriteOp) -> tuple:
        collection_path, doc_id = parent_collection(op.path)
        collection_id = collection_path.rsplit("/", 1)[-1]
        return (f"{collection_path}/{doc_id}", collection_path, collection_id, doc_id, Jsonb(op.data))

    @staticmethod
    def _where(
        collection: str,
        filters: Sequence[Filter],
        collection_group: bool,
    ) -> tuple[list[sql.Composable], list[Any]]:
        if collection_group:
            where: list[sql.Composable] = [sql.SQL("collection_id = %s")]
            params: list[Any] = [collection.strip("/")]
        else:
            where = [sql.SQL("collection_path = %s")]
            params = ["/".join(split_path(collection))]

        for flt in filters:
            clause, clause_params = _filter_clause(flt)
            where.append(clause)
            params.extend(clause_params)
        return where, params
