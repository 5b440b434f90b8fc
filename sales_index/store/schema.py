"""
DDL for the PostgreSQL document table.
"""

from psycopg import sql

from sales_index.observability.logger import get_logger
from sales_index.utils.validation import validate_sql_identifier

from .connection import DatabaseConnectionPool

logger = get_logger(__name__)

DOCUMENTS_DDL = """
    CREATE TABLE IF NOT EXISTS {table} (
        path            TEXT PRIMARY KEY,
        collection_path TEXT NOT NULL,
        collection_id   TEXT NOT NULL,
        doc_id          TEXT NOT NULL,
        data            JSONB NOT NULL,
        updated_at      TIMESTAMPTZ NOT NULL DEFAULT now()
    );
    CREATE INDEX IF NOT EXISTS {collection_path_idx} ON {table} (collection_path);
    CREATE INDEX IF NOT EXISTS {collection_id_idx} ON {table} (collection_id);
    CREATE INDEX IF NOT EXISTS {data_idx} ON {table} USING GIN (data jsonb_path_ops);
"""


def ensure_schema(pool: DatabaseConnectionPool, table: str = "documents") -> None:
    """
    Create the document table and its indexes if they do not exist.

    Args:
        pool: Open database connection pool
        table: Table name
    """
    table = validate_sql_identifier(table, "table")
    statement = sql.SQL(DOCUMENTS_DDL).format(
        table=sql.Identifier(table),
        collection_path_idx=sql.Identifier(f"{table}_collection_path_idx"),
        collection_id_idx=sql.Identifier(f"{table}_collection_id_idx"),
        data_idx=sql.Identifier(f"{table}_data_idx"),
    )
    pool.execute_command(statement)
    logger.info(f"Document table ready: {table}")


def drop_schema(pool: DatabaseConnectionPool, table: str = "documents") -> None:
    """Drop the document table (test teardown)."""
    table = validate_sql_identifier(table, "table")
    pool.execute_command(sql.SQL("DROP TABLE IF EXISTS {table}").format(table=sql.Identifier(table)))
