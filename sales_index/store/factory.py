"""
Build the document store a command runs against.
"""

from sales_index.batch.errors import ConfigurationError
from sales_index.config import PipelineSettings
from sales_index.observability.logger import get_logger

from .base import DocumentStore
from .connection import DatabaseConnectionPool
from .memory_store import InMemoryDocumentStore
from .postgres_store import PostgresDocumentStore, translate_errors
from .schema import ensure_schema

logger = get_logger(__name__)


def create_store(settings: PipelineSettings, dry_run: bool = False) -> DocumentStore:
    """
    Open the configured store.

    A dry run writes to a throwaway in-memory store and needs no database.

    Raises:
        ConfigurationError: If no database password is configured
        StoreError: If the database cannot be reached or prepared
    """
    if dry_run:
        logger.info("DRY RUN MODE: documents go to an in-memory store and are discarded")
        return InMemoryDocumentStore()

    db = settings.database
    db.require_password()

    try:
        pool = DatabaseConnectionPool(
            host=db.host,
            port=db.port,
            database=db.name,
            user=db.user,
            password=db.password,
            min_size=db.min_pool_size,
            max_size=max(db.max_pool_size, settings.max_in_flight_batches + 1),
        )
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    with translate_errors("connect"):
        pool.open()
        ensure_schema(pool, db.table)
    return PostgresDocumentStore(pool, table=db.table)
