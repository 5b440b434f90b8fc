"""
Copy invoice header fields onto every stored line.

Lines written before headers carried customer and salesperson data can be
filtered by those fields once this has run.
"""

from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.models import BackfillResult
from sales_index.observability.logger import get_logger
from sales_index.store.base import DocumentStore, Query

from .header_importer import INVOICES_COLLECTION
from .line_importer import LINES_COLLECTION

logger = get_logger(__name__)

PAGE_SIZE = 500

HEADER_FIELDS = ("invoiceNo", "invoiceDate", "customerNo", "salespersonNo")


class LineHeaderBackfill:
    def __init__(self, store: DocumentStore, writer: BatchedWriter, page_size: int = PAGE_SIZE):
        self.store = store
        self.writer = writer
        self.page_size = page_size

    def run(self) -> BackfillResult:
        """
        Page through every invoice and merge its header fields onto its lines.

        Raises:
            StoreError: If a read fails
            BatchCommitError: If a batch could not be committed
        """
        result = BackfillResult()

        for invoice in self.store.iter_query(Query(INVOICES_COLLECTION, limit=self.page_size)):
            result.invoices_scanned += 1
            patch = {
                "invoiceNo": invoice.get("invoiceNo", invoice.id),
                "invoiceDate": invoice.get("invoiceDate"),
                "customerNo": invoice.get("customerNo", ""),
                "salespersonNo": invoice.get("salespersonNo", ""),
            }

            lines = Query(f"{invoice.path}/{LINES_COLLECTION}", limit=self.page_size)
            for line in self.store.iter_query(lines):
                self.writer.enqueue_path(line.path, dict(patch))
                result.lines_updated += 1

            if result.invoices_scanned % 2000 == 0:
                logger.info(
                    f"Backfill progress: invoices={result.invoices_scanned:,}, "
                    f"lines={result.lines_updated:,}"
                )

        self.writer.flush()
        logger.info(
            f"Backfill complete: invoices={result.invoices_scanned:,}, lines={result.lines_updated:,}"
        )
        return result
