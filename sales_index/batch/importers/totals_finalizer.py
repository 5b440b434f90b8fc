"""
Invoice totals pass.

Runs after the whole line file is written. Freight and discount come from
the header pass's in-memory state, so no header is re-read.
"""

from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.models import InvoiceTotals, LinePassResult, TotalsResult
from sales_index.core.normalize import sanitize_key
from sales_index.observability.logger import get_logger

from .header_importer import INVOICES_COLLECTION
from .window import InvoiceWindowState

logger = get_logger(__name__)


def compute_totals(merchandise_total: float, freight: float, discount: float) -> InvoiceTotals:
    return InvoiceTotals(
        merchandise_total=merchandise_total,
        computed_total=merchandise_total + freight - discount,
    )


class TotalsFinalizer:
    def __init__(self, writer: BatchedWriter):
        self.writer = writer

    def run(self, lines: LinePassResult, state: InvoiceWindowState) -> TotalsResult:
        """
        Merge merchandiseTotal and computedTotal onto every invoice that got lines.

        Each run overwrites the totals outright; nothing is patched
        incrementally.
        """
        result = TotalsResult()

        for invoice_no in sorted(lines.merchandise_totals):
            totals = compute_totals(
                lines.merchandise_totals[invoice_no],
                state.freight.get(invoice_no, 0.0),
                state.discount.get(invoice_no, 0.0),
            )
            self.writer.enqueue(INVOICES_COLLECTION, sanitize_key(invoice_no), totals.to_document())
            result.updated += 1

        self.writer.flush()
        logger.info(f"Computed totals updated for {result.updated:,} invoices")
        return result
