"""
Invoice line pass.

Second pass of the import. Only lines whose invoice was accepted by the
header pass are written, as children of that invoice. Extension amounts
are summed per invoice for the totals pass.
"""

import os
from collections import defaultdict

from pydantic import ValidationError

from sales_index.batch.errors import ConfigurationError
from sales_index.batch.readers.csv_reader import CSVRecordReader
from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.columns import INVOICE_LINE_COLUMNS, ColumnMap
from sales_index.core.models import InvoiceLine, LinePassResult, SourceRef
from sales_index.core.normalize import parse_amount, sanitize_key, sanitize_row
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import record_skips

from .header_importer import INVOICES_COLLECTION
from .window import InvoiceWindowState

logger = get_logger(__name__)

LINES_COLLECTION = "lines"


def make_line_id(invoice_no: str, line_key: str, row_index: int) -> str:
    """
    Deterministic line id, so a re-import overwrites instead of duplicating.

    Falls back to the source row index when the export has no line key.
    """
    return sanitize_key(f"{invoice_no}__{line_key or row_index}")


def line_collection(invoice_no: str) -> str:
    return f"{INVOICES_COLLECTION}/{sanitize_key(invoice_no)}/{LINES_COLLECTION}"


def resolve_line_columns(reader: CSVRecordReader) -> ColumnMap:
    """
    Raises:
        ConfigurationError: If the invoice number column is missing
    """
    columns = ColumnMap.resolve(reader.read_fieldnames(), INVOICE_LINE_COLUMNS)
    if not columns.has("invoice_no"):
        raise ConfigurationError(f"Line file {reader.path} has no column for: invoice_no")
    return columns


class LineImporter:
    """Streams invoice lines, joined against the header pass's window."""

    def __init__(self, writer: BatchedWriter):
        self.writer = writer

    def run(self, path: str | os.PathLike, state: InvoiceWindowState) -> LinePassResult:
        """
        Run the line pass over one file.

        Args:
            path: Line CSV path
            state: Output of the completed header pass

        Returns:
            Counters and per-invoice merchandise totals

        Raises:
            ConfigurationError: If the file is missing or lacks the invoice column
            BatchCommitError: If a batch could not be committed
        """
        reader = CSVRecordReader(path, file_kind="lines")
        columns = resolve_line_columns(reader)
        result = LinePassResult(file=reader.file_name)
        totals: dict[str, float] = defaultdict(float)

        for row_index, row in reader:
            invoice_no = columns.text(row, "invoice_no")
            if not invoice_no:
                result.skipped_missing_key += 1
                continue

            if not state.contains(invoice_no):
                result.skipped_not_in_range += 1
                continue

            item_code = columns.text(row, "item_code")
            item_code_desc = columns.text(row, "item_code_desc")
            if not item_code and not item_code_desc:
                result.skipped_no_item += 1
                continue

            line_key = columns.text(row, "line_key")
            try:
                line = InvoiceLine(
                    invoice_no=invoice_no,
                    line_key=line_key,
                    item_code=item_code,
                    item_code_desc=item_code_desc,
                    quantity_shipped=parse_amount(columns.raw(row, "quantity_shipped")),
                    discount=parse_amount(columns.raw(row, "discount")),
                    product_line=columns.text(row, "product_line"),
                    alias_item_no=columns.text(row, "alias_item_no"),
                    comment_text=columns.text(row, "comment_text"),
                    unit_price=parse_amount(columns.raw(row, "unit_price")),
                    extension_amt=parse_amount(columns.raw(row, "extension_amt")),
                    warehouse_code=columns.text(row, "warehouse_code"),
                    sales_acct_key=columns.text(row, "sales_acct_key"),
                    raw=sanitize_row(row),
                    source=SourceRef(file=reader.file_name, row_index=row_index),
                )
            except ValidationError as e:
                result.skipped_malformed += 1
                logger.debug(f"lines: row {row_index} rejected: {e}")
                continue

            self.writer.enqueue(
                line_collection(invoice_no),
                make_line_id(invoice_no, line_key, row_index),
                line.to_document(),
            )
            result.written += 1
            totals[invoice_no] += line.extension_amt

        self.writer.flush()

        result.rows_read = reader.stats.rows
        result.skipped_malformed += reader.stats.malformed
        result.merchandise_totals = dict(totals)

        record_skips("lines", {
            "missing_key": result.skipped_missing_key,
            "not_in_range": result.skipped_not_in_range,
            "no_item": result.skipped_no_item,
        })
        logger.info(
            f"Lines done: read {result.rows_read:,}, written {result.written:,}, "
            f"not in range {result.skipped_not_in_range:,}, no item {result.skipped_no_item:,}, "
            f"malformed {result.skipped_malformed:,}"
        )
        return result
