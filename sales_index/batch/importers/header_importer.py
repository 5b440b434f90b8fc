"""
Invoice header pass.

First pass of the import: keeps headers dated inside the rolling window,
writes them to invoices/{invoiceNo}, and returns the in-window state the
line and totals passes depend on.
"""

import os

from pydantic import ValidationError

from sales_index.batch.errors import ConfigurationError
from sales_index.batch.readers.csv_reader import CSVRecordReader
from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.columns import INVOICE_HEADER_COLUMNS, ColumnMap
from sales_index.core.models import HeaderPassResult, InvoiceHeader, SourceRef
from sales_index.core.normalize import pad_identifier, parse_amount, parse_fixed_date, sanitize_key, sanitize_row
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import record_skips

from .window import InvoiceWindowState, RollingWindow

logger = get_logger(__name__)

INVOICES_COLLECTION = "invoices"

REQUIRED_HEADER_FIELDS = ("invoice_no", "invoice_date")


def resolve_header_columns(reader: CSVRecordReader) -> ColumnMap:
    """
    Resolve header-file columns, failing if the key columns are absent.

    Raises:
        ConfigurationError: If the invoice number or date column is missing
    """
    columns = ColumnMap.resolve(reader.read_fieldnames(), INVOICE_HEADER_COLUMNS)
    missing = [f for f in REQUIRED_HEADER_FIELDS if not columns.has(f)]
    if missing:
        raise ConfigurationError(f"Header file {reader.path} has no column for: {', '.join(missing)}")
    return columns


class HeaderImporter:
    """
    Streams invoice headers through the rolling-window filter.

    With ``writer=None`` the pass only scans, which is how the index
    builder recovers invoice parties without rewriting headers.
    """

    def __init__(self, writer: BatchedWriter | None, window: RollingWindow):
        self.writer = writer
        self.window = window

    def run(self, path: str | os.PathLike) -> tuple[HeaderPassResult, InvoiceWindowState]:
        """
        Run the header pass over one file.

        Args:
            path: Header CSV path

        Returns:
            (counters, in-window state)

        Raises:
            ConfigurationError: If the file is missing or lacks key columns
            BatchCommitError: If a batch could not be committed
        """
        reader = CSVRecordReader(path, file_kind="headers")
        columns = resolve_header_columns(reader)
        result = HeaderPassResult(file=reader.file_name, cutoff=self.window.cutoff)

        in_window: set[str] = set()
        freight: dict[str, float] = {}
        discount: dict[str, float] = {}
        parties: dict[str, tuple[str, str]] = {}

        logger.info(
            f"Importing invoices dated {self.window.cutoff.isoformat()} .. {self.window.today.isoformat()} "
            f"(years_back={self.window.years_back})"
        )

        for row_index, row in reader:
            invoice_no = columns.text(row, "invoice_no")
            if not invoice_no:
                result.skipped_missing_key += 1
                continue

            invoice_date = parse_fixed_date(columns.raw(row, "invoice_date"))
            if not self.window.contains(invoice_date):
                result.skipped_out_of_window += 1
                continue

            try:
                header = InvoiceHeader(
                    invoice_no=invoice_no,
                    invoice_date=invoice_date,
                    customer_no=columns.text(row, "customer_no"),
                    ar_division_no=columns.text(row, "ar_division_no"),
                    salesperson_no=pad_identifier(columns.raw(row, "salesperson_no"), 4),
                    tax_amt=parse_amount(columns.raw(row, "tax_amt")),
                    customer_po_no=columns.text(row, "customer_po_no"),
                    non_taxable_sales_amt=parse_amount(columns.raw(row, "non_taxable_sales_amt")),
                    freight_amt=parse_amount(columns.raw(row, "freight_amt")),
                    discount_amt=parse_amount(columns.raw(row, "discount_amt")),
                    comment=columns.text(row, "comment"),
                    invoice_type=columns.text(row, "invoice_type"),
                    raw=sanitize_row(row),
                    source=SourceRef(file=reader.file_name, row_index=row_index),
                )
            except ValidationError as e:
                result.skipped_malformed += 1
                logger.debug(f"headers: row {row_index} rejected: {e}")
                continue

            in_window.add(invoice_no)
            freight[invoice_no] = header.freight_amt
            discount[invoice_no] = header.discount_amt
            parties[invoice_no] = (header.customer_no, header.salesperson_no)

            if self.writer is not None:
                self.writer.enqueue(INVOICES_COLLECTION, sanitize_key(invoice_no), header.to_document())
                result.written += 1

        if self.writer is not None:
            self.writer.flush()

        result.rows_read = reader.stats.rows
        result.skipped_malformed += reader.stats.malformed
        result.in_window = len(in_window)

        record_skips("headers", {
            "missing_key": result.skipped_missing_key,
            "out_of_window": result.skipped_out_of_window,
        })
        logger.info(
            f"Headers done: read {result.rows_read:,}, written {result.written:,}, "
            f"missing key {result.skipped_missing_key:,}, out of window {result.skipped_out_of_window:,}, "
            f"malformed {result.skipped_malformed:,}"
        )

        state = InvoiceWindowState.build(
            window=self.window,
            in_window=in_window,
            freight=freight,
            discount=discount,
            parties=parties,
            header_file=reader.file_name,
        )
        return result, state
