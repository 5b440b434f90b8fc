"""
Item -> customer inverted index.

Joins in-window headers to their lines exactly like the import passes, but
instead of writing lines it accumulates (ITEMCODE, salespersonNo) ->
{customerNo} in memory and writes one document per key at the end.

Memory scales with the number of distinct (item, salesperson) pairs and
the customers under each, not with the number of line rows.
"""

import os
from collections import defaultdict
from pathlib import Path

from sales_index.batch.readers.csv_reader import CSVRecordReader, check_readable
from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.core.models import IndexBuildResult, ItemCustomerIndexEntry
from sales_index.core.normalize import sanitize_key
from sales_index.observability.logger import get_logger

from .header_importer import HeaderImporter
from .line_importer import resolve_line_columns
from .window import InvoiceWindowState, RollingWindow

logger = get_logger(__name__)

INDEX_COLLECTION = "itemCustomerIndex"

# Index documents carry customer arrays, so batches stay smaller
INDEX_BATCH_SIZE = 300


def index_key(item_code: str, salesperson_no: str) -> str:
    return sanitize_key(f"{item_code.strip().upper()}__{salesperson_no}")


class ItemCustomerIndexBuilder:
    """
    Builds itemCustomerIndex from the header and line exports.

    Every key written is fully replaced (merge=False), so a customer who
    has not bought an item inside the current window drops out of its entry.
    Keys that no longer appear at all are left untouched.
    """

    def __init__(self, writer: BatchedWriter, window: RollingWindow):
        self.writer = writer
        self.window = window

    def build(self, header_path: str | os.PathLike, line_path: str | os.PathLike) -> IndexBuildResult:
        """
        Scan both files and write the index.

        Raises:
            ConfigurationError: If either file is missing or lacks key columns
            BatchCommitError: If a batch could not be committed
        """
        check_readable(header_path, "headers")
        check_readable(line_path, "lines")
        resolve_line_columns(CSVRecordReader(line_path, file_kind="lines"))

        header_result, state = HeaderImporter(None, self.window).run(header_path)
        result = self.build_from_state(line_path, state)
        result.header_rows = header_result.rows_read
        return result

    def build_from_state(self, line_path: str | os.PathLike, state: InvoiceWindowState) -> IndexBuildResult:
        """Build the index from an already completed header pass."""
        parties = {
            invoice_no: (customer_no, salesperson_no)
            for invoice_no, (customer_no, salesperson_no) in state.parties.items()
            if customer_no and salesperson_no
        }
        result = IndexBuildResult(cutoff=state.cutoff, invoices_mapped=len(parties))
        logger.info(f"In-range invoices mapped: {result.invoices_mapped:,}")

        reader = CSVRecordReader(line_path, file_kind="lines")
        columns = resolve_line_columns(reader)
        index: dict[tuple[str, str], set[str]] = defaultdict(set)

        for _, row in reader:
            party = parties.get(columns.text(row, "invoice_no"))
            if party is None:
                continue

            item_code = columns.text(row, "item_code").upper()
            if not item_code:
                continue

            customer_no, salesperson_no = party
            index[(item_code, salesperson_no)].add(customer_no)
            result.lines_used += 1

        result.line_rows = reader.stats.rows
        logger.info(f"Lines contributing to index: {result.lines_used:,}; entries to write: {len(index):,}")

        source_files = {"headers": state.header_file, "lines": Path(line_path).name}
        for item_code, salesperson_no in sorted(index):
            entry = ItemCustomerIndexEntry.build(
                item_code=item_code,
                salesperson_no=salesperson_no,
                customers=index[(item_code, salesperson_no)],
                years_back=self.window.years_back,
                source_files=source_files,
            )
            self.writer.enqueue(
                INDEX_COLLECTION,
                index_key(item_code, salesperson_no),
                entry.to_document(),
                merge=False,
            )
            result.entries_written += 1

        self.writer.flush()
        logger.info(f"Wrote {result.entries_written:,} {INDEX_COLLECTION} documents")
        return result
