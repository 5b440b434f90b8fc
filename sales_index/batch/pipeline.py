"""
Import job orchestration.

Coordinates the invoice import: headers → lines → totals (→ index), each
pass running to completion before the next starts. Also hosts the
standalone jobs (index rebuild, customer import, line backfill, top items)
so the CLI only deals with one object.
"""

import os
import time
from datetime import date
from typing import Callable

from sales_index.batch.importers.backfill import LineHeaderBackfill
from sales_index.batch.importers.customer_importer import CustomerImporter
from sales_index.batch.importers.header_importer import HeaderImporter, resolve_header_columns
from sales_index.batch.importers.index_builder import INDEX_BATCH_SIZE, ItemCustomerIndexBuilder
from sales_index.batch.importers.line_importer import LineImporter, resolve_line_columns
from sales_index.batch.importers.top_items import TopItemsReport
from sales_index.batch.importers.totals_finalizer import TotalsFinalizer
from sales_index.batch.importers.window import RollingWindow
from sales_index.batch.readers.csv_reader import CSVRecordReader, check_readable
from sales_index.batch.writers.batched_writer import (
    DEFAULT_BACKOFF_BASE,
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MAX_IN_FLIGHT,
    BatchedWriter,
)
from sales_index.config import PipelineSettings
from sales_index.core.models import (
    BackfillResult,
    CustomerImportResult,
    IndexBuildResult,
    InvoiceImportResult,
    TopItemsResult,
)
from sales_index.observability.logger import get_logger, log_operation
from sales_index.observability.metrics import pass_duration_seconds, track_duration
from sales_index.store.base import DocumentStore

logger = get_logger(__name__)


class InvoiceImportPipeline:
    """
    Runs the import jobs against one document store.

    Flow of run():
    1. Check both input files and their key columns (nothing written yet)
    2. Header pass: window filter, write headers, build window state
    3. Line pass: join against the window state, write lines, sum amounts
    4. Totals pass: merge merchandiseTotal/computedTotal onto headers
    5. Optionally, build the item/customer index from the same state
    """

    def __init__(
        self,
        store: DocumentStore,
        years_back: int = 3,
        batch_size: int = DEFAULT_BATCH_SIZE,
        index_batch_size: int = INDEX_BATCH_SIZE,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        today: date | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize pipeline.

        Args:
            store: Target document store
            years_back: Rolling window length in years
            batch_size: Writes per commit for documents
            index_batch_size: Writes per commit for index entries
            max_in_flight: Outstanding batches before enqueueing blocks
            max_attempts: Commit attempts per batch on transient errors
            backoff_base: Retry backoff scale in seconds
            today: Fixed "today" (tests); defaults to the current date per run
            sleep: Sleep used between retries
        """
        self.store = store
        self.years_back = years_back
        self.batch_size = batch_size
        self.index_batch_size = index_batch_size
        self.max_in_flight = max_in_flight
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.today = today
        self.sleep = sleep

    @classmethod
    def from_settings(cls, store: DocumentStore, settings: PipelineSettings, **kwargs) -> "InvoiceImportPipeline":
        return cls(
            store,
            years_back=settings.years_back,
            batch_size=settings.batch_size,
            index_batch_size=settings.index_batch_size,
            max_in_flight=settings.max_in_flight_batches,
            max_attempts=settings.max_commit_attempts,
            backoff_base=settings.backoff_base_seconds,
            **kwargs,
        )

    def window(self) -> RollingWindow:
        return RollingWindow.trailing_years(self.years_back, self.today)

    def writer(self, label: str, batch_size: int | None = None) -> BatchedWriter:
        return BatchedWriter(
            self.store,
            batch_size=batch_size or self.batch_size,
            max_in_flight=self.max_in_flight,
            max_attempts=self.max_attempts,
            backoff_base=self.backoff_base,
            label=label,
            sleep=self.sleep,
        )

    # ------------------------------------------------------------------
    # jobs
    # ------------------------------------------------------------------

    def run(
        self,
        header_path: str | os.PathLike,
        line_path: str | os.PathLike,
        with_index: bool = False,
    ) -> InvoiceImportResult:
        """
        Import invoice headers and lines, then finalize totals.

        Raises:
            ConfigurationError: Before any write, if an input is unusable
            BatchCommitError: If a batch could not be committed
        """
        check_readable(header_path, "headers")
        check_readable(line_path, "lines")
        resolve_header_columns(CSVRecordReader(header_path, file_kind="headers"))
        resolve_line_columns(CSVRecordReader(line_path, file_kind="lines"))

        window = self.window()

        with log_operation("header pass", logger, file=str(header_path)), \
                track_duration(pass_duration_seconds, pass_name="headers"), \
                self.writer("invoices") as writer:
            headers, state = HeaderImporter(writer, window).run(header_path)

        with log_operation("line pass", logger, file=str(line_path)), \
                track_duration(pass_duration_seconds, pass_name="lines"), \
                self.writer("lines") as writer:
            lines = LineImporter(writer).run(line_path, state)

        with log_operation("totals pass", logger), \
                track_duration(pass_duration_seconds, pass_name="totals"), \
                self.writer("invoice_totals") as writer:
            totals = TotalsFinalizer(writer).run(lines, state)

        index = None
        if with_index:
            with log_operation("index build", logger), \
                    track_duration(pass_duration_seconds, pass_name="index"), \
                    self.writer("itemCustomerIndex", self.index_batch_size) as writer:
                index = ItemCustomerIndexBuilder(writer, window).build_from_state(line_path, state)
                index.header_rows = headers.rows_read

        return InvoiceImportResult(headers=headers, lines=lines, totals=totals, index=index)

    def build_index(self, header_path: str | os.PathLike, line_path: str | os.PathLike) -> IndexBuildResult:
        """Rebuild itemCustomerIndex from the two exports without rewriting invoices."""
        with log_operation("index build", logger), \
                track_duration(pass_duration_seconds, pass_name="index"), \
                self.writer("itemCustomerIndex", self.index_batch_size) as writer:
            return ItemCustomerIndexBuilder(writer, self.window()).build(header_path, line_path)

    def import_customers(
        self,
        customers_path: str | os.PathLike,
        contacts_path: str | os.PathLike | None = None,
    ) -> CustomerImportResult:
        with log_operation("customer import", logger, file=str(customers_path)), \
                track_duration(pass_duration_seconds, pass_name="customers"), \
                self.writer("customers") as writer:
            return CustomerImporter(writer, today=self.today).run(customers_path, contacts_path)

    def backfill_lines(self) -> BackfillResult:
        with log_operation("line header backfill", logger), \
                track_duration(pass_duration_seconds, pass_name="backfill"), \
                self.writer("lines") as writer:
            return LineHeaderBackfill(self.store, writer).run()

    def top_items(
        self,
        days_back: int = 60,
        top_n: int = 5,
        excluded_codes: tuple[str, ...] = ("170",),
        excluded_prefixes: tuple[str, ...] = (),
    ) -> TopItemsResult:
        with log_operation("top items", logger, days_back=days_back), \
                track_duration(pass_duration_seconds, pass_name="top_items"), \
                self.writer("companyStats") as writer:
            report = TopItemsReport(
                store=self.store,
                writer=writer,
                days_back=days_back,
                top_n=top_n,
                excluded_codes=tuple(excluded_codes),
                excluded_prefixes=tuple(excluded_prefixes),
                today=self.today,
            )
            return report.run()
