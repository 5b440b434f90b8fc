"""
Idempotent batched writer.

Buffers upserts into batches below the store's per-commit ceiling and
commits them on a single background thread, so the importing loop keeps
reading rows while a batch is in flight. Commits happen in enqueue order,
which keeps "last row in file order wins" true across batch boundaries.
"""

import threading
import time
from collections import deque
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable

from sales_index.batch.errors import BatchCommitError
from sales_index.observability.logger import get_logger
from sales_index.observability.metrics import (
    batch_commits_total,
    commit_duration_seconds,
    commit_retries_total,
    documents_written_total,
    increment_counter,
    observe_histogram,
)
from sales_index.store.base import DocumentStore, WriteOp, document_path, parent_collection
from sales_index.store.errors import StoreError

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 450
DEFAULT_MAX_IN_FLIGHT = 2
DEFAULT_MAX_ATTEMPTS = 6
DEFAULT_BACKOFF_BASE = 0.25


class BatchedWriter:
    """
    Accumulates writes and commits them in bounded batches with retry.

    Transient store errors are retried with quadratic backoff
    (``backoff_base * attempt**2`` seconds) up to ``max_attempts`` total
    attempts. Anything else fails the batch immediately. A failed batch
    stops the writer: later batches are not committed and the failure is
    raised as BatchCommitError from the next enqueue() or flush().

    Usage:
        with BatchedWriter(store, label="invoices") as writer:
            writer.enqueue("invoices", "INV1", {"invoiceNo": "INV1"})
    """

    def __init__(
        self,
        store: DocumentStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_in_flight: int = DEFAULT_MAX_IN_FLIGHT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        label: str = "documents",
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize writer.

        Args:
            store: Target document store
            batch_size: Writes per commit; clamped to the store's ceiling
            max_in_flight: Batches that may be queued or committing before
                enqueue() blocks
            max_attempts: Total commit attempts per batch for transient errors
            backoff_base: Backoff scale in seconds
            label: Name used in logs, metrics and errors
            sleep: Sleep function (replaced in tests)
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_in_flight <= 0:
            raise ValueError(f"max_in_flight must be positive, got {max_in_flight}")
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be positive, got {max_attempts}")

        self.store = store
        self.batch_size = min(batch_size, store.max_batch_operations)
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.label = label
        self._sleep = sleep

        self._buffer: list[WriteOp] = []
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"writer-{label}")
        self._slots = threading.BoundedSemaphore(max_in_flight)
        self._pending: deque[Future] = deque()
        self._lock = threading.Lock()
        self._error: BatchCommitError | None = None
        self._closed = False

        self.enqueued = 0
        self.committed = 0
        self.batches_committed = 0
        self.retries = 0
        self._batch_number = 0

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------

    def enqueue(self, collection_path: str, doc_id: str, document: dict[str, Any], merge: bool = True) -> None:
        """
        Queue one upsert of ``collection_path/doc_id``.

        Raises:
            BatchCommitError: If an earlier batch failed
            InvalidArgumentError: If the path is malformed
        """
        self.enqueue_path(document_path(collection_path, doc_id), document, merge=merge)

    def enqueue_path(self, path: str, document: dict[str, Any], merge: bool = True) -> None:
        """Queue one upsert addressed by full document path."""
        self._raise_if_failed()
        if self._closed:
            raise RuntimeError(f"Writer '{self.label}' is closed")

        parent_collection(path)
        self._buffer.append(WriteOp(path=path, data=document, merge=merge))
        self.enqueued += 1

        if len(self._buffer) >= self.batch_size:
            self._submit()

    def flush(self) -> int:
        """
        Commit everything buffered and wait for in-flight batches.

        Returns:
            Total documents committed by this writer so far

        Raises:
            BatchCommitError: If any batch failed
        """
        self._raise_if_failed()
        if self._buffer:
            self._submit()

        while self._pending:
            self._pending.popleft().result()

        self._raise_if_failed()
        return self.committed

    def close(self) -> None:
        """Wait for in-flight batches and stop the commit thread."""
        if not self._closed:
            self._closed = True
            self._executor.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            if exc_type is None:
                self.flush()
        finally:
            self.close()
        return False

    # ------------------------------------------------------------------
    # internals
    # ------------------------------------------------------------------

    def _raise_if_failed(self) -> None:
        if self._error is not None:
            raise self._error

    def _submit(self) -> None:
        ops, self._buffer = self._buffer, []
        self._batch_number += 1

        # Backpressure: blocks while max_in_flight batches are outstanding
        self._slots.acquire()
        try:
            future = self._executor.submit(self._commit, self._batch_number, ops)
        except BaseException:
            self._slots.release()
            raise
        self._pending.append(future)

        while self._pending and self._pending[0].done():
            self._pending.popleft()

        self._raise_if_failed()

    def _commit(self, batch_number: int, ops: list[WriteOp]) -> None:
        try:
            if self._error is not None:
                return

            start = time.monotonic()
            attempt = 0
            while True:
                attempt += 1
                try:
                    self.store.batch_write(ops)
                    break
                except StoreError as e:
                    if e.retryable and attempt < self.max_attempts:
                        wait = self.backoff_base * attempt ** 2
                        logger.warning(
                            f"{self.label}: batch {batch_number} commit failed "
                            f"({e.error_class.value}), retry {attempt}/{self.max_attempts - 1} in {wait:.2f}s: {e}"
                        )
                        with self._lock:
                            self.retries += 1
                        increment_counter(commit_retries_total, label=self.label)
                        self._sleep(wait)
                        continue
                    self._fail(batch_number, attempt, e)
                    return
                except Exception as e:
                    self._fail(batch_number, attempt, e)
                    return

            with self._lock:
                self.committed += len(ops)
                self.batches_committed += 1

            increment_counter(documents_written_total, len(ops), label=self.label)
            increment_counter(batch_commits_total, label=self.label, status="success")
            observe_histogram(commit_duration_seconds, time.monotonic() - start, label=self.label)
            logger.debug(f"{self.label}: committed batch {batch_number} ({len(ops)} docs, total {self.committed})")
        finally:
            self._slots.release()

    def _fail(self, batch_number: int, attempts: int, cause: Exception) -> None:
        with self._lock:
            committed = self.committed
        self._error = BatchCommitError(batch_number, self.label, committed, attempts, cause)
        increment_counter(batch_commits_total, label=self.label, status="failure")
        logger.error(str(self._error))
