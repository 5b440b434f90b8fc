"""
Unit tests for the batched writer: batching, ordering, retry and failure.
"""

import pytest

from sales_index.batch.errors import BatchCommitError
from sales_index.batch.writers.batched_writer import BatchedWriter
from sales_index.store import InMemoryDocumentStore
from sales_index.store.errors import InvalidArgumentError, PermanentStoreError, TransientStoreError


class FlakyStore(InMemoryDocumentStore):
    """In-memory store that raises queued errors before committing."""

    def __init__(self, failures=()):
        super().__init__()
        self.failures = list(failures)
        self.attempts = 0

    def batch_write(self, ops):
        self.attempts += 1
        if self.failures:
            raise self.failures.pop(0)
        super().batch_write(ops)


@pytest.mark.unit
class TestBatching:
    """Tests for batch sizing and write semantics"""

    def test_splits_into_batches(self, memory_store):
        writer = BatchedWriter(memory_store, batch_size=2, label="invoices")
        with writer:
            for i in range(5):
                writer.enqueue("invoices", f"INV{i}", {"n": i})

        assert memory_store.batch_calls == 3
        assert writer.committed == 5
        assert writer.batches_committed == 3
        assert len(memory_store.paths()) == 5

    def test_batch_size_clamped_to_store_limit(self, memory_store):
        writer = BatchedWriter(memory_store, batch_size=10_000)
        assert writer.batch_size == memory_store.max_batch_operations
        writer.close()

    def test_later_write_wins_across_batches(self, memory_store):
        """Test enqueue order is commit order"""
        with BatchedWriter(memory_store, batch_size=1) as writer:
            writer.enqueue("invoices", "INV1", {"v": 1, "keep": True}, merge=False)
            writer.enqueue("invoices", "INV1", {"v": 2})
            writer.enqueue("invoices", "INV1", {"v": 3})

        assert memory_store.get("invoices/INV1").data == {"v": 3, "keep": True}

    def test_replace_drops_old_fields(self, memory_store):
        with BatchedWriter(memory_store) as writer:
            writer.enqueue("itemCustomerIndex", "K1__0007", {"customerNos": ["A", "B"], "old": 1})
            writer.flush()
            writer.enqueue("itemCustomerIndex", "K1__0007", {"customerNos": ["A"]}, merge=False)

        assert memory_store.get("itemCustomerIndex/K1__0007").data == {"customerNos": ["A"]}

    def test_enqueue_path_for_subcollections(self, memory_store):
        with BatchedWriter(memory_store) as writer:
            writer.enqueue_path("invoices/INV1/lines/INV1__1", {"itemCode": "K1"})

        assert memory_store.get("invoices/INV1/lines/INV1__1").data == {"itemCode": "K1"}

    def test_bad_path_rejected_at_enqueue(self, memory_store):
        writer = BatchedWriter(memory_store)
        with pytest.raises(InvalidArgumentError):
            writer.enqueue("invoices", "a/b", {})
        writer.close()

    @pytest.mark.parametrize("kwargs", [
        {"batch_size": 0},
        {"max_in_flight": 0},
        {"max_attempts": 0},
    ])
    def test_invalid_settings(self, memory_store, kwargs):
        with pytest.raises(ValueError):
            BatchedWriter(memory_store, **kwargs)

    def test_closed_writer_rejects_writes(self, memory_store):
        writer = BatchedWriter(memory_store)
        writer.close()
        with pytest.raises(RuntimeError):
            writer.enqueue("invoices", "INV1", {})


@pytest.mark.unit
class TestRetry:
    """Tests for transient retry and fatal failures"""

    def test_transient_failures_are_retried(self, no_sleep):
        """Test two transient failures then success commits once"""
        store = FlakyStore([
            TransientStoreError("quota exceeded"),
            TransientStoreError("deadline exceeded"),
        ])

        with BatchedWriter(store, backoff_base=0.5, sleep=no_sleep.append) as writer:
            writer.enqueue("invoices", "INV1", {"invoiceNo": "INV1"})

        assert store.attempts == 3
        assert writer.retries == 2
        assert writer.committed == 1
        assert no_sleep == [0.5, 2.0]
        assert store.get("invoices/INV1") is not None

    def test_retry_budget_exhausted(self, no_sleep):
        store = FlakyStore([TransientStoreError("unavailable")] * 3)
        writer = BatchedWriter(store, max_attempts=3, sleep=no_sleep.append, label="lines")
        writer.enqueue("invoices", "INV1", {})

        with pytest.raises(BatchCommitError) as exc_info:
            writer.flush()
        writer.close()

        error = exc_info.value
        assert error.attempts == 3
        assert error.label == "lines"
        assert error.batch_number == 1
        assert isinstance(error.cause, TransientStoreError)
        assert store.paths() == []

    @pytest.mark.parametrize("failure", [
        PermanentStoreError("permission denied"),
        InvalidArgumentError("bad document"),
        RuntimeError("driver bug"),
    ])
    def test_non_transient_errors_fail_immediately(self, no_sleep, failure):
        store = FlakyStore([failure])
        writer = BatchedWriter(store, sleep=no_sleep.append)
        writer.enqueue("invoices", "INV1", {})

        with pytest.raises(BatchCommitError) as exc_info:
            writer.flush()
        writer.close()

        assert exc_info.value.attempts == 1
        assert exc_info.value.cause is failure
        assert store.attempts == 1
        assert no_sleep == []

    def test_failure_stops_later_batches(self, no_sleep):
        """Test nothing after a failed batch is committed"""
        store = FlakyStore([PermanentStoreError("denied")])
        writer = BatchedWriter(store, batch_size=1, max_in_flight=1, sleep=no_sleep.append)

        with pytest.raises(BatchCommitError) as exc_info:
            for i in range(10):
                writer.enqueue("invoices", f"INV{i}", {})
            writer.flush()
        writer.close()

        assert exc_info.value.committed == 0
        assert store.paths() == []

    def test_context_manager_does_not_flush_on_error(self, memory_store):
        with pytest.raises(KeyError):
            with BatchedWriter(memory_store) as writer:
                writer.enqueue("invoices", "INV1", {})
                raise KeyError("boom")

        assert memory_store.paths() == []
