"""
Prometheus metrics collection for sales-index

Counters and histograms for the import passes, the batched writer and the
buyer lookup service. All metrics live on a private registry so that tests
and embedding applications never collide with the default one.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# IMPORT METRICS
# =======================

rows_read_total = Counter(
    name="sales_index_rows_read_total",
    documentation="Total number of source rows read from input files",
    labelnames=["file_kind"],  # file_kind: headers, lines, customers, contacts
    registry=REGISTRY,
)

rows_skipped_total = Counter(
    name="sales_index_rows_skipped_total",
    documentation="Total number of source rows skipped",
    labelnames=["file_kind", "reason"],  # reason: missing_key, out_of_window, not_in_range, no_item, malformed
    registry=REGISTRY,
)

pass_duration_seconds = Histogram(
    name="sales_index_pass_duration_seconds",
    documentation="Time spent in a single import pass in seconds",
    labelnames=["pass_name"],
    buckets=[1.0, 5.0, 15.0, 30.0, 60.0, 300.0, 900.0, 1800.0, 3600.0],
    registry=REGISTRY,
)

# =======================
# WRITER METRICS
# =======================

documents_written_total = Counter(
    name="sales_index_documents_written_total",
    documentation="Total number of documents committed to the document store",
    labelnames=["label"],
    registry=REGISTRY,
)

batch_commits_total = Counter(
    name="sales_index_batch_commits_total",
    documentation="Total number of batch commits",
    labelnames=["label", "status"],  # status: success, failure
    registry=REGISTRY,
)

commit_retries_total = Counter(
    name="sales_index_commit_retries_total",
    documentation="Total number of batch commit retries after transient failures",
    labelnames=["label"],
    registry=REGISTRY,
)

commit_duration_seconds = Histogram(
    name="sales_index_commit_duration_seconds",
    documentation="Time spent committing one batch, retries included",
    labelnames=["label"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

# =======================
# LOOKUP METRICS
# =======================

lookup_requests_total = Counter(
    name="sales_index_lookup_requests_total",
    documentation="Total number of item buyer lookups",
    labelnames=["source", "status"],  # source: index, live; status: success, empty, error
    registry=REGISTRY,
)

lookup_duration_seconds = Histogram(
    name="sales_index_lookup_duration_seconds",
    documentation="Item buyer lookup latency in seconds",
    labelnames=["source"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(pass_duration_seconds, pass_name="headers"):
            ...
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    if value:
        counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """Observe a value in a histogram metric"""
    histogram.labels(**labels).observe(value)


def record_skips(file_kind: str, skipped: dict[str, int]) -> None:
    """
    Record the skip counters of one import pass.

    Args:
        file_kind: headers, lines, customers, ...
        skipped: reason -> count
    """
    for reason, count in skipped.items():
        increment_counter(rows_skipped_total, count, file_kind=file_kind, reason=reason)
