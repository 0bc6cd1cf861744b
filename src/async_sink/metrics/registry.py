"""
Prometheus metrics for async sink writers.

Metrics live in the global prometheus_client REGISTRY and are labelled by
writer id. Expose them with ``prometheus_client.start_http_server``.
"""

from prometheus_client import Counter, Gauge, Histogram

ENTRIES_WRITTEN_TOTAL = Counter(
    "async_sink_entries_written_total",
    "Elements accepted by write() and converted to request entries",
    ["writer"],
)

BATCHES_DISPATCHED_TOTAL = Counter(
    "async_sink_batches_dispatched_total",
    "Batches handed to the destination",
    ["writer"],
)

ENTRIES_REQUEUED_TOTAL = Counter(
    "async_sink_entries_requeued_total",
    "Entries reported failed by the destination and requeued for retry",
    ["writer"],
)

BACKPRESSURE_WAITS_TOTAL = Counter(
    "async_sink_backpressure_waits_total",
    "Times a writer suspended its caller",
    ["writer", "reason"],
)

BATCH_SIZE = Histogram(
    "async_sink_batch_size",
    "Entries per dispatched batch",
    ["writer"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500, 1000, 5000],
)

REQUEST_LATENCY_MS = Histogram(
    "async_sink_request_latency_ms",
    "Time from dispatch to completion in milliseconds",
    ["writer"],
    buckets=[1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000],
)

BUFFERED_ENTRIES = Gauge(
    "async_sink_buffered_entries",
    "Entries waiting in the writer buffer",
    ["writer"],
)

IN_FLIGHT_REQUESTS = Gauge(
    "async_sink_in_flight_requests",
    "Batches dispatched and not yet completed",
    ["writer"],
)


class MetricsRegistry:
    """Structured access to the writer metrics."""

    entries_written_total = ENTRIES_WRITTEN_TOTAL
    batches_dispatched_total = BATCHES_DISPATCHED_TOTAL
    entries_requeued_total = ENTRIES_REQUEUED_TOTAL
    backpressure_waits_total = BACKPRESSURE_WAITS_TOTAL
    batch_size = BATCH_SIZE
    request_latency_ms = REQUEST_LATENCY_MS
    buffered_entries = BUFFERED_ENTRIES
    in_flight_requests = IN_FLIGHT_REQUESTS


# Singleton instance
metrics_registry = MetricsRegistry()
