"""Prometheus metrics for monitoring recurring processing runs and webhook performance"""

from prometheus_client import Counter, Histogram

from obligations_gateway.domain.models import ProcessingSummary

# Processing metrics
processed_items_counter = Counter(
    "obligations_processed_items_total",
    "Recurring obligations booked to the ledger",
    ["kind"],  # subscription | emi | template
)

item_failures_counter = Counter(
    "obligations_item_failures_total",
    "Due items skipped because processing failed",
    ["collection"],  # subscriptions | loans | templates
)

fatal_runs_counter = Counter(
    "obligations_fatal_runs_total",
    "Processing runs aborted because due items could not be listed",
)

run_duration_histogram = Histogram(
    "obligations_run_duration_seconds",
    "Wall time of one processing run",
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Summary webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_run(summary: ProcessingSummary, duration_seconds: float) -> None:
    """Record per-kind booking counts and per-collection failures of a run"""
    processed_items_counter.labels(kind="subscription").inc(summary.subscriptions)
    processed_items_counter.labels(kind="emi").inc(summary.emis)
    processed_items_counter.labels(kind="template").inc(summary.templates)

    for failure in summary.failures:
        item_failures_counter.labels(collection=failure.collection).inc()

    run_duration_histogram.observe(duration_seconds)
