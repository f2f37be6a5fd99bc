"""Prometheus metrics for projection volume, version churn, maintenance passes and audit forwarding"""

from prometheus_client import Counter, Histogram

# Projection metrics
instances_generated_counter = Counter(
    "treasury_instances_generated_total",
    "Transaction instances generated",
    ["source"],  # recurrence | loan
)

amendment_counter = Counter(
    "treasury_amendments_total",
    "Recurrence version chain changes",
    ["action"],  # amend | revert
)

# Maintenance metrics
propagated_transactions_counter = Counter(
    "treasury_propagated_transactions_total",
    "Transactions updated by field propagation",
)

duplicates_deleted_counter = Counter(
    "treasury_duplicates_deleted_total",
    "Duplicate records deleted",
    ["entity"],  # transaction | recurrence
)

# Audit webhook metrics
audit_webhook_latency_histogram = Histogram(
    "audit_webhook_latency_seconds",
    "Audit webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

audit_webhook_failure_counter = Counter(
    "audit_webhook_failures_total",
    "Failed audit webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_generation(source: str, count: int) -> None:
    """Count generated instances; zero-count runs are not recorded"""
    if count > 0:
        instances_generated_counter.labels(source=source).inc(count)
