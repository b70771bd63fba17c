"""Prometheus metrics for provider calls, callbacks and HTTP latency"""

from prometheus_client import Counter, Histogram

# PawaPay API metrics
pawapay_request_counter = Counter(
    "pawapay_requests_total",
    "Total PawaPay API calls",
    ["operation", "outcome"],  # ok | rejected | transient | invalid_response
)

pawapay_latency_histogram = Histogram(
    "pawapay_request_latency_seconds",
    "PawaPay API response time",
    ["operation"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

gating_rejection_counter = Counter(
    "pawapay_gating_rejections_total",
    "Payments refused because the correspondent was not OPERATIONAL",
    ["operation_type"],
)

# Inbound webhook metrics
webhook_event_counter = Counter(
    "webhook_events_total",
    "Inbound provider callbacks",
    ["provider", "outcome"],  # acknowledged | invalid_signature | malformed | unknown_provider
)

webhook_processing_failure_counter = Counter(
    "webhook_processing_failures_total",
    "Callbacks acknowledged but not processed",
    ["provider"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_gateway_call(operation: str, outcome: str, duration_seconds: float) -> None:
    """Record outcome and latency of one PawaPay call"""
    pawapay_request_counter.labels(operation=operation, outcome=outcome).inc()
    pawapay_latency_histogram.labels(operation=operation).observe(duration_seconds)


def record_webhook(provider: str, outcome: str) -> None:
    webhook_event_counter.labels(provider=provider, outcome=outcome).inc()
