"""Prometheus metrics for modelgate."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

modelgate_requests_total = Counter(
    "modelgate_requests_total",
    "Total dispatched provider calls",
    ["provider", "capability", "stream", "status"],
)
modelgate_request_duration_seconds = Histogram(
    "modelgate_request_duration_seconds",
    "Provider call duration in seconds (non-streaming calls)",
    ["provider", "capability"],
    buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)
modelgate_errors_total = Counter(
    "modelgate_errors_total",
    "Total dispatch errors by error code",
    ["provider", "capability", "code"],
)
modelgate_tokens_total = Counter(
    "modelgate_tokens_total",
    "Total tokens reported by providers",
    ["provider", "kind"],
)
modelgate_structured_invalid_total = Counter(
    "modelgate_structured_invalid_total",
    "Structured outputs returned with valid=false",
    ["provider"],
)
