"""Prometheus instruments for the permutation service."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

__all__ = ["REQUEST_LATENCY", "REQUEST_OUTCOMES", "CACHE_FAILURES"]

REQUEST_LATENCY = Histogram(
    "pill_request_latency_seconds",
    "HTTP request latency",
    labelnames=("method", "endpoint"),
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)
REQUEST_OUTCOMES = Counter(
    "pill_permutation_outcomes",
    "Permutation requests by how they were answered",
    labelnames=("outcome",),
)
CACHE_FAILURES = Counter(
    "pill_cache_failures",
    "Cache operations that raised an error",
    labelnames=("operation",),
)
