"""Prometheus metric definitions for the experiment registry."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# --- Blob store ---

store_calls_total = Counter(
    "labledger_store_calls_total",
    "Total blob store calls",
    labelnames=["method", "outcome"],
)

# --- Operations ---

operations_total = Counter(
    "labledger_operations_total",
    "Total user-visible operations by terminal outcome",
    labelnames=["kind", "outcome"],
)

operation_duration_seconds = Histogram(
    "labledger_operation_duration_seconds",
    "Time from pending to terminal state for an operation",
    labelnames=["kind"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120),
)

# --- Refresh ---

refresh_skipped_total = Counter(
    "labledger_refresh_skipped_total",
    "Index entries skipped during a refresh",
    labelnames=["reason"],
)

# --- Retry ---

retry_attempts_total = Counter(
    "labledger_retry_attempts_total",
    "Total retry attempts for read calls",
    labelnames=["fn_name"],
)
