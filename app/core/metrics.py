"""Prometheus metrics inventory.

Every metric the service exposes is declared here; the modules that own
the behaviour import and increment them.  HTTP metrics are fed by
MetricsMiddleware, the progress metrics by the cascade engine and the
certificate issuer.  Counters only; anything that needs a current value
(e.g. "users with a series in progress") belongs in a SQL query, not in
process memory.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # A completion touches up to five rows in one transaction; anything past
    # 500ms means lock waits on a shared section/series row.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Progress cascade metrics
# ---------------------------------------------------------------------------

PROGRESS_OPERATIONS = Counter(
    "progress_operations_total",
    "Committed progress operations by hierarchy level and operation",
    ["level", "operation"],  # level: language|series|section|lesson
)

LESSONS_COMPLETED = Counter(
    "lessons_completed_total",
    "Lessons transitioned from not-completed to completed",
)

CERTIFICATES_ISSUED = Counter(
    "certificates_issued_total",
    "Certificates created because a series became fully completed",
)

CERTIFICATES_REVOKED = Counter(
    "certificates_revoked_total",
    "Certificates deleted because their series was un-completed or reset",
)

TRANSACTION_RETRIES = Counter(
    "progress_transaction_retries_total",
    "Units of work re-run after a unique-constraint race",
    ["operation"],
)
