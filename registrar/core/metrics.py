"""Application metrics using the Prometheus client library.

All metrics live here so there is one inventory of what the services
measure.  Other modules import specific metrics and increment/observe
them at the point of action.

The dependency metrics are the ones to alert on.  Neither service
retries a failed cross-service call, so a rising
``dependency_calls_total{outcome="unavailable"}`` translates one-for-one
into 503s returned to clients:

  sum by (dependency) (rate(dependency_calls_total{outcome="unavailable"}[5m]))
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
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Cross-service calls (populated by registrar.clients.base)
# ---------------------------------------------------------------------------

DEPENDENCY_CALLS = Counter(
    "dependency_calls_total",
    "Outbound calls to other services by dependency and outcome",
    # outcome: ok | not_found | unavailable | timeout | malformed | rejected
    ["dependency", "outcome"],
)

DEPENDENCY_DURATION = Histogram(
    "dependency_call_duration_seconds",
    "Outbound call duration in seconds",
    ["dependency"],
    # Upper buckets straddle the default 2s timeout.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

# ---------------------------------------------------------------------------
# Domain metrics
# ---------------------------------------------------------------------------

ENROLLMENT_TRANSITIONS = Counter(
    "enrollment_transitions_total",
    "Enrollment state machine transitions",
    ["transition"],  # enroll | re_enroll | drop | drop_noop | rejected
)

GRADE_WRITES = Counter(
    "grade_writes_total",
    "Grade record writes by operation",
    ["operation"],  # create | update | delete
)

ENRICHMENT_FALLBACKS = Counter(
    "enrichment_fallbacks_total",
    "Rows returned with placeholder data because an enrichment call failed",
    ["dependency"],
)
