"""Prometheus metric inventory.

Every metric the service exports is declared here; the modules that own
the behaviour import and increment them.  Scraped via GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, route, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Document rendering sits in the 100ms-1s range; everything else
    # should land well under 100ms.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Credential lifecycle
# ---------------------------------------------------------------------------

CREDENTIALS_ISSUED = Counter(
    "credentials_issued_total",
    "Successful issuance calls",
    ["outcome"],  # "created" or "existing" (idempotent return)
)

ISSUANCE_REJECTED = Counter(
    "credential_issuance_rejected_total",
    "Issuance requests that did not produce a credential",
    ["reason"],  # not_eligible|no_content|course_not_found
)

VERIFICATIONS = Counter(
    "credential_verifications_total",
    "Public verification lookups by result",
    ["result"],  # valid|invalid|expired
)

RENDER_FAILURES = Counter(
    "credential_render_failures_total",
    "Document renders that raised RenderError",
)

RENDER_DURATION = Histogram(
    "credential_render_duration_seconds",
    "Time spent building one credential document",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

RATE_LIMIT_HITS = Counter(
    "rate_limit_hits_total",
    "Requests rejected by rate limiting (429s)",
    ["key_type"],  # "user" or "ip"
)
