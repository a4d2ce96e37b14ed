"""Prometheus metrics for the BloodLink notification client.

Event bus traffic, REST latency/status, push ingestion outcomes, badge health.
"""

from prometheus_client import Counter, Histogram

# ── Event Bus ────────────────────────────────────────────────

EVENTS_PUBLISHED = Counter(
    "bloodlink_events_published_total",
    "Events published on the in-process bus",
    ["event"],
)

EVENT_HANDLER_ERRORS = Counter(
    "bloodlink_event_handler_errors_total",
    "Event handlers that raised during dispatch",
    ["event"],
)

# ── REST API ─────────────────────────────────────────────────

API_REQUESTS = Counter(
    "bloodlink_api_requests_total",
    "Total BloodLink REST API requests",
    ["method", "endpoint", "status"],
)

API_LATENCY = Histogram(
    "bloodlink_api_latency_seconds",
    "BloodLink REST API request latency",
    ["method", "endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

# ── Push / Badge ─────────────────────────────────────────────

PUSH_MESSAGES = Counter(
    "bloodlink_push_messages_total",
    "Push messages received from the provider",
    ["mode", "outcome"],
)

BADGE_FETCH_FAILURES = Counter(
    "bloodlink_badge_fetch_failures_total",
    "Unread-count fetches that failed inside a badge controller",
)
