"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at the /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    "sportsbook_booking_attempts_total",
    "Booking creation attempts",
    ["outcome"],  # created, conflict, invalid, race_lost
)

booking_transitions = Counter(
    "sportsbook_booking_transitions_total",
    "Booking status transitions",
    ["from_status", "to_status", "actor"],  # actor: owner, admin
)

# Availability grid cache
availability_cache = Counter(
    "sportsbook_availability_cache_total",
    "Availability grid cache lookups",
    ["result"],  # hit, miss
)

# Notification fan-out
notifications_created = Counter(
    "sportsbook_notifications_created_total",
    "Notifications persisted",
    ["type"],
)

notification_pushes = Counter(
    "sportsbook_notification_pushes_total",
    "Real-time push attempts",
    ["result"],  # delivered, skipped, failed
)

websocket_connections = Gauge(
    "sportsbook_websocket_connections",
    "Authenticated WebSocket connections held by this process",
)

# Background jobs
background_jobs = Counter(
    "sportsbook_background_jobs_total",
    "Background job outcomes",
    ["job", "outcome"],  # outcome: succeeded, retried, failed
)

# HTTP
request_latency = Histogram(
    "sportsbook_request_latency_seconds",
    "HTTP request latency",
    ["method", "status_class"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)


def metrics_endpoint() -> Response:
    """Prometheus exposition of the default registry."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


def record_booking_attempt(outcome: str):
    booking_attempts.labels(outcome=outcome).inc()


def record_transition(from_status: str, to_status: str, actor: str):
    booking_transitions.labels(from_status=from_status, to_status=to_status, actor=actor).inc()


def record_cache_lookup(hit: bool):
    availability_cache.labels(result="hit" if hit else "miss").inc()


def record_push(result: str):
    """Result: delivered, skipped, failed"""
    notification_pushes.labels(result=result).inc()


def record_background_job(job: str, outcome: str):
    background_jobs.labels(job=job, outcome=outcome).inc()
