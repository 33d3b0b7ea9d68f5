"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from fastapi import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

# Reservation metrics
reservation_operations = Counter(
    'reservation_operations_total',
    'Reservation mutations',
    ['operation']  # create, update, delete
)

participation_changes = Counter(
    'participation_changes_total',
    'Users joining, confirming or leaving reservations',
    ['action']  # join, confirm, leave
)

# Notification metrics
notifications_sent = Counter(
    'notifications_sent_total',
    'Push notification deliveries attempted by the core',
    ['kind', 'result']  # new_event/new_participant/participant_left/upcoming, sent/failed
)

# Scheduled notifier metrics
upcoming_notifier_runs = Counter(
    'upcoming_notifier_runs_total',
    'Upcoming-reservation notifier runs',
    ['result']  # ok, error
)

upcoming_notifier_reservations = Counter(
    'upcoming_notifier_reservations_total',
    'Reservations seen by the upcoming notifier',
    ['result']  # flagged, skipped, error
)

upcoming_notifier_latency = Histogram(
    'upcoming_notifier_latency_seconds',
    'Duration of one notifier run',
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0]
)

# External game lookup
game_lookups = Counter(
    'game_lookups_total',
    'External game database lookups',
    ['result']  # found, missing
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)


def metrics_endpoint() -> Response:
    """Prometheus metrics endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation_operation(operation: str):
    reservation_operations.labels(operation=operation).inc()


def record_participation_change(action: str):
    participation_changes.labels(action=action).inc()


def record_notification(kind: str, sent: bool):
    result = "sent" if sent else "failed"
    notifications_sent.labels(kind=kind, result=result).inc()


def record_game_lookup(found: bool):
    game_lookups.labels(result="found" if found else "missing").inc()


def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
