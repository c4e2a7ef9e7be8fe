"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Reservation workflow metrics
reservation_transitions = Counter(
    'reservation_transitions_total',
    'Reservation workflow operations',
    ['action', 'outcome']  # action: create/confirm/refuse/cancel_user/cancel_admin
)

reservation_create_latency = Histogram(
    'reservation_create_latency_seconds',
    'Reservation creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

event_transitions = Counter(
    'event_transitions_total',
    'Event lifecycle operations',
    ['action']  # create, publish, cancel, delete
)

# Side effects
notifications_sent = Counter(
    'notifications_total',
    'Notification dispatch outcomes',
    ['template', 'result']  # result: sent, simulated, failed
)

tickets_generated = Counter(
    'tickets_generated_total',
    'PDF tickets generated'
)


def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Usage:
        @app.get("/metrics")
        def metrics():
            return metrics_endpoint()
    """
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_reservation(action: str, outcome: str):
    """Record a workflow operation. Outcome: success, conflict, invalid_state, forbidden, not_found"""
    reservation_transitions.labels(action=action, outcome=outcome).inc()


def record_event_transition(action: str):
    event_transitions.labels(action=action).inc()


def record_notification(template: str, result: str):
    notifications_sent.labels(template=template, result=result).inc()
