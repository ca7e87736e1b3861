"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Booking metrics
booking_attempts = Counter(
    'booking_attempts_total',
    'Total booking attempts',
    ['status']  # success, conflict, error
)

booking_latency = Histogram(
    'booking_latency_seconds',
    'Booking creation latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

booking_transitions = Counter(
    'booking_transitions_total',
    'Booking status transitions',
    ['transition']  # confirm, reject, cancel, complete
)

cancellations = Counter(
    'booking_cancellations_total',
    'Client cancellations by charge kind',
    ['charge']  # free, late
)

confirmation_code_collisions = Counter(
    'confirmation_code_collisions_total',
    'Generated confirmation codes that already existed'
)

# Review metrics
reviews_submitted = Counter(
    'reviews_submitted_total',
    'Reviews attached to completed bookings'
)

# Slot metrics
slot_operations = Counter(
    'slot_operations_total',
    'Slot ledger operations',
    ['operation']  # reserve, release, upsert, reopen
)

# Notification metrics
notification_failures = Counter(
    'notification_failures_total',
    'Outbound notifications that failed to send',
    ['template']
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
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


# Convenience functions for instrumentation
def record_booking_attempt(status: str):
    """Record booking attempt. Status: success, conflict, error"""
    booking_attempts.labels(status=status).inc()

def record_transition(transition: str):
    booking_transitions.labels(transition=transition).inc()

def record_cancellation(late: bool):
    cancellations.labels(charge="late" if late else "free").inc()

def record_slot_operation(operation: str, count: int = 1):
    """Record slot ledger operation. Operation: reserve, release, upsert, reopen"""
    slot_operations.labels(operation=operation).inc(count)

def record_notification_failure(template: str):
    notification_failures.labels(template=template).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
