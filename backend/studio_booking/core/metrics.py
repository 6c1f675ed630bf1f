"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Checkout metrics
checkout_sessions = Counter(
    'checkout_sessions_total',
    'Hosted checkout session requests',
    ['result']  # created, rejected, error
)

# Reconciliation metrics
reconciliation_events = Counter(
    'reconciliation_events_total',
    'Payment processor events processed by the reconciliation handler',
    ['event_type', 'outcome']  # applied, duplicate, noop, error
)

reconciliation_latency = Histogram(
    'reconciliation_latency_seconds',
    'Time spent applying one processor event',
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5]
)

# Refund metrics
refunds = Counter(
    'refunds_total',
    'Admin-initiated cancellations and refunds',
    ['result']  # refunded, cancelled, processor_error, local_update_failed
)

# Notification metrics
notifications = Counter(
    'notifications_total',
    'Outbound customer notifications',
    ['template', 'result']  # sent, failed
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


# Convenience functions for instrumentation
def record_checkout(result: str):
    """Record checkout session request. Result: created, rejected, error"""
    checkout_sessions.labels(result=result).inc()

def record_reconciliation(event_type: str, outcome: str):
    """Record a processed processor event."""
    reconciliation_events.labels(event_type=event_type, outcome=outcome).inc()

def record_refund(result: str):
    refunds.labels(result=result).inc()

def record_notification(template: str, sent: bool):
    result = "sent" if sent else "failed"
    notifications.labels(template=template, result=result).inc()

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
