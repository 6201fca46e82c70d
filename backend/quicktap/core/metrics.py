"""
Metrics instrumentation for observability.
Exposes Prometheus-compatible metrics at /metrics endpoint.
"""

from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# Hold / lease metrics
hold_attempts = Counter(
    'seat_hold_attempts_total',
    'Total seat hold attempts',
    ['result']  # success, conflict, error
)

hold_latency = Histogram(
    'seat_hold_latency_seconds',
    'Seat hold request latency',
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0]
)

confirmations = Counter(
    'seat_confirmations_total',
    'Bookings confirmed, by payment method',
    ['method']  # cash, gateway
)

payment_verifications = Counter(
    'payment_verifications_total',
    'Gateway signature verifications',
    ['result']  # valid, invalid
)

# Sweeper metrics
sweeper_runs = Counter(
    'seat_sweeper_runs_total',
    'Reclamation sweeper cycles',
    ['result']  # success, failed
)

seats_reclaimed = Counter(
    'seats_reclaimed_total',
    'Bookings moved to expired',
    ['source']  # sweeper, lazy, admin, cancel
)

active_leases = Gauge(
    'seat_active_leases',
    'Active leases observed on the last status read'
)

# Cache metrics
cache_operations = Counter(
    'cache_operations_total',
    'Cache operations',
    ['operation', 'result']  # get/set, hit/miss
)

redis_connection_errors = Counter(
    'redis_connection_errors_total',
    'Redis connection errors'
)


def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


def record_hold_attempt(result: str):
    """Record hold attempt. Result: success, conflict, error"""
    hold_attempts.labels(result=result).inc()

def record_confirmation(method: str):
    confirmations.labels(method=method).inc()

def record_payment_verification(valid: bool):
    payment_verifications.labels(result="valid" if valid else "invalid").inc()

def record_sweep(success: bool, reclaimed: int = 0):
    sweeper_runs.labels(result="success" if success else "failed").inc()
    if reclaimed:
        seats_reclaimed.labels(source="sweeper").inc(reclaimed)

def record_reclaimed(source: str, count: int):
    if count:
        seats_reclaimed.labels(source=source).inc(count)

def record_cache_operation(operation: str, hit: bool):
    """Record cache operation."""
    result = "hit" if hit else "miss"
    cache_operations.labels(operation=operation, result=result).inc()
