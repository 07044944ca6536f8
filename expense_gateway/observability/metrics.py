# ==== PROMETHEUS METRICS ==== #

"""
Prometheus metrics for the expense gateway.

Counters and gauges describing how requests leave the dispatcher: live,
cached, throttled, substituted by fallback data or failed, together with
circuit breaker transitions and retry activity.
"""

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    REGISTRY
)


# ==== DISPATCH METRICS ==== #

dispatch_requests_total = Counter(
    "expense_gateway_dispatch_requests_total",
    "Total dispatched requests by endpoint and outcome",
    ["endpoint", "outcome"]  # outcome: live, cached, throttled_cache, fallback, deprecated, rejected, error, cancelled
)

dispatch_latency_seconds = Histogram(
    "expense_gateway_dispatch_latency_seconds",
    "Wall-clock time spent inside dispatch, retries included",
    ["endpoint"]
)

dispatch_errors_total = Counter(
    "expense_gateway_dispatch_errors_total",
    "Total errors surfaced to callers by kind",
    ["endpoint", "kind"]
)


# ==== CIRCUIT BREAKER METRICS ==== #

circuit_transitions_total = Counter(
    "expense_gateway_circuit_transitions_total",
    "Circuit breaker state transitions",
    ["endpoint", "from_state", "to_state"]
)

circuit_state = Gauge(
    "expense_gateway_circuit_state",
    "Current circuit state (0=closed, 1=half_open, 2=open)",
    ["endpoint"]
)


# ==== THROTTLE / CACHE / RETRY METRICS ==== #

throttled_requests_total = Counter(
    "expense_gateway_throttled_requests_total",
    "Requests shed by the throttle window",
    ["endpoint"]
)

cache_hits_total = Counter(
    "expense_gateway_cache_hits_total",
    "Total response cache hits",
    ["cache_type"]
)

cache_misses_total = Counter(
    "expense_gateway_cache_misses_total",
    "Total response cache misses",
    ["cache_type"]
)

retry_attempts_total = Counter(
    "expense_gateway_retry_attempts_total",
    "Total retry attempts after a failed live call",
    ["operation", "attempt"]
)

retry_failures_total = Counter(
    "expense_gateway_retry_failures_total",
    "Total live calls that failed after all attempts",
    ["operation", "error_type"]
)

# System metrics
app_info = Gauge(
    "expense_gateway_app_info",
    "Application information",
    ["version", "environment", "service_name"]
)


def init_metrics() -> None:
    """Publish static application info."""
    from expense_gateway import __version__
    from expense_gateway.settings import settings

    app_info.labels(
        version=__version__,
        environment=settings.APP_ENV,
        service_name=settings.SERVICE_NAME
    ).set(1)


def render_metrics() -> str:
    """Expose Prometheus metrics in text format."""
    return generate_latest(REGISTRY).decode("utf-8")
