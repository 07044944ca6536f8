"""
Resilience patterns used by the request dispatcher.

This package provides per-endpoint building blocks:
- Circuit Breaker: Stops calling an endpoint that keeps failing
- Throttle Guard: Sheds bursts of calls to one endpoint
- Response Cache: Serves recent GET payloads while an endpoint is down
- Fallback Resolver: Static placeholder payloads when nothing else answers
- Retry: Exponential backoff for transient server failures
"""

from .cache import CachedPayload, ResponseCache
from .circuit_breaker import (
    CircuitAdmission,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    EndpointCircuit,
)
from .fallback import DEFAULT_FALLBACK_RULES, FallbackResolver, FallbackRule
from .rate_limiter import ThrottleDecision, ThrottleGuard
from .retry_policies import CancellationToken, RetryConfig, RetryExecutor

__all__ = [
    "CachedPayload",
    "ResponseCache",
    "CircuitAdmission",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "EndpointCircuit",
    "DEFAULT_FALLBACK_RULES",
    "FallbackResolver",
    "FallbackRule",
    "ThrottleDecision",
    "ThrottleGuard",
    "CancellationToken",
    "RetryConfig",
    "RetryExecutor",
]
