# ==== RESILIENT REQUEST DISPATCHER ==== #

"""
Resilient request dispatcher for the expense-management API.

Every outgoing request passes a pre-flight check (deprecated stubs, circuit
breaker, throttle window) that yields an explicit decision. Requests allowed
through are sent with retries; failures are counted by the breaker and, for
reads, masked by cached or fallback data. Writes are never substituted: the
caller always learns whether a mutation really happened.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from expense_gateway.errors import (
    DispatchCancelled,
    DispatchError,
    ErrorKind,
    UpstreamStatusError,
    classify_exception,
    counts_against_circuit,
    upstream_message,
)
from expense_gateway.observability.logging import get_logger, log_performance, redact_headers
from expense_gateway.observability.metrics import (
    dispatch_errors_total,
    dispatch_latency_seconds,
    dispatch_requests_total,
)
from expense_gateway.observability.tracing import get_tracer
from expense_gateway.resilience.cache import ResponseCache
from expense_gateway.resilience.circuit_breaker import (
    CircuitAdmission,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from expense_gateway.resilience.fallback import FallbackResolver
from expense_gateway.resilience.rate_limiter import ThrottleDecision, ThrottleGuard
from expense_gateway.resilience.retry_policies import CancellationToken, RetryConfig, RetryExecutor
from expense_gateway.schemas.dispatch import DispatchResponse, EndpointKey, RequestDescriptor
from expense_gateway.security.tokens import LOGOUT_REASON_API, TokenProvider, bearer
from expense_gateway.settings import Settings
from expense_gateway.transport import HttpxTransport, Transport, TransportResponse

logger = get_logger(__name__)
tracer = get_tracer(__name__)


# ==== PRE-FLIGHT DECISIONS ==== #

@dataclass(frozen=True)
class Proceed:
    """Send the request live; ``probe`` marks the half-open trial request."""
    probe: bool = False


@dataclass(frozen=True)
class ServeCached:
    """Answer from stored data; ``outcome`` labels which store served it."""
    response: DispatchResponse
    outcome: str = "cached"


@dataclass(frozen=True)
class ServeFallback:
    response: DispatchResponse


@dataclass(frozen=True)
class Reject:
    error: DispatchError


Decision = Union[Proceed, ServeCached, ServeFallback, Reject]


# ==== CONFIGURATION ==== #

@dataclass
class DispatcherConfig:
    """Tuning of every resilience component owned by a dispatcher."""
    circuit: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    throttle_max_requests: int = 10
    throttle_window_seconds: float = 1.0
    cache_ttl_seconds: float = 300.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "DispatcherConfig":
        return cls(
            circuit=CircuitBreakerConfig(
                failure_threshold=settings.CIRCUIT_FAILURE_THRESHOLD,
                recovery_timeout=settings.CIRCUIT_RECOVERY_TIMEOUT_SECONDS,
            ),
            retry=RetryConfig(
                max_attempts=settings.RETRY_MAX_ATTEMPTS,
                base_delay=settings.RETRY_BASE_DELAY_SECONDS,
                jitter=settings.RETRY_JITTER,
                retry_network_errors=settings.RETRY_NETWORK_ERRORS,
            ),
            throttle_max_requests=settings.THROTTLE_MAX_REQUESTS,
            throttle_window_seconds=settings.THROTTLE_WINDOW_SECONDS,
            cache_ttl_seconds=settings.CACHE_TTL_SECONDS,
        )


# ==== DISPATCHER ==== #


class RequestDispatcher:
    """
    Orchestrates breaker, throttle, cache, retries and fallbacks around a call.

    All per-endpoint state belongs to the instance, so independent dispatchers
    never share breakers or caches. Safe for concurrent use from many tasks of
    one event loop.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        config: Optional[DispatcherConfig] = None,
        token_provider: Optional[TokenProvider] = None,
        fallback_resolver: Optional[FallbackResolver] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or DispatcherConfig()
        self.transport = transport
        self.token_provider = token_provider
        self.fallbacks = fallback_resolver or FallbackResolver()
        self.circuits = CircuitBreakerRegistry(self.config.circuit, clock=clock)
        self.throttle = ThrottleGuard(
            max_requests=self.config.throttle_max_requests,
            window_seconds=self.config.throttle_window_seconds,
            clock=clock,
        )
        self.cache = ResponseCache(ttl=self.config.cache_ttl_seconds, clock=clock)
        self.retry = RetryExecutor(self.config.retry, sleep=sleep)
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        token_provider: Optional[TokenProvider] = None
    ) -> "RequestDispatcher":
        transport = HttpxTransport(settings.API_BASE_URL, timeout=settings.REQUEST_TIMEOUT_SECONDS)
        return cls(
            transport,
            config=DispatcherConfig.from_settings(settings),
            token_provider=token_provider,
        )

    async def aclose(self) -> None:
        aclose = getattr(self.transport, "aclose", None)
        if aclose is not None:
            await aclose()

    async def __aenter__(self) -> "RequestDispatcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()

    # ==== PUBLIC API ==== #

    async def dispatch(
        self,
        request: RequestDescriptor,
        *,
        timeout: Optional[float] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> DispatchResponse:
        """
        Send ``request`` through the resilience pipeline.

        Args:
            request: Outgoing request descriptor
            timeout: Cap on total time spent, retries and backoff included
            cancel_token: Cooperative cancellation; ``timeout`` tightens its deadline

        Returns:
            Live response, or a cached/fallback substitute tagged as such

        Raises:
            DispatchError: When the failure cannot or must not be masked
            DispatchCancelled: When the caller's token or deadline fires first
        """
        token = cancel_token
        if timeout is not None:
            token = token or CancellationToken(clock=self._clock)
            token.limit(timeout)

        key = request.endpoint_key
        started = time.perf_counter()

        with tracer.start_as_current_span("dispatch") as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("endpoint", str(key))

            try:
                decision = await self._preflight(request, key)

                match decision:
                    case ServeCached(response=response, outcome=outcome):
                        self._count(key, outcome)
                        return response
                    case ServeFallback(response=response):
                        self._count(key, "fallback" if response.fallback else "deprecated")
                        return response
                    case Reject(error=error):
                        self._count(key, "rejected")
                        self._log_error(request, error)
                        raise error
                    case Proceed(probe=probe):
                        span.set_attribute("probe", probe)
                        return await self._dispatch_live(request, key, token, probe)
            finally:
                duration = time.perf_counter() - started
                dispatch_latency_seconds.labels(endpoint=str(key)).observe(duration)
                log_performance("dispatch", duration, endpoint=str(key))

    async def get(self, path: str, **kwargs: Any) -> DispatchResponse:
        return await self.dispatch(RequestDescriptor(method="GET", path=path), **kwargs)

    async def post(self, path: str, body: Any = None, **kwargs: Any) -> DispatchResponse:
        return await self.dispatch(RequestDescriptor(method="POST", path=path, body=body), **kwargs)

    async def put(self, path: str, body: Any = None, **kwargs: Any) -> DispatchResponse:
        return await self.dispatch(RequestDescriptor(method="PUT", path=path, body=body), **kwargs)

    async def patch(self, path: str, body: Any = None, **kwargs: Any) -> DispatchResponse:
        return await self.dispatch(RequestDescriptor(method="PATCH", path=path, body=body), **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> DispatchResponse:
        return await self.dispatch(RequestDescriptor(method="DELETE", path=path), **kwargs)

    async def stats(self) -> Dict[str, Any]:
        """Snapshot of breakers, throttle windows and the response cache."""
        return {
            "circuit_breakers": await self.circuits.snapshot(),
            "throttle": await self.throttle.snapshot(),
            "cache": await self.cache.snapshot(),
        }

    async def reset_circuit(self, key: Union[EndpointKey, str]) -> bool:
        """Reset a breaker by key or by its ``"GET /budgets"`` rendering."""
        if isinstance(key, str):
            method, _, path = key.partition(" ")
            key = EndpointKey.for_request(method, path)
        return await self.circuits.reset(key)

    # ==== PRE-FLIGHT ==== #

    async def _preflight(self, request: RequestDescriptor, key: EndpointKey) -> Decision:
        stub = self.fallbacks.deprecated(request.path)
        if stub is not None:
            return ServeFallback(stub)

        admission = await self.circuits.before_call(key)
        if admission is CircuitAdmission.SHORT_CIRCUIT:
            return await self._short_circuit(request, key, throttled=False)

        if await self.throttle.admit(key) is ThrottleDecision.THROTTLED:
            if admission is CircuitAdmission.PROBE:
                await self.circuits.release_probe(key)
            return await self._short_circuit(request, key, throttled=True)

        return Proceed(probe=admission is CircuitAdmission.PROBE)

    async def _short_circuit(self, request: RequestDescriptor, key: EndpointKey, *, throttled: bool) -> Decision:
        """Resolve a request that must not reach the network."""
        state = await self._circuit_state(key)

        if request.is_mutating:
            if throttled:
                error = DispatchError(
                    ErrorKind.CLIENT,
                    endpoint=request.path,
                    method=request.method,
                    circuit_state=state,
                    message=f"Too many calls to {request.route}",
                )
            else:
                error = DispatchError(
                    ErrorKind.SERVER,
                    status=503,
                    endpoint=request.path,
                    method=request.method,
                    circuit_state=state,
                    message=f"Circuit breaker is OPEN for {key}",
                )
            return Reject(error)

        cached = await self.cache.get(request.cache_key)
        if cached is not None:
            return ServeCached(DispatchResponse(
                data=cached.payload,
                status=200,
                status_text="OK (Cached)",
                from_cache=True,
                cache_age=cached.age,
                circuit_state=state,
            ))

        if throttled:
            last = await self.throttle.last_response(key)
            if last is not None:
                return ServeCached(
                    DispatchResponse(
                        data=last.payload,
                        status=200,
                        status_text="OK (Throttled Cache)",
                        from_cache=True,
                        cache_age=last.age,
                        circuit_state=state,
                    ),
                    outcome="throttled_cache",
                )

        return ServeFallback(self.fallbacks.resolve(request.path, request.method, state))

    # ==== LIVE CALL ==== #

    def _outgoing_headers(self, request: RequestDescriptor) -> Dict[str, str]:
        headers = dict(request.headers)
        token = self.token_provider.get_token() if self.token_provider else None
        if token:
            headers["Authorization"] = bearer(token)
        return headers

    async def _dispatch_live(
        self,
        request: RequestDescriptor,
        key: EndpointKey,
        token: Optional[CancellationToken],
        probe: bool,
    ) -> DispatchResponse:
        headers = self._outgoing_headers(request)

        async def attempt() -> TransportResponse:
            response = await self.transport.send(request, headers)
            if not 200 <= response.status < 300:
                raise UpstreamStatusError(response.status, response.data)
            return response

        try:
            response = await self.retry.execute(attempt, cancel_token=token, operation_name=str(key))
        except (DispatchCancelled, asyncio.CancelledError):
            # Abandoned probes free the half-open slot
            if probe:
                await self.circuits.release_probe(key)
            self._count(key, "cancelled")
            logger.info("Dispatch cancelled by caller", method=request.method, path=request.path)
            raise
        except Exception as exc:
            return await self._recover(request, key, exc, probe)

        await self.circuits.record_success(key)
        if request.method == "GET" and response.data is not None:
            await self.cache.put(request.cache_key, response.data)
            await self.throttle.record_response(key, response.data)

        self._count(key, "live")
        return DispatchResponse(
            data=response.data,
            status=response.status,
            status_text=response.status_text,
            circuit_state=await self._circuit_state(key),
        )

    async def _recover(
        self,
        request: RequestDescriptor,
        key: EndpointKey,
        exc: Exception,
        probe: bool,
    ) -> DispatchResponse:
        """Count the failure once, substitute data for reads, raise otherwise."""
        kind = classify_exception(exc)
        health_failure = counts_against_circuit(kind)

        if health_failure:
            await self.circuits.record_failure(key)
        elif probe:
            await self.circuits.release_probe(key)

        if kind == ErrorKind.AUTHENTICATION:
            await self._signal_logout()

        state = await self._circuit_state(key)
        fallback_attempted = health_failure and not request.is_mutating

        if fallback_attempted:
            cached = await self.cache.get(request.cache_key)
            if cached is not None:
                self._count(key, "cached")
                logger.warning(
                    "Serving cached response after failure",
                    method=request.method,
                    path=request.path,
                    kind=kind.value,
                    cache_age=round(cached.age, 3)
                )
                return DispatchResponse(
                    data=cached.payload,
                    status=200,
                    status_text="OK (Cached Fallback)",
                    from_cache=True,
                    cache_age=cached.age,
                    circuit_state=state,
                )

            self._count(key, "fallback")
            logger.warning(
                "Serving fallback response after failure",
                method=request.method,
                path=request.path,
                kind=kind.value
            )
            return self.fallbacks.resolve(request.path, request.method, state)

        error = DispatchError(
            kind,
            status=getattr(exc, "status", None),
            endpoint=request.path,
            method=request.method,
            circuit_state=state,
            fallback_attempted=fallback_attempted,
            message=upstream_message(exc),
            cause=exc,
        )
        self._count(key, "error")
        self._log_error(request, error)
        raise error from exc

    # ==== HELPERS ==== #

    async def _circuit_state(self, key: EndpointKey) -> str:
        return (await self.circuits.get_state(key)).state.value

    async def _signal_logout(self) -> None:
        # Cached payloads belong to the session that just ended
        dropped = await self.cache.clear()
        if self.token_provider is not None:
            self.token_provider.invalidate(LOGOUT_REASON_API)
        logger.info("Authentication failure signalled", dropped_cache_entries=dropped)

    def _count(self, key: EndpointKey, outcome: str) -> None:
        dispatch_requests_total.labels(endpoint=str(key), outcome=outcome).inc()

    def _log_error(self, request: RequestDescriptor, error: DispatchError) -> None:
        dispatch_errors_total.labels(endpoint=str(request.endpoint_key), kind=error.kind.value).inc()
        logger.error(
            error.message,
            method=request.method,
            endpoint=request.path,
            kind=error.kind.value,
            status=error.status,
            severity=error.severity.value,
            circuit_state=error.circuit_state,
            fallback_attempted=error.fallback_attempted,
            request_headers=redact_headers(request.headers),
        )
