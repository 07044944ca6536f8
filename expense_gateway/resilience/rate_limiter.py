"""
Throttle guard using a fixed counting window per endpoint.

Sheds bursts of requests to the same endpoint (a re-rendering UI polling in a
loop, a retry storm) instead of sending them. Shed requests are answered from
the response cache or the last response seen for the endpoint, so this is a
load-shedding valve rather than a hard rate limit.
"""

import asyncio
import copy
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional

from expense_gateway.observability.logging import get_logger
from expense_gateway.observability.metrics import throttled_requests_total
from expense_gateway.schemas.dispatch import EndpointKey

logger = get_logger(__name__)


class ThrottleDecision(Enum):
    ALLOW = "allow"
    THROTTLED = "throttled"


@dataclass
class ThrottleWindow:
    """Counting window of a single endpoint."""
    window_start: float
    count: int = 1
    last_response_payload: Any = None
    last_response_at: Optional[float] = None


@dataclass(frozen=True)
class LastResponse:
    payload: Any
    age: float


class ThrottleGuard:
    """
    Fixed-window request counter keyed by endpoint.

    The window restarts (count back to 1) on the first request observed
    ``window_seconds`` or more after it started; requests past
    ``max_requests`` inside a window are THROTTLED.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._windows: Dict[EndpointKey, ThrottleWindow] = {}
        self._lock = asyncio.Lock()

    async def admit(self, key: EndpointKey) -> ThrottleDecision:
        """
        Count a request for ``key`` and decide whether it may be sent.

        Args:
            key: Endpoint the request targets

        Returns:
            ALLOW, or THROTTLED when the window's budget is spent
        """
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)

            if window is None:
                self._windows[key] = ThrottleWindow(window_start=now)
                return ThrottleDecision.ALLOW

            if now - window.window_start >= self.window_seconds:
                window.window_start = now
                window.count = 1
                return ThrottleDecision.ALLOW

            window.count += 1
            if window.count <= self.max_requests:
                return ThrottleDecision.ALLOW

        throttled_requests_total.labels(endpoint=str(key)).inc()
        logger.debug(
            "Request throttled",
            endpoint=str(key),
            count=window.count,
            max_requests=self.max_requests
        )
        return ThrottleDecision.THROTTLED

    async def record_response(self, key: EndpointKey, payload: Any) -> None:
        """Remember the latest successful payload for ``key``."""
        async with self._lock:
            now = self._clock()
            window = self._windows.get(key)
            if window is None:
                window = self._windows[key] = ThrottleWindow(window_start=now, count=0)
            window.last_response_payload = copy.deepcopy(payload)
            window.last_response_at = now

    async def last_response(self, key: EndpointKey) -> Optional[LastResponse]:
        async with self._lock:
            window = self._windows.get(key)
            if window is None or window.last_response_at is None:
                return None
            return LastResponse(
                payload=copy.deepcopy(window.last_response_payload),
                age=self._clock() - window.last_response_at
            )

    async def snapshot(self) -> Dict[str, dict]:
        """Get per-endpoint window statistics."""
        async with self._lock:
            now = self._clock()
            return {
                str(key): {
                    "count": window.count,
                    "window_age": now - window.window_start,
                    "has_last_response": window.last_response_at is not None,
                    "max_requests": self.max_requests,
                    "window_seconds": self.window_seconds,
                }
                for key, window in self._windows.items()
            }
