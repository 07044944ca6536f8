"""Retry executor with exponential backoff for live API calls."""

import asyncio
import time
from contextlib import suppress
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random_exponential,
)

from expense_gateway.errors import DispatchCancelled, TransportError, UpstreamStatusError
from expense_gateway.observability.logging import get_logger
from expense_gateway.observability.metrics import retry_attempts_total, retry_failures_total

logger = get_logger(__name__)

T = TypeVar("T")


async def _settle(*tasks: "asyncio.Future[Any]") -> None:
    """Cancel tasks still pending and wait until they have finished."""
    pending = [task for task in tasks if not task.done()]
    for task in pending:
        task.cancel()
    if pending:
        await asyncio.wait(pending)
    for task in pending:
        if not task.cancelled():
            task.exception()


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = False
    retry_network_errors: bool = False

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0:
            raise ValueError("base_delay must not be negative")


class CancellationToken:
    """
    Cooperative cancellation with an optional deadline.

    A dispatch observing a token starts no new attempt once it is cancelled,
    cuts backoff sleeps short, and abandons an attempt still in flight.
    """

    def __init__(self, timeout: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._event = asyncio.Event()
        self.deadline: Optional[float] = None if timeout is None else clock() + timeout

    def cancel(self) -> None:
        self._event.set()

    def limit(self, timeout: float) -> None:
        """Tighten the deadline to at most ``timeout`` seconds from now."""
        deadline = self._clock() + timeout
        if self.deadline is None or deadline < self.deadline:
            self.deadline = deadline

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - self._clock())

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or self.remaining() == 0.0

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise DispatchCancelled("Dispatch cancelled before completion")

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait up to ``timeout`` (bounded by the deadline); True if cancelled."""
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        with suppress(asyncio.TimeoutError):
            await asyncio.wait_for(self._event.wait(), timeout=timeout)
        return self.cancelled


class RetryExecutor:
    """
    Bounded re-invocation of a live call.

    Only 5xx responses are retried (transport failures too when
    ``retry_network_errors`` is set). The delay before attempt ``n`` is
    ``base_delay * exponential_base ** (n - 2)``; with ``jitter`` the delay is
    drawn uniformly below that value instead. Once attempts are exhausted the
    last error is re-raised unchanged.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep

    def is_retryable(self, exception: BaseException) -> bool:
        """Determine if exception should trigger retry."""
        if isinstance(exception, UpstreamStatusError):
            return 500 <= exception.status < 600
        if isinstance(exception, TransportError):
            return self.config.retry_network_errors
        return False

    def _wait_strategy(self):
        if self.config.jitter:
            return wait_random_exponential(
                multiplier=self.config.base_delay,
                max=self.config.max_delay,
                exp_base=self.config.exponential_base
            )
        return wait_exponential(
            multiplier=self.config.base_delay,
            max=self.config.max_delay,
            exp_base=self.config.exponential_base
        )

    def _sleeper(self, token: Optional[CancellationToken]) -> Callable[[float], Awaitable[None]]:
        if token is None:
            return self._sleep

        async def sleep(seconds: float) -> None:
            # Backoff ends early when the token fires
            pause = asyncio.ensure_future(self._sleep(seconds))
            watcher = asyncio.ensure_future(token.wait())
            try:
                await asyncio.wait({pause, watcher}, return_when=asyncio.FIRST_COMPLETED)
            finally:
                await _settle(pause, watcher)

        return sleep

    def _before_sleep_callback(self, operation_name: str):
        def callback(retry_state):
            attempt = retry_state.attempt_number
            retry_attempts_total.labels(operation=operation_name, attempt=str(attempt)).inc()
            logger.warning(
                "Live call failed, waiting before next attempt",
                operation=operation_name,
                attempt=attempt,
                max_attempts=self.config.max_attempts,
                delay=retry_state.next_action.sleep,
                error=str(retry_state.outcome.exception())
            )

        return callback

    async def _run_attempt(self, call: Callable[[], Awaitable[T]], token: Optional[CancellationToken]) -> T:
        if token is None:
            return await call()

        token.raise_if_cancelled()
        attempt = asyncio.ensure_future(call())
        watcher = asyncio.ensure_future(token.wait())
        try:
            await asyncio.wait({attempt, watcher}, return_when=asyncio.FIRST_COMPLETED)
            if attempt.done():
                return attempt.result()
        finally:
            await _settle(attempt, watcher)

        raise DispatchCancelled("Dispatch cancelled while the live call was in flight")

    async def execute(
        self,
        call: Callable[[], Awaitable[T]],
        *,
        cancel_token: Optional[CancellationToken] = None,
        operation_name: str = "dispatch"
    ) -> Any:
        """
        Run ``call`` until it succeeds, fails permanently or attempts run out.

        Args:
            call: Zero-argument coroutine function performing one live attempt
            cancel_token: Optional cooperative cancellation / deadline
            operation_name: Label for logs and metrics

        Returns:
            Result of the first successful attempt

        Raises:
            Exception: The last attempt's error, unchanged
            DispatchCancelled: If the token fires before a result is available
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.max_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_exception(self.is_retryable),
            sleep=self._sleeper(cancel_token),
            before_sleep=self._before_sleep_callback(operation_name),
            reraise=True,
        )

        try:
            async for attempt in retrying:
                with attempt:
                    result = await self._run_attempt(call, cancel_token)
        except Exception as exc:
            if self.is_retryable(exc):
                retry_failures_total.labels(
                    operation=operation_name,
                    error_type=type(exc).__name__
                ).inc()
                logger.error(
                    "All retry attempts exhausted",
                    operation=operation_name,
                    max_attempts=self.config.max_attempts,
                    error=str(exc)
                )
            raise

        return result
