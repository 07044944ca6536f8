"""Unit tests for the fixed-window throttle guard."""

import pytest

from expense_gateway.resilience.rate_limiter import ThrottleDecision, ThrottleGuard
from expense_gateway.schemas.dispatch import EndpointKey

EXPENSES = EndpointKey.for_request("GET", "/expenses")


@pytest.mark.unit
class TestThrottleGuard:

    @pytest.fixture
    def guard(self, clock):
        return ThrottleGuard(max_requests=10, window_seconds=1.0, clock=clock)

    @pytest.mark.asyncio
    async def test_throttles_past_max_within_window(self, guard):
        """Test calls 11 and later inside one window are throttled."""
        decisions = [await guard.admit(EXPENSES) for _ in range(15)]

        assert decisions[:10] == [ThrottleDecision.ALLOW] * 10
        assert decisions[10:] == [ThrottleDecision.THROTTLED] * 5

    @pytest.mark.asyncio
    async def test_window_restarts_after_window_seconds(self, guard, clock):
        """Test the count restarts once the window has elapsed."""
        for _ in range(11):
            await guard.admit(EXPENSES)

        clock.advance(1.0)

        assert await guard.admit(EXPENSES) == ThrottleDecision.ALLOW
        snapshot = await guard.snapshot()
        assert snapshot["GET /expenses"]["count"] == 1

    @pytest.mark.asyncio
    async def test_windows_are_per_endpoint(self, guard):
        for _ in range(11):
            await guard.admit(EXPENSES)

        other = EndpointKey.for_request("GET", "/budgets")
        assert await guard.admit(other) == ThrottleDecision.ALLOW

    @pytest.mark.asyncio
    async def test_last_response_survives_window_reset(self, guard, clock):
        """Test the last payload is kept with its age across windows."""
        await guard.admit(EXPENSES)
        await guard.record_response(EXPENSES, {"data": [1]})

        clock.advance(5.0)
        await guard.admit(EXPENSES)

        last = await guard.last_response(EXPENSES)
        assert last.payload == {"data": [1]}
        assert last.age == pytest.approx(5.0)

    @pytest.mark.asyncio
    async def test_last_response_is_copied(self, guard):
        payload = {"data": [1]}
        await guard.record_response(EXPENSES, payload)
        payload["data"].append(2)

        assert (await guard.last_response(EXPENSES)).payload == {"data": [1]}

    @pytest.mark.asyncio
    async def test_no_last_response(self, guard):
        assert await guard.last_response(EXPENSES) is None

    def test_rejects_invalid_limits(self):
        with pytest.raises(ValueError):
            ThrottleGuard(max_requests=0)
        with pytest.raises(ValueError):
            ThrottleGuard(window_seconds=0)
