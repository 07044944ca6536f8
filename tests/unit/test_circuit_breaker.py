"""Unit tests for the per-endpoint circuit breaker registry."""

import pytest

from expense_gateway.resilience.circuit_breaker import (
    CircuitAdmission,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
)
from expense_gateway.schemas.dispatch import EndpointKey

BUDGETS = EndpointKey.for_request("GET", "/budgets")


@pytest.mark.unit
class TestCircuitBreakerRegistry:
    """Test breaker state transitions."""

    @pytest.fixture
    def registry(self, clock):
        return CircuitBreakerRegistry(CircuitBreakerConfig(failure_threshold=5, recovery_timeout=30.0), clock=clock)

    async def trip(self, registry):
        for _ in range(5):
            await registry.record_failure(BUDGETS)

    @pytest.mark.asyncio
    async def test_unknown_endpoint_starts_closed(self, registry):
        """Test breakers are created lazily in CLOSED state."""
        state = await registry.get_state(BUDGETS)
        assert state.state == CircuitState.CLOSED
        assert state.failure_count == 0
        assert await registry.before_call(BUDGETS) == CircuitAdmission.ALLOW

    @pytest.mark.asyncio
    async def test_opens_at_threshold(self, registry):
        """Test the breaker opens on the fifth consecutive failure."""
        for _ in range(4):
            await registry.record_failure(BUDGETS)
        assert (await registry.get_state(BUDGETS)).state == CircuitState.CLOSED

        await registry.record_failure(BUDGETS)
        state = await registry.get_state(BUDGETS)
        assert state.state == CircuitState.OPEN
        assert state.failure_count == 5

    @pytest.mark.asyncio
    async def test_success_resets_failure_count(self, registry):
        """Test a success while CLOSED zeroes the count."""
        for _ in range(4):
            await registry.record_failure(BUDGETS)
        await registry.record_success(BUDGETS)

        await registry.record_failure(BUDGETS)
        assert (await registry.get_state(BUDGETS)).failure_count == 1

    @pytest.mark.asyncio
    async def test_short_circuits_until_cooldown_elapsed(self, registry, clock):
        """Test OPEN breakers refuse calls until strictly after the cooldown."""
        await self.trip(registry)

        clock.advance(30.0)
        assert not await registry.should_attempt_reset(BUDGETS)
        assert await registry.before_call(BUDGETS) == CircuitAdmission.SHORT_CIRCUIT

        clock.advance(0.5)
        assert await registry.should_attempt_reset(BUDGETS)

    @pytest.mark.asyncio
    async def test_single_probe_after_cooldown(self, registry, clock):
        """Test exactly one caller is admitted as the half-open probe."""
        await self.trip(registry)
        clock.advance(31.0)

        assert await registry.before_call(BUDGETS) == CircuitAdmission.PROBE
        assert (await registry.get_state(BUDGETS)).state == CircuitState.HALF_OPEN
        assert await registry.before_call(BUDGETS) == CircuitAdmission.SHORT_CIRCUIT
        assert await registry.before_call(BUDGETS) == CircuitAdmission.SHORT_CIRCUIT

    @pytest.mark.asyncio
    async def test_probe_success_closes(self, registry, clock):
        """Test a successful probe closes the breaker."""
        await self.trip(registry)
        clock.advance(31.0)
        await registry.before_call(BUDGETS)

        await registry.record_success(BUDGETS)

        state = await registry.get_state(BUDGETS)
        assert state.state == CircuitState.CLOSED
        assert state.failure_count == 0
        assert not state.probe_in_flight

    @pytest.mark.asyncio
    async def test_probe_failure_reopens_and_restarts_cooldown(self, registry, clock):
        """Test a failed probe reopens the breaker with a fresh cooldown."""
        await self.trip(registry)
        clock.advance(31.0)
        await registry.before_call(BUDGETS)

        await registry.record_failure(BUDGETS)

        state = await registry.get_state(BUDGETS)
        assert state.state == CircuitState.OPEN
        assert state.last_failure_time == clock()
        clock.advance(10.0)
        assert await registry.before_call(BUDGETS) == CircuitAdmission.SHORT_CIRCUIT

    @pytest.mark.asyncio
    async def test_released_probe_can_be_retaken(self, registry, clock):
        """Test releasing a probe lets the next caller probe."""
        await self.trip(registry)
        clock.advance(31.0)
        assert await registry.before_call(BUDGETS) == CircuitAdmission.PROBE

        await registry.release_probe(BUDGETS)

        assert await registry.before_call(BUDGETS) == CircuitAdmission.PROBE

    @pytest.mark.asyncio
    async def test_endpoints_are_isolated(self, registry):
        """Test failures on one endpoint leave others untouched."""
        await self.trip(registry)

        other = EndpointKey.for_request("GET", "/expenses")
        assert await registry.before_call(other) == CircuitAdmission.ALLOW

    @pytest.mark.asyncio
    async def test_manual_reset(self, registry):
        """Test reset closes a known breaker and ignores unknown ones."""
        await self.trip(registry)

        assert await registry.reset(BUDGETS)
        assert (await registry.get_state(BUDGETS)).state == CircuitState.CLOSED
        assert not await registry.reset(EndpointKey.for_request("GET", "/never-called"))

    @pytest.mark.asyncio
    async def test_snapshot(self, registry):
        """Test snapshot renders endpoint keys and state names."""
        await self.trip(registry)

        snapshot = await registry.snapshot()

        assert snapshot["GET /budgets"]["state"] == "OPEN"
        assert snapshot["GET /budgets"]["failure_threshold"] == 5

    def test_rejects_invalid_config(self):
        """Test configuration validation."""
        with pytest.raises(ValueError):
            CircuitBreakerConfig(failure_threshold=0)
        with pytest.raises(ValueError):
            CircuitBreakerConfig(recovery_timeout=0)
