"""
Per-endpoint circuit breaker registry.

Stops sending live requests to an endpoint after repeated service-health
failures and lets a single probe through once the cooldown has elapsed.
"""

import asyncio
import time
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Callable, Dict, Optional

from expense_gateway.observability.logging import get_logger
from expense_gateway.observability.metrics import circuit_state, circuit_transitions_total
from expense_gateway.schemas.dispatch import EndpointKey

logger = get_logger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "CLOSED"        # Normal operation
    OPEN = "OPEN"            # Failing, requests short-circuited
    HALF_OPEN = "HALF_OPEN"  # Testing if service recovered


_STATE_GAUGE = {
    CircuitState.CLOSED: 0,
    CircuitState.HALF_OPEN: 1,
    CircuitState.OPEN: 2,
}


class CircuitAdmission(Enum):
    """Outcome of asking the breaker whether a live call may be issued."""
    ALLOW = "allow"
    PROBE = "probe"
    SHORT_CIRCUIT = "short_circuit"


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breakers."""
    failure_threshold: int = 5
    recovery_timeout: float = 30.0

    def __post_init__(self):
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout <= 0:
            raise ValueError("recovery_timeout must be positive")


@dataclass
class EndpointCircuit:
    """Breaker state of a single endpoint."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[float] = None
    last_success_time: Optional[float] = None
    probe_in_flight: bool = False

    def to_dict(self) -> dict:
        data = asdict(self)
        data["state"] = self.state.value
        return data


class CircuitBreakerRegistry:
    """
    Circuit breakers keyed by endpoint.

    States:
    - CLOSED: requests pass through, failures are counted
    - OPEN: requests are short-circuited until ``recovery_timeout`` elapses
    - HALF_OPEN: a single probe is in flight; success closes, failure reopens

    Breakers are created lazily and live as long as the registry.
    """

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config or CircuitBreakerConfig()
        self._clock = clock
        self._circuits: Dict[EndpointKey, EndpointCircuit] = {}
        self._lock = asyncio.Lock()

    def _circuit(self, key: EndpointKey) -> EndpointCircuit:
        circuit = self._circuits.get(key)
        if circuit is None:
            circuit = self._circuits[key] = EndpointCircuit()
        return circuit

    def _can_attempt_reset(self, circuit: EndpointCircuit) -> bool:
        return (
            circuit.state == CircuitState.OPEN
            and circuit.last_failure_time is not None
            and self._clock() - circuit.last_failure_time > self.config.recovery_timeout
        )

    def _transition(self, key: EndpointKey, circuit: EndpointCircuit, new_state: CircuitState) -> None:
        old_state = circuit.state
        circuit.state = new_state
        circuit_transitions_total.labels(
            endpoint=str(key),
            from_state=old_state.value,
            to_state=new_state.value
        ).inc()
        circuit_state.labels(endpoint=str(key)).set(_STATE_GAUGE[new_state])

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(
            "Circuit breaker state changed",
            endpoint=str(key),
            from_state=old_state.value,
            to_state=new_state.value,
            failure_count=circuit.failure_count
        )

    async def get_state(self, key: EndpointKey) -> EndpointCircuit:
        """Return a copy of the endpoint's breaker state."""
        async with self._lock:
            return replace(self._circuit(key))

    async def should_attempt_reset(self, key: EndpointKey) -> bool:
        """True iff the breaker is OPEN and its cooldown has elapsed."""
        async with self._lock:
            return self._can_attempt_reset(self._circuit(key))

    async def before_call(self, key: EndpointKey) -> CircuitAdmission:
        """
        Decide whether a live call may be issued for ``key``.

        An OPEN breaker past its cooldown moves to HALF_OPEN and admits the
        caller as the probe; every other caller is short-circuited until the
        probe settles.
        """
        async with self._lock:
            circuit = self._circuit(key)

            if circuit.state == CircuitState.CLOSED:
                return CircuitAdmission.ALLOW

            if circuit.state == CircuitState.OPEN:
                if not self._can_attempt_reset(circuit):
                    return CircuitAdmission.SHORT_CIRCUIT
                self._transition(key, circuit, CircuitState.HALF_OPEN)

            if circuit.probe_in_flight:
                return CircuitAdmission.SHORT_CIRCUIT
            circuit.probe_in_flight = True
            return CircuitAdmission.PROBE

    async def release_probe(self, key: EndpointKey) -> None:
        """Give up a reserved probe without judging the endpoint's health."""
        async with self._lock:
            self._circuit(key).probe_in_flight = False

    async def record_success(self, key: EndpointKey) -> None:
        async with self._lock:
            circuit = self._circuit(key)
            circuit.last_success_time = self._clock()
            circuit.probe_in_flight = False

            if circuit.state == CircuitState.HALF_OPEN:
                circuit.failure_count = 0
                self._transition(key, circuit, CircuitState.CLOSED)
            elif circuit.state == CircuitState.CLOSED:
                circuit.failure_count = 0

    async def record_failure(self, key: EndpointKey) -> None:
        async with self._lock:
            circuit = self._circuit(key)
            circuit.failure_count += 1
            circuit.last_failure_time = self._clock()
            circuit.probe_in_flight = False

            if circuit.state == CircuitState.HALF_OPEN:
                self._transition(key, circuit, CircuitState.OPEN)
            elif (circuit.state == CircuitState.CLOSED and
                  circuit.failure_count >= self.config.failure_threshold):
                self._transition(key, circuit, CircuitState.OPEN)

    async def reset(self, key: EndpointKey) -> bool:
        """Force a known breaker back to CLOSED."""
        async with self._lock:
            circuit = self._circuits.get(key)
            if circuit is None:
                return False
            circuit.failure_count = 0
            circuit.last_failure_time = None
            circuit.probe_in_flight = False
            if circuit.state != CircuitState.CLOSED:
                self._transition(key, circuit, CircuitState.CLOSED)
            return True

    async def snapshot(self) -> Dict[str, dict]:
        """Get statistics for all circuit breakers."""
        async with self._lock:
            return {
                str(key): {
                    **circuit.to_dict(),
                    "failure_threshold": self.config.failure_threshold,
                    "recovery_timeout": self.config.recovery_timeout,
                }
                for key, circuit in self._circuits.items()
            }
