"""Test doubles for time, backoff and the HTTP transport."""

from typing import Any, Dict, List, Optional, Tuple

from expense_gateway.errors import TransportError
from expense_gateway.schemas.dispatch import RequestDescriptor
from expense_gateway.transport import TransportResponse


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FakeTransport:
    """
    Transport answering from scripted outcomes per ``(method, path)``.

    Outcomes are consumed in order; the last one repeats. Exceptions are
    raised instead of returned. Unscripted routes answer 404.
    """

    def __init__(self):
        self.calls: List[Tuple[str, str, Dict[str, str]]] = []
        self.requests: List[RequestDescriptor] = []
        self._routes: Dict[Tuple[str, str], List[Any]] = {}

    def script(self, method: str, path: str, *outcomes: Any) -> None:
        self._routes[(method, path)] = list(outcomes)

    def calls_to(self, method: str, path: str) -> int:
        return sum(1 for m, p, _ in self.calls if m == method and p == path)

    async def send(self, request: RequestDescriptor, headers: Dict[str, str]) -> TransportResponse:
        self.calls.append((request.method, request.path, dict(headers)))
        self.requests.append(request)

        outcomes = self._routes.get((request.method, request.path))
        if not outcomes:
            return TransportResponse(404, {"success": False, "error": "Not found"})

        outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


def ok(data: Any = None, status: int = 200) -> TransportResponse:
    return TransportResponse(status, data if data is not None else {"success": True, "data": []})


def failure(status: int, error: Optional[str] = None) -> TransportResponse:
    return TransportResponse(status, {"success": False, "error": error or f"status {status}"})


def network_down() -> TransportError:
    return TransportError("Connection refused")
