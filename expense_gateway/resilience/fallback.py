"""
Fallback payloads served when neither the live API nor the cache can answer.

Rules are matched by path prefix in order, first match wins. Every payload is
tagged ``fallback: true`` so callers can tell it apart from a genuine server
response.
"""

import copy
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from expense_gateway.schemas.dispatch import DispatchResponse, strip_query, utc_timestamp


_EMPTY_PAGE = {"page": 1, "limit": 10, "total": 0}

UNAVAILABLE_MESSAGE = "Service temporarily unavailable. Please try again later."


@dataclass(frozen=True)
class FallbackRule:
    """Placeholder payload for every path under ``prefix``."""
    prefix: str
    payload: Mapping[str, Any] = field(default_factory=dict)
    status: int = 200
    status_text: str = "OK (Fallback)"

    def __post_init__(self):
        if not self.prefix.startswith("/"):
            raise ValueError("fallback prefix must start with '/'")
        object.__setattr__(self, "payload", MappingProxyType(copy.deepcopy(dict(self.payload))))

    def matches(self, route: str) -> bool:
        prefix = self.prefix.rstrip("/")
        return route == prefix or route.startswith(prefix + "/")


DEFAULT_FALLBACK_RULES: Tuple[FallbackRule, ...] = (
    FallbackRule("/settings", {
        "success": False,
        "data": [],
        "message": "Using cached settings data",
    }),
    FallbackRule("/expenses", {
        "success": False,
        "data": [],
        "pagination": _EMPTY_PAGE,
        "message": "Using cached expenses data",
    }),
    FallbackRule("/budgets", {
        "success": False,
        "data": [],
        "pagination": _EMPTY_PAGE,
        "message": "Using cached budgets data",
    }),
)

# Retired endpoints answered locally without touching the network
DEFAULT_DEPRECATED_ENDPOINTS: Mapping[str, Mapping[str, Any]] = MappingProxyType({
    "/settings/defaults": MappingProxyType({
        "success": True,
        "data": [],
        "message": "Deprecated endpoint - use /settings instead",
    }),
})


class FallbackResolver:
    """Resolves substitute responses from static rules."""

    def __init__(
        self,
        rules: Iterable[FallbackRule] = DEFAULT_FALLBACK_RULES,
        deprecated: Mapping[str, Mapping[str, Any]] = DEFAULT_DEPRECATED_ENDPOINTS,
    ):
        self._rules: Tuple[FallbackRule, ...] = tuple(rules)
        self._deprecated = MappingProxyType({
            path.rstrip("/") or "/": MappingProxyType(copy.deepcopy(dict(payload)))
            for path, payload in deprecated.items()
        })

    @property
    def rules(self) -> Tuple[FallbackRule, ...]:
        return self._rules

    def match(self, path: str) -> Optional[FallbackRule]:
        route = strip_query(path)
        for rule in self._rules:
            if rule.matches(route):
                return rule
        return None

    def resolve(self, path: str, method: str = "GET", circuit_state: str = "CLOSED") -> DispatchResponse:
        """
        Build the fallback response for ``path``.

        Args:
            path: Request path, query string allowed
            method: HTTP method of the request
            circuit_state: Breaker state to report alongside the payload

        Returns:
            Response tagged ``fallback``; status 503 when no rule matches
        """
        rule = self.match(path)
        if rule is not None:
            payload = copy.deepcopy(dict(rule.payload))
            status, status_text = rule.status, rule.status_text
        else:
            payload = {"success": False, "message": UNAVAILABLE_MESSAGE}
            status, status_text = 503, "Service Unavailable (Fallback)"

        payload.update(fallback=True, endpoint=path, method=method.upper(), timestamp=utc_timestamp())
        return DispatchResponse(
            data=payload,
            status=status,
            status_text=status_text,
            fallback=True,
            circuit_state=circuit_state,
        )

    def deprecated(self, path: str, circuit_state: str = "CLOSED") -> Optional[DispatchResponse]:
        """Local stub for a retired endpoint, or None."""
        payload = self._deprecated.get(strip_query(path).rstrip("/") or "/")
        if payload is None:
            return None
        return DispatchResponse(
            data=copy.deepcopy(dict(payload)),
            status=200,
            status_text="OK (Deprecated)",
            circuit_state=circuit_state,
        )
