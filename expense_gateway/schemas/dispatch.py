# ==== DISPATCH SCHEMAS ==== #

"""
Request and response shapes exchanged with the dispatcher.

``RequestDescriptor`` is what application code hands in, ``DispatchResponse``
is what it gets back, whether the payload came from the live API, the response
cache, the throttle window or a fallback rule. ``EndpointKey`` identifies the
per-endpoint state (breaker, throttle window) a request maps onto.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator


HttpMethod = Literal["GET", "POST", "PUT", "DELETE", "PATCH"]

MUTATING_METHODS = frozenset({"POST", "PUT", "DELETE", "PATCH"})

# Path segments that identify a single resource rather than a route
_ID_SEGMENT = re.compile(
    r"^(?:\d+"
    r"|[0-9a-fA-F]{24}"
    r"|[0-9a-fA-F]{32,}"
    r"|[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})$"
)


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def strip_query(path: str) -> str:
    """Drop the query string and fragment from ``path``."""
    return urlsplit(path).path or "/"


def path_template(path: str) -> str:
    """Collapse identifier segments so ``/budgets/42`` becomes ``/budgets/:id``."""
    segments = strip_query(path).split("/")
    return "/".join(":id" if _ID_SEGMENT.match(seg) else seg for seg in segments)


@dataclass(frozen=True)
class EndpointKey:
    """HTTP method plus path template; keys all per-endpoint state."""

    method: str
    path_template: str

    @classmethod
    def for_request(cls, method: str, path: str) -> "EndpointKey":
        return cls(method.upper(), path_template(path))

    def __str__(self) -> str:
        return f"{self.method} {self.path_template}"


# ==== INBOUND REQUEST ==== #

class RequestDescriptor(BaseModel):
    """Outgoing request as described by application code."""

    method: HttpMethod = "GET"
    path: str = Field(..., min_length=1, description="Path relative to the API base URL, query string included")
    body: Any = None
    headers: Dict[str, str] = Field(default_factory=dict)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        return v.upper() if isinstance(v, str) else v

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        if not v.startswith("/"):
            raise ValueError("path must start with '/'")
        return v

    @property
    def is_mutating(self) -> bool:
        return self.method in MUTATING_METHODS

    @property
    def endpoint_key(self) -> EndpointKey:
        return EndpointKey.for_request(self.method, self.path)

    @property
    def cache_key(self) -> str:
        return f"{self.method}:{self.path}"

    @property
    def route(self) -> str:
        """Path without the query string."""
        return strip_query(self.path)


# ==== RESPONSE ==== #

class DispatchResponse(BaseModel):
    """
    Response returned to callers.

    ``from_cache`` and ``fallback`` flag degraded responses so the UI can show
    a freshness indicator instead of an error screen.
    """

    data: Any = None
    status: int
    status_text: str = "OK"
    from_cache: bool = False
    cache_age: Optional[float] = None
    fallback: bool = False
    circuit_state: str
    timestamp: str = Field(default_factory=utc_timestamp)

    @property
    def degraded(self) -> bool:
        return self.from_cache or self.fallback

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def to_dict(self) -> Dict[str, Any]:
        """Render with the camelCase keys UI code expects."""
        data: Dict[str, Any] = {
            "data": self.data,
            "status": self.status,
            "statusText": self.status_text,
            "circuitState": self.circuit_state,
            "timestamp": self.timestamp,
        }
        if self.from_cache:
            data["fromCache"] = True
            data["cacheAge"] = self.cache_age
        if self.fallback:
            data["fallback"] = True
        return data
