"""
Error taxonomy for the expense gateway.

Failures of a dispatched request are classified by what they say about the
backend: NETWORK and SERVER failures are service-health signals (retried,
counted by the circuit breaker, masked by cache/fallback for reads), while
VALIDATION, AUTHENTICATION and AUTHORIZATION failures are caller problems that
always reach the caller untouched.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorKind(str, Enum):
    """Error categories."""
    NETWORK = "NETWORK"                # no response received
    SERVER = "SERVER"                  # 5xx
    VALIDATION = "VALIDATION"          # 4xx other than 401/403
    AUTHENTICATION = "AUTHENTICATION"  # 401
    AUTHORIZATION = "AUTHORIZATION"    # 403
    CLIENT = "CLIENT"                  # rejected locally, never sent
    UNKNOWN = "UNKNOWN"


class ErrorSeverity(str, Enum):
    """Error severity levels."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


_SEVERITY = {
    ErrorKind.NETWORK: ErrorSeverity.HIGH,
    ErrorKind.SERVER: ErrorSeverity.HIGH,
    ErrorKind.AUTHENTICATION: ErrorSeverity.HIGH,
    ErrorKind.AUTHORIZATION: ErrorSeverity.HIGH,
    ErrorKind.VALIDATION: ErrorSeverity.MEDIUM,
    ErrorKind.CLIENT: ErrorSeverity.LOW,
    ErrorKind.UNKNOWN: ErrorSeverity.MEDIUM,
}

_DEFAULT_MESSAGES = {
    ErrorKind.NETWORK: "Network error. Please check your connection and try again.",
    ErrorKind.SERVER: "Server error. Please try again later.",
    ErrorKind.AUTHENTICATION: "Authentication required. Please log in again.",
    ErrorKind.AUTHORIZATION: "You do not have permission to perform this action.",
    ErrorKind.VALIDATION: "The request was rejected by the server.",
    ErrorKind.CLIENT: "The request was not sent.",
    ErrorKind.UNKNOWN: "An unexpected error occurred",
}

_USER_MESSAGES = {
    ErrorKind.NETWORK: "Unable to connect to the server. Please check your internet connection.",
    ErrorKind.AUTHENTICATION: "Your session has expired. Please log in again.",
    ErrorKind.AUTHORIZATION: "You do not have permission to perform this action.",
    ErrorKind.SERVER: "Server is temporarily unavailable. Please try again later.",
}


class ErrorResponse(BaseModel):
    """Normalized error shape handed to upstream error handling."""

    kind: ErrorKind
    status: Optional[int] = None
    endpoint: str
    method: Optional[str] = None
    circuit_state: str
    fallback_attempted: bool = False
    severity: ErrorSeverity
    message: str
    timestamp: str


class GatewayError(Exception):
    """Base exception for the expense gateway."""


class TransportError(GatewayError):
    """No response was received from the API (connection, DNS, timeout)."""

    def __init__(self, message: str = "No response received", cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class UpstreamStatusError(GatewayError):
    """The API answered with a non-2xx status."""

    def __init__(self, status: int, payload: Any = None):
        self.status = status
        self.payload = payload
        super().__init__(f"Upstream responded with status {status}")


class DispatchCancelled(GatewayError):
    """The caller abandoned the dispatch (deadline expired or token cancelled)."""


class DispatchError(GatewayError):
    """Unrecoverable dispatch failure, raised to the caller."""

    def __init__(
        self,
        kind: ErrorKind,
        *,
        endpoint: str,
        circuit_state: str,
        status: Optional[int] = None,
        method: Optional[str] = None,
        fallback_attempted: bool = False,
        message: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        self.kind = kind
        self.status = status
        self.endpoint = endpoint
        self.method = method
        self.circuit_state = circuit_state
        self.fallback_attempted = fallback_attempted
        self.severity = severity_for(kind)
        self.message = message or _DEFAULT_MESSAGES[kind]
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc).isoformat()
        super().__init__(self.message)

    @property
    def user_message(self) -> str:
        return user_message(self.kind, self.message)

    def to_response(self) -> ErrorResponse:
        """Convert to the normalized error shape."""
        return ErrorResponse(
            kind=self.kind,
            status=self.status,
            endpoint=self.endpoint,
            method=self.method,
            circuit_state=self.circuit_state,
            fallback_attempted=self.fallback_attempted,
            severity=self.severity,
            message=self.message,
            timestamp=self.timestamp,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Render with the camelCase keys UI code expects."""
        data = {
            "kind": self.kind.value,
            "endpoint": self.endpoint,
            "circuitState": self.circuit_state,
            "fallbackAttempted": self.fallback_attempted,
            "severity": self.severity.value,
            "message": self.message,
            "timestamp": self.timestamp,
        }
        if self.status is not None:
            data["status"] = self.status
        if self.method is not None:
            data["method"] = self.method
        return data

    def __repr__(self) -> str:
        return (
            f"DispatchError(kind={self.kind.value}, status={self.status}, "
            f"endpoint={self.endpoint!r}, circuit_state={self.circuit_state})"
        )


def classify_status(status: int) -> ErrorKind:
    """Categorize a non-2xx HTTP status."""
    if status == 401:
        return ErrorKind.AUTHENTICATION
    if status == 403:
        return ErrorKind.AUTHORIZATION
    if 400 <= status < 500:
        return ErrorKind.VALIDATION
    if status >= 500:
        return ErrorKind.SERVER
    return ErrorKind.UNKNOWN


def classify_exception(exc: BaseException) -> ErrorKind:
    """Categorize a failure raised by a live call."""
    if isinstance(exc, UpstreamStatusError):
        return classify_status(exc.status)
    if isinstance(exc, TransportError):
        return ErrorKind.NETWORK
    return ErrorKind.UNKNOWN


def counts_against_circuit(kind: ErrorKind) -> bool:
    """Only server-side and transport-level failures are service-health signals."""
    return kind in (ErrorKind.SERVER, ErrorKind.NETWORK)


def severity_for(kind: ErrorKind) -> ErrorSeverity:
    return _SEVERITY[kind]


def upstream_message(exc: BaseException) -> Optional[str]:
    """Extract the server-provided message from an error payload, if any."""
    if isinstance(exc, UpstreamStatusError) and isinstance(exc.payload, dict):
        message = exc.payload.get("error") or exc.payload.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def user_message(kind: ErrorKind, detail: Optional[str] = None) -> str:
    """User-facing text for an error of the given kind."""
    if kind in _USER_MESSAGES:
        return _USER_MESSAGES[kind]
    if kind == ErrorKind.VALIDATION:
        return detail or "Please check your input and try again."
    return detail or "Something went wrong. Please try again."
