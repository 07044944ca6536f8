"""
Token provider collaborator.

The dispatcher asks the provider for the current token before each live call
and tells it to invalidate the session when the API answers 401. Everything
else about the token lifecycle (login, refresh, storage) stays with the
provider and its listeners.
"""

from typing import Callable, List, Optional, Protocol

from expense_gateway.observability.logging import get_logger

logger = get_logger(__name__)

LOGOUT_REASON_API = "api_authentication_error"

LogoutListener = Callable[[str], None]


class TokenProvider(Protocol):
    def get_token(self) -> Optional[str]:
        ...

    def invalidate(self, reason: str) -> None:
        ...


def bearer(token: str) -> str:
    """Format ``token`` as an Authorization header value."""
    return token if token.startswith("Bearer ") else f"Bearer {token}"


class InMemoryTokenProvider:
    """Holds the session token and broadcasts ``auth:logout`` to listeners."""

    def __init__(self, token: Optional[str] = None):
        self._token = token
        self._user: Optional[dict] = None
        self._listeners: List[LogoutListener] = []

    def get_token(self) -> Optional[str]:
        return self._token

    def set_token(self, token: Optional[str], user: Optional[dict] = None) -> None:
        self._token = token
        if user is not None:
            self._user = user

    @property
    def user(self) -> Optional[dict]:
        return self._user

    def add_logout_listener(self, listener: LogoutListener) -> Callable[[], None]:
        """Subscribe to logout events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def invalidate(self, reason: str) -> None:
        self._token = None
        self._user = None
        logger.info("Session invalidated", event="auth:logout", reason=reason)

        for listener in list(self._listeners):
            try:
                listener(reason)
            except Exception:
                logger.exception("Logout listener failed", reason=reason)
