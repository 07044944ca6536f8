# ==== AUTH CLIENT ==== #

"""
Client for ``/auth``.

Keeps the session in an ``InMemoryTokenProvider``: login and password
changes store the returned token, logout clears it. The dispatcher attaches
the stored token to every later request.
"""

from typing import Any, Dict

from expense_gateway.dispatcher import RequestDispatcher
from expense_gateway.observability.logging import get_logger
from expense_gateway.security.tokens import InMemoryTokenProvider
from expense_gateway.services.base import ResourceClient

logger = get_logger(__name__)

LOGOUT_REASON_USER = "user_logout"


class AuthClient(ResourceClient):
    resource = "/auth"

    def __init__(self, dispatcher: RequestDispatcher, tokens: InMemoryTokenProvider):
        super().__init__(dispatcher)
        self.tokens = tokens

    async def register(self, user: Dict[str, Any]) -> Any:
        return await self._post(self._path("register"), user)

    async def login(self, email: str, password: str) -> Any:
        payload = await self._post(self._path("login"), {"email": email, "password": password})
        self._store_session(payload)
        return payload

    async def logout(self) -> Any:
        try:
            return await self._get(self._path("logout"))
        finally:
            self.tokens.invalidate(LOGOUT_REASON_USER)

    async def me(self) -> Any:
        return await self._get(self._path("me"))

    async def forgot_password(self, email: str) -> Any:
        return await self._post(self._path("forgotpassword"), {"email": email})

    async def reset_password(self, reset_token: str, password: str) -> Any:
        return await self._put(self._path("resetpassword", reset_token), {"password": password})

    async def update_password(self, current_password: str, new_password: str) -> Any:
        payload = await self._put(self._path("updatepassword"), {
            "currentPassword": current_password,
            "newPassword": new_password,
        })
        self._store_session(payload)
        return payload

    async def update_profile(self, profile: Dict[str, Any]) -> Any:
        payload = await self._put(self._path("updateprofile"), profile)
        if isinstance(payload, dict) and payload.get("success") and isinstance(payload.get("data"), dict):
            self.tokens.set_token(self.tokens.get_token(), {**(self.tokens.user or {}), **payload["data"]})
        return payload

    def _store_session(self, payload: Any) -> None:
        if isinstance(payload, dict) and payload.get("token"):
            self.tokens.set_token(payload["token"], payload.get("user"))
            logger.info("Session token stored")
