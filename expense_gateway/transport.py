"""
HTTP transport collaborator.

The dispatcher only needs ``send``: issue one request and hand back whatever
the API answered, or raise ``TransportError`` when nothing came back.
Connection pooling, TLS and timeouts belong to ``httpx``.
"""

from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Dict, Mapping, Optional, Protocol

import httpx

from expense_gateway.errors import TransportError
from expense_gateway.observability.logging import get_logger
from expense_gateway.schemas.dispatch import RequestDescriptor

logger = get_logger(__name__)


@dataclass
class TransportResponse:
    """Response as received from the API."""
    status: int
    data: Any = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def status_text(self) -> str:
        try:
            return HTTPStatus(self.status).phrase
        except ValueError:
            return ""


class Transport(Protocol):
    async def send(self, request: RequestDescriptor, headers: Dict[str, str]) -> TransportResponse:
        ...


class HttpxTransport:
    """Transport backed by a shared ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.base_url = base_url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def send(self, request: RequestDescriptor, headers: Dict[str, str]) -> TransportResponse:
        try:
            response = await self._client.request(
                request.method,
                request.path,
                json=request.body if request.body is not None else None,
                headers=headers,
            )
        except httpx.TransportError as exc:
            logger.debug(
                "No response received",
                method=request.method,
                path=request.path,
                error_type=type(exc).__name__
            )
            raise TransportError(str(exc) or type(exc).__name__, cause=exc) from exc

        return TransportResponse(
            status=response.status_code,
            data=_decode_body(response),
            headers=dict(response.headers),
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpxTransport":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.aclose()


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text
