"""Shared plumbing for resource clients."""

from typing import Any, Mapping, Optional
from urllib.parse import urlencode

from expense_gateway.dispatcher import RequestDispatcher


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def build_path(base: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Append a query string to ``base``.

    ``None`` values are skipped and booleans rendered as ``true``/``false``,
    the way the API expects them. Parameter order is preserved so equal
    queries map onto the same cache entry.
    """
    if not params:
        return base
    query = urlencode([
        (name, _query_value(value))
        for name, value in params.items()
        if value is not None
    ])
    return f"{base}?{query}" if query else base


class ResourceClient:
    """Base class for clients of one API resource."""

    resource = ""

    def __init__(self, dispatcher: RequestDispatcher):
        self.dispatcher = dispatcher

    def _path(self, *segments: Any) -> str:
        return "/".join([self.resource, *(str(s) for s in segments)])

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return (await self.dispatcher.get(build_path(path, params))).data

    async def _post(self, path: str, body: Any = None) -> Any:
        return (await self.dispatcher.post(path, body)).data

    async def _put(self, path: str, body: Any = None) -> Any:
        return (await self.dispatcher.put(path, body)).data

    async def _delete(self, path: str) -> Any:
        return (await self.dispatcher.delete(path)).data
