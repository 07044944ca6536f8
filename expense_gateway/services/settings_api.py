"""Client for ``/settings``."""

from typing import Any, Dict

from expense_gateway.services.base import ResourceClient


class SettingsClient(ResourceClient):
    resource = "/settings"

    async def all(self) -> Any:
        return await self._get(self.resource)

    async def get(self, setting_id: str) -> Any:
        return await self._get(self._path(setting_id))

    async def by_key(self, key: str) -> Any:
        return await self._get(self._path("key", key))

    async def create(self, setting: Dict[str, Any]) -> Any:
        return await self._post(self.resource, setting)

    async def update(self, setting_id: str, setting: Dict[str, Any]) -> Any:
        return await self._put(self._path(setting_id), setting)

    async def delete(self, setting_id: str) -> Any:
        return await self._delete(self._path(setting_id))
