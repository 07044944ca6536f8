"""Client for ``/categories``."""

from typing import Any, Dict, Optional

from expense_gateway.services.base import ResourceClient


class CategoriesClient(ResourceClient):
    resource = "/categories"

    async def list(
        self,
        *,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        include_usage: Optional[bool] = None,
        period: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        List categories.

        Returns:
            Dict with ``categories`` (always a list), ``pagination``,
            ``totalCount`` and ``summary``
        """
        payload = await self._get(self.resource, {
            "page": page,
            "limit": limit,
            "sort": sort,
            "search": search,
            "isActive": is_active,
            "includeUsage": include_usage,
            "period": period,
        })

        if isinstance(payload, list):
            categories, payload = payload, {}
        elif isinstance(payload, dict) and "data" in payload:
            data = payload["data"]
            categories = data if isinstance(data, list) else [data]
        else:
            categories, payload = [payload], {}

        return {
            "categories": categories,
            "pagination": payload.get("pagination"),
            "totalCount": payload.get("totalCount") or len(categories),
            "summary": payload.get("summary"),
        }

    async def get(self, category_id: str) -> Any:
        return await self._get(self._path(category_id))

    async def create(self, category: Dict[str, Any]) -> Any:
        return await self._post(self.resource, category)

    async def update(self, category_id: str, category: Dict[str, Any]) -> Any:
        return await self._put(self._path(category_id), category)

    async def delete(self, category_id: str) -> Any:
        return await self._delete(self._path(category_id))
