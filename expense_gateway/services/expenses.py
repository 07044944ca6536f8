# ==== EXPENSES CLIENT ==== #

"""Client for ``/expenses``: listing, CRUD and lookups by category."""

from typing import Any, Dict, List, Optional, Union

from expense_gateway.services.base import ResourceClient

DEFAULT_EXPENSE_SORT = "-createdAt"


def normalize_waypoints(waypoints: List[Union[str, Dict[str, Any]]]) -> List[Any]:
    """Bare place ids become ``{"placeId": ...}`` objects."""
    return [{"placeId": w} if isinstance(w, str) else w for w in waypoints]


def map_expense_fields(expense: Dict[str, Any]) -> Dict[str, Any]:
    """Expose journey fields under the names the expense forms use."""
    category = expense.get("category")
    category_id = category.get("_id") if isinstance(category, dict) else None
    return {
        **expense,
        "distanceInKm": expense.get("distance"),
        "startLocation": expense.get("startingPoint") or expense.get("startLocation"),
        "endLocation": expense.get("destinationPoint") or expense.get("endLocation"),
        "categoryId": category_id or expense.get("categoryId"),
        "expenseDate": expense.get("journeyDate") or expense.get("expenseDate"),
    }


class ExpensesClient(ResourceClient):
    resource = "/expenses"

    async def list(
        self,
        *,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        category: Optional[str] = None,
        status: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        select: Optional[str] = None,
    ) -> Any:
        """List expenses, newest first unless ``sort`` says otherwise."""
        return await self._get(self.resource, {
            "startDate": start_date,
            "endDate": end_date,
            "category": category,
            "status": status,
            "page": page,
            "limit": limit,
            "sort": sort or DEFAULT_EXPENSE_SORT,
            "select": select,
        })

    async def get(self, expense_id: str) -> Any:
        payload = await self._get(self._path(expense_id))
        expense = payload.get("data") if isinstance(payload, dict) else None
        if isinstance(expense, dict):
            return map_expense_fields(expense)
        return payload

    async def create(self, expense: Dict[str, Any]) -> Any:
        return await self._post(self.resource, self._prepare(expense))

    async def update(self, expense_id: str, expense: Dict[str, Any]) -> Any:
        return await self._put(self._path(expense_id), self._prepare(expense))

    async def delete(self, expense_id: str) -> Any:
        return await self._delete(self._path(expense_id))

    async def by_category(self, category_id: str) -> Any:
        return await self._get(self.resource, {"category": category_id})

    async def preview_notes(self, data: Dict[str, Any]) -> Any:
        return await self._post(self._path("preview-notes"), data)

    @staticmethod
    def _prepare(expense: Dict[str, Any]) -> Dict[str, Any]:
        if isinstance(expense.get("waypoints"), list):
            return {**expense, "waypoints": normalize_waypoints(expense["waypoints"])}
        return expense
