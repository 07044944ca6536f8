# ==== BUDGETS CLIENT ==== #

"""Client for ``/budgets``."""

from typing import Any, Dict, Optional

from expense_gateway.services.base import ResourceClient

DEFAULT_BUDGET_SORT = "-year,-month"

_NUMERIC_FIELDS = ("year", "month", "amount", "warningThreshold", "criticalThreshold")


class BudgetsClient(ResourceClient):
    resource = "/budgets"

    async def list(
        self,
        *,
        year: Optional[int] = None,
        month: Optional[int] = None,
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
        sort: Optional[str] = None,
        select: Optional[str] = None,
    ) -> Any:
        """List budgets, most recent period first unless ``sort`` says otherwise."""
        return await self._get(self.resource, {
            "year": year,
            "month": month,
            "category": category,
            "isActive": is_active,
            "page": page,
            "limit": limit,
            "sort": sort or DEFAULT_BUDGET_SORT,
            "select": select,
        })

    async def get(self, budget_id: str) -> Any:
        return await self._get(self._path(budget_id))

    async def create(self, budget: Dict[str, Any]) -> Any:
        """
        Create a budget.

        Numeric fields are coerced, blank fields dropped and ``category`` sent
        as ``categoryId``.

        Raises:
            ValueError: If the category or a numeric amount is missing
        """
        payload: Dict[str, Any] = {**budget, "categoryId": budget.get("category")}
        for name in _NUMERIC_FIELDS:
            if payload.get(name) not in (None, ""):
                payload[name] = float(payload[name]) if name == "amount" else int(payload[name])
        payload = {k: v for k, v in payload.items() if v is not None and v != ""}

        if not payload.get("categoryId"):
            raise ValueError("Category is required")
        if "amount" not in payload:
            raise ValueError("Budget amount is required and must be a number")

        return await self._post(self.resource, payload)

    async def update(self, budget_id: str, budget: Dict[str, Any]) -> Any:
        return await self._put(self._path(budget_id), budget)

    async def delete(self, budget_id: str) -> Any:
        return await self._delete(self._path(budget_id))

    async def summary(self, *, year: Optional[int] = None, month: Optional[int] = None) -> Any:
        return await self._get(self._path("summary"), {"year": year, "month": month})
