# ==== ANALYTICS CLIENT ==== #

"""Read-only client for ``/analytics/expenses`` reports."""

from typing import Any, Optional

from expense_gateway.services.base import ResourceClient


class AnalyticsClient(ResourceClient):
    resource = "/analytics/expenses"

    async def time_summary(
        self,
        *,
        period_type: Optional[str] = None,
        year: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Any:
        return await self._get(self._path("time-summary"), {
            "periodType": period_type,
            "year": year,
            "userId": user_id,
        })

    async def period_detail(
        self,
        *,
        period_type: Optional[str] = None,
        period_value: Optional[int] = None,
        year: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Any:
        return await self._get(self._path("period-detail"), {
            "periodType": period_type,
            "periodValue": period_value,
            "year": year,
            "userId": user_id,
        })

    async def category_breakdown(
        self,
        *,
        period_type: Optional[str] = None,
        period_value: Optional[int] = None,
        year: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Any:
        return await self._get(self._path("category-breakdown"), {
            "periodType": period_type,
            "periodValue": period_value,
            "year": year,
            "userId": user_id,
        })

    async def trends(
        self,
        *,
        period_type: Optional[str] = None,
        year: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Any:
        return await self._get(self._path("trends"), {
            "periodType": period_type,
            "year": year,
            "userId": user_id,
        })

    async def yearly_comparison(
        self,
        *,
        current_year: Optional[int] = None,
        previous_year: Optional[int] = None,
        user_id: Optional[str] = None
    ) -> Any:
        return await self._get(self._path("yearly-comparison"), {
            "currentYear": current_year,
            "previousYear": previous_year,
            "userId": user_id,
        })
