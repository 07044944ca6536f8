"""Unit tests for the resource clients."""

import pytest

from expense_gateway.services.analytics import AnalyticsClient
from expense_gateway.services.auth import AuthClient
from expense_gateway.services.base import build_path
from expense_gateway.services.budgets import BudgetsClient
from expense_gateway.services.categories import CategoriesClient
from expense_gateway.services.expenses import ExpensesClient
from expense_gateway.services.settings_api import SettingsClient
from tests.factories.doubles import ok


@pytest.mark.unit
def test_build_path_skips_none_and_renders_booleans():
    assert build_path("/budgets", {"year": 2024, "month": None, "isActive": True}) == "/budgets?year=2024&isActive=true"
    assert build_path("/budgets", {"month": None}) == "/budgets"
    assert build_path("/budgets") == "/budgets"


@pytest.mark.unit
class TestExpensesClient:

    @pytest.mark.asyncio
    async def test_list_sorts_newest_first_by_default(self, dispatcher, transport):
        transport.script("GET", "/expenses?category=fuel&sort=-createdAt", ok({"data": ["e"]}))

        payload = await ExpensesClient(dispatcher).list(category="fuel")

        assert payload == {"data": ["e"]}

    @pytest.mark.asyncio
    async def test_get_maps_journey_fields(self, dispatcher, transport):
        transport.script("GET", "/expenses/7", ok({"success": True, "data": {
            "_id": "7",
            "distance": 12.4,
            "startingPoint": "Home",
            "destinationPoint": "Office",
            "category": {"_id": "c1", "name": "Travel"},
            "journeyDate": "2024-03-01",
        }}))

        expense = await ExpensesClient(dispatcher).get("7")

        assert expense["distanceInKm"] == 12.4
        assert expense["startLocation"] == "Home"
        assert expense["endLocation"] == "Office"
        assert expense["categoryId"] == "c1"
        assert expense["expenseDate"] == "2024-03-01"

    @pytest.mark.asyncio
    async def test_create_normalizes_waypoints(self, dispatcher, transport):
        transport.script("POST", "/expenses", ok({"success": True}, status=201))

        await ExpensesClient(dispatcher).create({"amount": 3, "waypoints": ["p1", {"placeId": "p2"}]})

        assert transport.requests[-1].body["waypoints"] == [{"placeId": "p1"}, {"placeId": "p2"}]


@pytest.mark.unit
class TestBudgetsClient:

    @pytest.mark.asyncio
    async def test_list_sorts_by_period(self, dispatcher, transport):
        transport.script("GET", "/budgets?year=2024&sort=-year%2C-month", ok({"data": []}))

        assert await BudgetsClient(dispatcher).list(year=2024) == {"data": []}

    @pytest.mark.asyncio
    async def test_create_requires_category(self, dispatcher, transport):
        with pytest.raises(ValueError, match="Category is required"):
            await BudgetsClient(dispatcher).create({"amount": "100"})

        assert transport.calls == []

    @pytest.mark.asyncio
    async def test_create_coerces_numbers(self, dispatcher, transport):
        transport.script("POST", "/budgets", ok({"success": True}, status=201))

        await BudgetsClient(dispatcher).create({"category": "c1", "amount": "100", "year": "2024", "month": "3"})

        body = transport.requests[-1].body
        assert body["categoryId"] == "c1"
        assert body["amount"] == 100.0
        assert body["year"] == 2024
        assert body["month"] == 3

    @pytest.mark.asyncio
    async def test_summary(self, dispatcher, transport):
        transport.script("GET", "/budgets/summary?year=2024&month=2", ok({"data": {"total": 5}}))

        assert await BudgetsClient(dispatcher).summary(year=2024, month=2) == {"data": {"total": 5}}


@pytest.mark.unit
class TestCategoriesClient:

    @pytest.mark.asyncio
    async def test_list_wraps_single_category(self, dispatcher, transport):
        transport.script("GET", "/categories?isActive=true", ok({"data": {"_id": "c1"}}))

        result = await CategoriesClient(dispatcher).list(is_active=True)

        assert result["categories"] == [{"_id": "c1"}]
        assert result["totalCount"] == 1
        assert result["pagination"] is None

    @pytest.mark.asyncio
    async def test_list_accepts_bare_array(self, dispatcher, transport):
        transport.script("GET", "/categories", ok([{"_id": "a"}, {"_id": "b"}]))

        result = await CategoriesClient(dispatcher).list()

        assert result["totalCount"] == 2


@pytest.mark.unit
class TestSettingsAndAnalytics:

    @pytest.mark.asyncio
    async def test_settings_by_key(self, dispatcher, transport):
        transport.script("GET", "/settings/key/currency", ok({"data": {"value": "EUR"}}))

        assert await SettingsClient(dispatcher).by_key("currency") == {"data": {"value": "EUR"}}

    @pytest.mark.asyncio
    async def test_settings_fall_back_when_unavailable(self, dispatcher, transport):
        transport.script("GET", "/settings", ok(status=500))

        payload = await SettingsClient(dispatcher).all()

        assert payload["fallback"] is True
        assert payload["data"] == []

    @pytest.mark.asyncio
    async def test_analytics_paths(self, dispatcher, transport):
        transport.script(
            "GET",
            "/analytics/expenses/yearly-comparison?currentYear=2024&previousYear=2023",
            ok({"data": {"delta": 1}}),
        )

        payload = await AnalyticsClient(dispatcher).yearly_comparison(current_year=2024, previous_year=2023)

        assert payload == {"data": {"delta": 1}}


@pytest.mark.unit
class TestAuthClient:

    @pytest.mark.asyncio
    async def test_login_stores_token_for_later_requests(self, dispatcher, transport, token_provider):
        transport.script("POST", "/auth/login", ok({"success": True, "token": "new-token", "user": {"name": "Sam"}}))
        transport.script("GET", "/auth/me", ok({"success": True}))
        client = AuthClient(dispatcher, token_provider)

        await client.login("sam@example.com", "secret")
        await client.me()

        assert token_provider.user == {"name": "Sam"}
        assert transport.calls[-1][2]["Authorization"] == "Bearer new-token"

    @pytest.mark.asyncio
    async def test_logout_clears_session(self, dispatcher, transport, token_provider):
        transport.script("GET", "/auth/logout", ok({"success": True}))

        await AuthClient(dispatcher, token_provider).logout()

        assert token_provider.get_token() is None
