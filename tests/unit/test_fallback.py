"""Unit tests for fallback payload resolution."""

import pytest

from expense_gateway.resilience.fallback import FallbackResolver, FallbackRule, UNAVAILABLE_MESSAGE


@pytest.mark.unit
class TestFallbackResolver:

    @pytest.fixture
    def resolver(self):
        return FallbackResolver()

    def test_budgets_placeholder(self, resolver):
        response = resolver.resolve("/budgets?year=2024", "GET", "OPEN")

        assert response.status == 200
        assert response.fallback
        assert response.circuit_state == "OPEN"
        assert response.data["success"] is False
        assert response.data["fallback"] is True
        assert response.data["data"] == []
        assert response.data["pagination"] == {"page": 1, "limit": 10, "total": 0}
        assert response.data["endpoint"] == "/budgets?year=2024"

    def test_prefix_matches_whole_segments(self, resolver):
        """Test ``/settings`` covers ``/settings/key/x`` but not ``/settingsfoo``."""
        assert resolver.match("/settings/key/currency").prefix == "/settings"
        assert resolver.match("/settingsfoo") is None

    def test_first_rule_wins(self):
        resolver = FallbackResolver([
            FallbackRule("/expenses/stats", {"data": {"total": 0}}),
            FallbackRule("/expenses", {"data": []}),
        ])

        assert resolver.resolve("/expenses/stats").data["data"] == {"total": 0}
        assert resolver.resolve("/expenses/1").data["data"] == []

    def test_generic_unavailable_payload(self, resolver):
        response = resolver.resolve("/analytics/expenses/trends", "GET")

        assert response.status == 503
        assert response.status_text == "Service Unavailable (Fallback)"
        assert response.data["success"] is False
        assert response.data["fallback"] is True
        assert response.data["message"] == UNAVAILABLE_MESSAGE

    def test_resolved_payloads_do_not_share_state(self, resolver):
        first = resolver.resolve("/expenses")
        first.data["data"].append("mutated")

        assert resolver.resolve("/expenses").data["data"] == []

    def test_deprecated_stub(self, resolver):
        stub = resolver.deprecated("/settings/defaults")

        assert stub.status_text == "OK (Deprecated)"
        assert stub.data["message"] == "Deprecated endpoint - use /settings instead"
        assert not stub.fallback
        assert resolver.deprecated("/settings") is None

    def test_rule_prefix_must_be_absolute(self):
        with pytest.raises(ValueError):
            FallbackRule("settings")
