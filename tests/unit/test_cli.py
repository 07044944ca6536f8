"""Unit tests for the gateway CLI."""

from unittest.mock import patch

import httpx
import pytest
import respx
from click.testing import CliRunner

from expense_gateway.cli.gateway import gateway

BASE_URL = "http://api.test/api/v1"


@pytest.fixture
def runner():
    with patch("expense_gateway.cli.gateway.init_logging"):
        yield CliRunner()


@pytest.mark.unit
class TestGatewayCli:

    @respx.mock
    def test_request_prints_live_response(self, runner):
        respx.get(f"{BASE_URL}/budgets").mock(return_value=httpx.Response(200, json={"success": True, "data": []}))

        result = runner.invoke(gateway, ["--base-url", BASE_URL, "request", "GET", "/budgets"])

        assert result.exit_code == 0
        assert "200 OK [live]" in result.output

    @respx.mock
    def test_request_reports_validation_error(self, runner):
        respx.post(f"{BASE_URL}/expenses").mock(
            return_value=httpx.Response(400, json={"success": False, "error": "Amount is required"})
        )

        result = runner.invoke(gateway, ["--base-url", BASE_URL, "request", "POST", "/expenses", "--data", "{}"])

        assert result.exit_code == 1
        assert "VALIDATION" in result.output

    def test_request_rejects_invalid_json(self, runner):
        result = runner.invoke(gateway, ["--base-url", BASE_URL, "request", "POST", "/expenses", "--data", "{oops"])

        assert result.exit_code == 2
        assert "Invalid JSON" in result.output

    @respx.mock
    def test_probe_shows_throttled_calls(self, runner):
        route = respx.get(f"{BASE_URL}/expenses").mock(
            return_value=httpx.Response(200, json={"success": True, "data": [1]})
        )

        result = runner.invoke(gateway, ["--base-url", BASE_URL, "probe", "/expenses", "--times", "12", "--metrics"])

        assert result.exit_code == 0
        assert route.call_count == 10
        assert "OK (Cached)" in result.output
        assert "GET /expenses" in result.output
        assert "expense_gateway_dispatch_requests_total" in result.output
