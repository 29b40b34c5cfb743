# tests/routers/test_exchange_rates_api.py
"""
API tests for /exchange-rates endpoints.

The FX service is wired to the fake vendor, so /sync exercises the real
CCPR parsing without network access.
"""

from datetime import date
from decimal import Decimal

import httpx
import pytest

from market_sync.dependencies import get_fx_rate_service
from market_sync.main import app
from market_sync.services.fx_rate_service import FXRateService
from tests.conftest import create_rate

CCPR_PATH = "/r/cms/www/chinamoney/data/fx/ccpr.json"


@pytest.fixture(autouse=True)
def fx_service(transport) -> FXRateService:
    service = FXRateService(transport, hundred_unit_currencies=["JPY"], default_rates={})
    app.dependency_overrides[get_fx_rate_service] = lambda: service
    return service


@pytest.fixture
def usd_history(db):
    create_rate(db, rate_date=date(2026, 2, 4), rate=Decimal("7.10"))
    create_rate(db, rate_date=date(2026, 2, 5), rate=Decimal("7.11"))
    create_rate(db, rate_date=date(2026, 2, 6), rate=Decimal("7.12"))


class TestSync:
    """Tests for POST /exchange-rates/sync."""

    def test_sync(self, client, vendor):
        vendor.add_json(CCPR_PATH, {
            "head": {"rep_code": "200"},
            "data": {"lastDate": "2026-02-06 9:15"},
            "records": [
                {"foreignCName": "USD", "price": "7.1"},
                {"foreignCName": "JPY", "price": "4.8"},
            ],
        })

        response = client.post("/exchange-rates/sync")

        assert response.status_code == 200
        assert response.json() == {"success": 4, "failed": 0, "date": "2026-02-06"}

    def test_provider_error(self, client, vendor):
        vendor.add_json(CCPR_PATH, {"head": {"rep_code": "500", "rep_message": "busy"}})

        response = client.post("/exchange-rates/sync")

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "FXProviderError"
        assert body["details"] == {"provider": "CHINAMONEY"}

    def test_network_failure(self, client, vendor):
        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        vendor.add_handler(CCPR_PATH, refuse)

        response = client.post("/exchange-rates/sync")

        assert response.status_code == 502
        body = response.json()
        assert body["error"] == "TransportError"
        assert body["details"]["attempts"] == 4


class TestLatest:
    """Tests for GET /exchange-rates/latest."""

    def test_latest(self, client, usd_history):
        response = client.get("/exchange-rates/latest", params={"from": "usd", "to": "cny"})

        assert response.status_code == 200
        data = response.json()
        assert (data["from_currency"], data["to_currency"]) == ("USD", "CNY")
        assert Decimal(data["rate"]) == Decimal("7.12")

    def test_latest_missing(self, client):
        response = client.get("/exchange-rates/latest", params={"from": "GBP", "to": "CNY"})

        assert response.status_code == 404
        assert response.json()["details"]["resource_id"] == "GBP_CNY"

    def test_invalid_currency(self, client):
        response = client.get("/exchange-rates/latest", params={"from": "US1", "to": "CNY"})

        assert response.status_code == 422


class TestHistory:
    """Tests for GET /exchange-rates/history."""

    def test_history(self, client, usd_history):
        response = client.get("/exchange-rates/history", params={
            "from": "USD", "to": "CNY", "start_date": "2026-02-05", "end_date": "2026-02-10",
        })

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [p["date"] for p in data["rates"]] == ["2026-02-05", "2026-02-06"]

    def test_inverted_range(self, client):
        response = client.get("/exchange-rates/history", params={
            "from": "USD", "to": "CNY", "start_date": "2026-02-06", "end_date": "2026-02-01",
        })

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "start_date"}


class TestInfo:
    """Tests for stats and supported currencies."""

    def test_stats(self, client, usd_history):
        response = client.get("/exchange-rates/stats")

        assert response.json() == {
            "total_records": 3,
            "currencies": ["USD"],
            "currency_count": 1,
            "latest_date": "2026-02-06",
        }

    def test_stats_empty(self, client):
        assert client.get("/exchange-rates/stats").json()["total_records"] == 0

    def test_currencies(self, client):
        currencies = client.get("/exchange-rates/currencies").json()["currencies"]

        assert "USD" in currencies
        assert "CNY" not in currencies
