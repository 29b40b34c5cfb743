# tests/routers/test_instruments_api.py
"""
API tests for /instruments endpoints.

Query endpoints run against the real InstrumentService and the test
database; sync endpoints get a mocked InstrumentSyncService so no vendor
is contacted.
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from market_sync.dependencies import get_sync_service
from market_sync.main import app
from market_sync.models import InstrumentType
from market_sync.services.exceptions import ValidationError
from market_sync.services.market_data.ledger import SyncTaskLedger
from tests.conftest import create_instrument


@pytest.fixture
def instruments(db):
    create_instrument(db, "AAPL", "NASDAQ", "Apple Inc.", market_cap=Decimal("3000000000000"))
    create_instrument(db, "AMZN", "NASDAQ", "Amazon.com Inc.", market_cap=Decimal("1900000000000"))
    create_instrument(db, "IBM", "NYSE", "International Business Machines")
    create_instrument(
        db, "000001", "NF_FUND", "南方收益", type=InstrumentType.FUND, currency="CNY",
        yield_7d=Decimal("2.35"),
    )


@pytest.fixture
def sync_service():
    service = MagicMock()
    service.sources = ["NASDAQ", "NYSE", "AMEX"]
    app.dependency_overrides[get_sync_service] = lambda: service
    return service


# =============================================================================
# QUERY ENDPOINTS
# =============================================================================

class TestSearch:
    """Tests for GET /instruments/search."""

    def test_search(self, client, instruments):
        response = client.get("/instruments/search", params={"q": "a"})

        assert response.status_code == 200
        data = response.json()
        assert [i["symbol"] for i in data][:2] == ["AAPL", "AMZN"]
        assert float(data[0]["last_price"]) == 189.84

    def test_search_market_filter(self, client, instruments):
        response = client.get("/instruments/search", params={"q": "a", "market": "nyse"})

        assert [i["symbol"] for i in response.json()] == ["IBM"]

    def test_search_fund_fields(self, client, instruments):
        response = client.get("/instruments/search", params={"q": "南方"})

        fund = response.json()[0]
        assert fund["type"] == "FUND"
        assert float(fund["yield_7d"]) == 2.35

    def test_missing_query(self, client):
        response = client.get("/instruments/search")

        assert response.status_code == 422
        assert response.json()["details"][0]["field"] == "query.q"

    def test_blank_query(self, client):
        response = client.get("/instruments/search", params={"q": "  "})

        assert response.status_code == 400
        assert response.json()["details"] == {"field": "q"}

    @pytest.mark.parametrize("limit", [0, 201])
    def test_limit_bounds(self, client, limit):
        response = client.get("/instruments/search", params={"q": "a", "limit": limit})

        assert response.status_code == 422


class TestDetailAndStats:
    """Tests for detail and statistics endpoints."""

    def test_get_instrument(self, client, instruments):
        response = client.get("/instruments/nasdaq/aapl")

        assert response.status_code == 200
        assert response.json()["name"] == "Apple Inc."

    def test_get_instrument_not_found(self, client, instruments):
        response = client.get("/instruments/NASDAQ/ZZZZ")

        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "InstrumentNotFoundError"
        assert body["details"] == {"resource_type": "Instrument", "resource_id": "NASDAQ:ZZZZ"}

    def test_stats(self, client, instruments):
        response = client.get("/instruments/stats")

        data = response.json()
        assert data["total"] == 4
        assert {m["market"]: m["count"] for m in data["by_market"]}["NASDAQ"] == 2

    def test_fund_stats(self, client, instruments):
        response = client.get("/instruments/fund-stats")

        assert response.json() == {"total": 1, "by_market": [{"market": "NF_FUND", "count": 1}]}

    def test_crypto_stats(self, client, db):
        for symbol, volume in (("BTC", "900000000"), ("ETH", "500000000"), ("DOGE", None)):
            create_instrument(
                db, symbol, "BINANCE", symbol, type=InstrumentType.CRYPTO,
                volume=Decimal(volume) if volume else None,
            )
        create_instrument(db, "LUNA", "BINANCE", "Terra", type=InstrumentType.CRYPTO, is_active=False)

        response = client.get("/instruments/crypto-stats")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [c["symbol"] for c in data["top_by_volume"]] == ["BTC", "ETH", "DOGE"]
        assert data["top_by_volume"][2]["volume"] is None

    def test_crypto_stats_not_shadowed_by_detail_route(self, client):
        response = client.get("/instruments/crypto-stats")

        assert response.status_code == 200
        assert response.json() == {"total": 0, "top_by_volume": []}

    def test_sync_tasks(self, client, db):
        ledger = SyncTaskLedger(db)
        task = ledger.create("NASDAQ")
        ledger.mark_running(task.id)
        ledger.complete(task.id, total=4, success=3, failed=1)

        response = client.get("/instruments/sync/tasks")

        assert response.status_code == 200
        data = response.json()
        assert data[0]["market"] == "NASDAQ"
        assert data[0]["status"] == "SUCCESS"
        assert (data[0]["success_count"], data[0]["failed_count"]) == (3, 1)


# =============================================================================
# SYNC ENDPOINTS
# =============================================================================

class TestSyncEndpoints:
    """Tests for the background sync triggers."""

    def test_sync_all(self, client, sync_service):
        response = client.post("/instruments/sync")

        assert response.status_code == 202
        assert response.json()["sources"] == ["NASDAQ", "NYSE", "AMEX"]
        sync_service.sync_all.assert_called_once()

    def test_sync_market(self, client, sync_service):
        sync_service.resolve_sources.return_value = ["NASDAQ"]

        response = client.post("/instruments/sync/nasdaq")

        assert response.status_code == 202
        assert response.json()["sources"] == ["NASDAQ"]
        sync_service.sync_source.assert_called_once_with("nasdaq")

    def test_sync_unknown_market(self, client, sync_service):
        sync_service.resolve_sources.side_effect = ValidationError(
            "Unknown source 'LSE'", field="market"
        )

        response = client.post("/instruments/sync/lse")

        assert response.status_code == 400
        sync_service.sync_source.assert_not_called()

    def test_background_failure_does_not_leak(self, client, sync_service):
        sync_service.sync_all.side_effect = RuntimeError("boom")

        response = client.post("/instruments/sync")

        assert response.status_code == 202

    def test_sync_crypto_top(self, client, sync_service):
        response = client.post("/instruments/sync/crypto", params={"mode": "top", "limit": 10})

        assert response.status_code == 202
        assert response.json()["sources"] == ["BINANCE"]
        sync_service.sync_crypto.assert_called_once_with(mode="top", limit=10, symbols=None)

    def test_sync_crypto_specific(self, client, sync_service):
        response = client.post(
            "/instruments/sync/crypto", params={"mode": "specific", "symbols": "btc, eth,"}
        )

        assert response.status_code == 202
        sync_service.sync_crypto.assert_called_once_with(
            mode="specific", limit=None, symbols=["btc", "eth"]
        )

    def test_sync_crypto_specific_requires_symbols(self, client, sync_service):
        response = client.post("/instruments/sync/crypto", params={"mode": "specific"})

        assert response.status_code == 400
        sync_service.sync_crypto.assert_not_called()

    def test_sync_crypto_invalid_mode(self, client, sync_service):
        response = client.post("/instruments/sync/crypto", params={"mode": "random"})

        assert response.status_code == 422
