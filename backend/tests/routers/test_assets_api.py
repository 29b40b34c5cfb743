# tests/routers/test_assets_api.py
"""
API tests for POST /assets/prices/refresh.
"""

from decimal import Decimal

from market_sync.models import AssetSource
from tests.conftest import create_asset, create_instrument


class TestRefreshAssetPrices:
    """Tests for the asset price refresh endpoint."""

    def test_refresh(self, client, db):
        create_instrument(db, "AAPL", "NASDAQ", last_price=Decimal("189.84"))
        asset = create_asset(db, "AAPL", "NASDAQ", current_price=Decimal("150"))
        create_asset(db, "XYZ", "NASDAQ")
        create_asset(db, "AAPL", "NASDAQ", source=AssetSource.MANUAL)

        response = client.post("/assets/prices/refresh")

        assert response.status_code == 200
        assert response.json() == {"total": 2, "updated": 1, "unchanged": 1}
        db.refresh(asset)
        assert asset.current_price == Decimal("189.84")

    def test_refresh_no_assets(self, client):
        response = client.post("/assets/prices/refresh")

        assert response.json() == {"total": 0, "updated": 0, "unchanged": 0}
