# tests/services/test_price_resolver.py
"""
Tests for PriceResolver (asset prices from synced instruments).
"""

from decimal import Decimal

import pytest
from sqlalchemy import select

from market_sync.models import Asset, AssetSource, InstrumentType, MarketInstrument
from market_sync.services.price_resolver import PriceResolver
from tests.conftest import create_asset, create_instrument


@pytest.fixture
def resolver() -> PriceResolver:
    return PriceResolver()


class TestResolvePrices:
    """Tests for resolve_prices() and resolve_price()."""

    def test_synced_price_used(self, db, resolver):
        create_instrument(db, "AAPL", "NASDAQ", last_price=Decimal("189.84"))
        asset = create_asset(db, "AAPL", "NASDAQ", current_price=Decimal("150"))

        assert resolver.resolve_prices(db, [asset]) == {asset.id: Decimal("189.84")}
        assert resolver.resolve_price(db, asset) == Decimal("189.84")

    def test_falls_back_to_current_price(self, db, resolver):
        asset = create_asset(db, "XYZ", "NASDAQ", current_price=Decimal("12.5"))

        assert resolver.resolve_price(db, asset) == Decimal("12.5")

    def test_zero_synced_price_ignored(self, db, resolver):
        create_instrument(db, "AAPL", "NASDAQ", last_price=Decimal("0"))
        asset = create_asset(db, "AAPL", "NASDAQ", current_price=Decimal("150"))

        assert resolver.resolve_prices(db, [asset])[asset.id] == Decimal("150")

    def test_no_price_at_all_is_zero(self, db, resolver):
        asset = create_asset(db, "XYZ", "NASDAQ")

        assert resolver.resolve_price(db, asset) == Decimal("0")

    def test_market_must_match(self, db, resolver):
        create_instrument(db, "510300", "SSE_FUND", last_price=Decimal("3.9"))
        asset = create_asset(db, "510300", "EFUNDS", current_price=Decimal("1.2"))

        assert resolver.resolve_price(db, asset) == Decimal("1.2")

    def test_many_assets(self, db, resolver):
        create_instrument(db, "AAPL", "NASDAQ", last_price=Decimal("189.84"))
        create_instrument(db, "600519", "SSE", last_price=Decimal("1500"))
        a = create_asset(db, "AAPL", "NASDAQ")
        b = create_asset(db, "600519", "SSE")
        c = create_asset(db, "XYZ", "NYSE", current_price=Decimal("5"))

        prices = resolver.resolve_prices(db, [a, b, c])

        assert prices == {a.id: Decimal("189.84"), b.id: Decimal("1500"), c.id: Decimal("5")}

    def test_empty(self, db, resolver):
        assert resolver.resolve_prices(db, []) == {}

    def test_large_portfolio(self, db, resolver):
        """More keys than one lookup chunk, on SQLite."""
        db.add_all(
            MarketInstrument(
                symbol=f"S{i:04d}", market="NASDAQ", name=f"Stock {i}",
                type=InstrumentType.STOCK, currency="USD", last_price=Decimal(i + 1),
            )
            for i in range(0, 1200, 2)
        )
        db.add_all(
            Asset(symbol=f"S{i:04d}", market="NASDAQ", name=f"Stock {i}", current_price=Decimal("0.5"))
            for i in range(1200)
        )
        db.commit()
        assets = list(db.scalars(select(Asset).order_by(Asset.id)))

        prices = resolver.resolve_prices(db, assets)

        assert len(prices) == 1200
        assert prices[assets[0].id] == Decimal("1")
        assert prices[assets[1].id] == Decimal("0.5")
        assert prices[assets[1198].id] == Decimal("1199")

    def test_refresh_large_portfolio(self, db, resolver):
        db.add_all(
            Asset(symbol=f"S{i:04d}", market="SSE", name=f"Stock {i}")
            for i in range(1100)
        )
        db.commit()

        result = resolver.refresh_asset_prices(db)

        assert (result.total, result.unchanged) == (1100, 1100)


class TestRefreshAssetPrices:
    """Tests for refresh_asset_prices()."""

    def test_updates_sync_assets_only(self, db, resolver):
        create_instrument(db, "AAPL", "NASDAQ", last_price=Decimal("189.84"))
        synced = create_asset(db, "AAPL", "NASDAQ", current_price=Decimal("150"))
        manual = create_asset(
            db, "AAPL", "NASDAQ", current_price=Decimal("100"), source=AssetSource.MANUAL
        )

        result = resolver.refresh_asset_prices(db)

        assert (result.total, result.updated, result.unchanged) == (1, 1, 0)
        db.refresh(synced)
        db.refresh(manual)
        assert synced.current_price == Decimal("189.84")
        assert manual.current_price == Decimal("100")

    def test_unchanged_prices_not_counted(self, db, resolver):
        create_instrument(db, "AAPL", "NASDAQ", last_price=Decimal("189.84"))
        create_asset(db, "AAPL", "NASDAQ", current_price=Decimal("189.84"))
        create_asset(db, "XYZ", "NASDAQ")

        result = resolver.refresh_asset_prices(db)

        assert (result.total, result.updated, result.unchanged) == (2, 0, 2)

    def test_no_assets(self, db, resolver):
        assert resolver.refresh_asset_prices(db).total == 0
