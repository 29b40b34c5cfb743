# backend/market_sync/services/price_resolver.py
"""
Price resolution for held assets.

An asset's market price is the synced instrument's last_price when one
exists for the same (symbol, market) and is positive; otherwise the
asset keeps its own current_price (0 when never set).

Usage:
    from market_sync.services.price_resolver import PriceResolver

    prices = PriceResolver().resolve_prices(db, assets)  # {asset_id: Decimal}
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select, tuple_
from sqlalchemy.orm import Session

from market_sync.models import Asset, AssetSource, MarketInstrument

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

# (symbol, market) pairs per lookup query; keeps bound parameters well under
# SQLite's per-statement limit
PRICE_LOOKUP_CHUNK_SIZE = 400


@dataclass
class AssetPriceRefreshResult:
    """Counts from one refresh of SYNC-sourced asset prices."""

    total: int = 0
    updated: int = 0
    unchanged: int = 0


class PriceResolver:
    """Resolves asset prices from synced instruments, one query per key chunk."""

    def resolve_prices(self, db: Session, assets: Sequence[Asset]) -> dict[int, Decimal]:
        """
        Resolve prices for many assets.

        Args:
            db: Database session
            assets: Assets to price

        Returns:
            Mapping of asset id -> price
        """
        if not assets:
            return {}

        keys = sorted({(a.symbol, a.market) for a in assets})
        instrument_prices: dict[tuple[str, str], Decimal] = {}
        for start in range(0, len(keys), PRICE_LOOKUP_CHUNK_SIZE):
            chunk = keys[start:start + PRICE_LOOKUP_CHUNK_SIZE]
            rows = db.execute(
                select(
                    MarketInstrument.symbol,
                    MarketInstrument.market,
                    MarketInstrument.last_price,
                ).where(tuple_(MarketInstrument.symbol, MarketInstrument.market).in_(chunk))
            ).all()
            instrument_prices.update(
                ((symbol, market), price)
                for symbol, market, price in rows
                if price is not None and price > 0
            )

        return {
            asset.id: instrument_prices.get(
                (asset.symbol, asset.market),
                asset.current_price if asset.current_price is not None else ZERO,
            )
            for asset in assets
        }

    def resolve_price(self, db: Session, asset: Asset) -> Decimal:
        """Single-asset form of resolve_prices()."""
        price = db.scalar(
            select(MarketInstrument.last_price).where(
                MarketInstrument.symbol == asset.symbol,
                MarketInstrument.market == asset.market,
            )
        )
        if price is not None and price > 0:
            return price
        return asset.current_price if asset.current_price is not None else ZERO

    def refresh_asset_prices(self, db: Session) -> AssetPriceRefreshResult:
        """
        Copy resolved prices onto every SYNC-sourced asset.

        Only assets whose price actually changed are written.
        """
        assets = list(db.scalars(select(Asset).where(Asset.source == AssetSource.SYNC)))
        result = AssetPriceRefreshResult(total=len(assets))
        if not assets:
            logger.info("No synced assets to refresh")
            return result

        prices = self.resolve_prices(db, assets)
        for asset in assets:
            price = prices[asset.id]
            if asset.current_price is not None and asset.current_price == price:
                result.unchanged += 1
                continue
            if asset.current_price is None and price == ZERO:
                result.unchanged += 1
                continue
            asset.current_price = price
            result.updated += 1

        db.commit()
        logger.info(
            f"Refreshed asset prices: {result.updated} updated, "
            f"{result.unchanged} unchanged"
        )
        return result
