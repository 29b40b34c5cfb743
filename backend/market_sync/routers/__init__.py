# backend/market_sync/routers/__init__.py
"""
API routers for the Market Sync Service.

Each router handles a specific domain:
- instruments: Search, statistics and sync triggers for synced instruments
- exchange_rates: CNY central parity rates (sync, latest, history)
- assets: Refresh of held-asset prices from synced instruments
"""

from market_sync.routers.assets import router as assets_router
from market_sync.routers.exchange_rates import router as exchange_rates_router
from market_sync.routers.instruments import router as instruments_router

__all__ = [
    "assets_router",
    "exchange_rates_router",
    "instruments_router",
]
