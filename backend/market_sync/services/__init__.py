# backend/market_sync/services/__init__.py
"""
Service layer for the sync pipeline.

Services:
- Have NO knowledge of HTTP (no HTTPException, no status codes)
- Raise domain-specific exceptions
- Receive database sessions as parameters (not via Depends)
- Receive the shared HttpTransport through their constructor

Usage:
    from market_sync.services import FXRateService, PriceResolver
    from market_sync.services import HttpTransport
    from market_sync.services import (
        TransportError,
        VendorFormatError,
        InstrumentNotFoundError,
    )

Architecture:
    services/
    ├── __init__.py            # This file - main exports
    ├── exceptions.py          # Domain exceptions
    ├── constants.py           # Market codes, crypto names, limits
    ├── transport.py           # Resilient HTTP client (retry, timeout, proxy)
    ├── fx_rate_service.py     # CNY central parity rates
    ├── price_resolver.py      # Asset price lookup from synced instruments
    └── market_data/           # Instrument sync pipeline
        ├── base.py            # Extractor interface and raw record
        ├── nasdaq.py          # US exchanges and ETFs
        ├── sse.py             # Shanghai Stock Exchange lists
        ├── funds.py           # Fund-company vendors
        ├── binance.py         # Crypto USDT pairs
        ├── normalizer.py      # Raw -> validated instrument records
        ├── ledger.py          # Sync tasks, upserts, per-source runner
        ├── sync_service.py    # Multi-source orchestration
        └── instrument_service.py  # Search and statistics
"""

# Exceptions
from market_sync.services.exceptions import (
    ServiceError,
    TransportError,
    VendorFormatError,
    ValidationError,
    PersistenceError,
    NotFoundError,
    InstrumentNotFoundError,
    FXRateError,
    FXProviderError,
)

# Transport
from market_sync.services.transport import HttpTransport

# FX rates
from market_sync.services.fx_rate_service import FXRateService, FXSyncResult, FXRateStats

# Asset prices
from market_sync.services.price_resolver import PriceResolver, AssetPriceRefreshResult

__all__ = [
    # Exceptions
    "ServiceError",
    "TransportError",
    "VendorFormatError",
    "ValidationError",
    "PersistenceError",
    "NotFoundError",
    "InstrumentNotFoundError",
    "FXRateError",
    "FXProviderError",
    # Transport
    "HttpTransport",
    # FX
    "FXRateService",
    "FXSyncResult",
    "FXRateStats",
    # Prices
    "PriceResolver",
    "AssetPriceRefreshResult",
]
