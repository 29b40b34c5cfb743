# backend/market_sync/schemas/__init__.py
"""Request/response schemas for the HTTP API."""

from market_sync.schemas.assets import AssetPriceRefreshResponse
from market_sync.schemas.errors import ErrorDetail, ValidationErrorDetail
from market_sync.schemas.exchange_rates import (
    FXStatsResponse,
    FXSyncResponse,
    LatestRateResponse,
    RateHistoryResponse,
    RatePoint,
    SupportedCurrenciesResponse,
)
from market_sync.schemas.instruments import (
    InstrumentResponse,
    InstrumentStatsResponse,
    MarketCountResponse,
    SyncStartedResponse,
    SyncTaskResponse,
)

__all__ = [
    # Errors
    "ErrorDetail",
    "ValidationErrorDetail",
    # Instruments
    "InstrumentResponse",
    "InstrumentStatsResponse",
    "MarketCountResponse",
    "SyncStartedResponse",
    "SyncTaskResponse",
    # Exchange rates
    "FXStatsResponse",
    "FXSyncResponse",
    "LatestRateResponse",
    "RateHistoryResponse",
    "RatePoint",
    "SupportedCurrenciesResponse",
    # Assets
    "AssetPriceRefreshResponse",
]
