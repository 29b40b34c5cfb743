# backend/market_sync/schemas/instruments.py
"""
Pydantic schemas for instrument search, statistics and sync triggers.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from market_sync.models import InstrumentType, SyncTaskStatus


# =============================================================================
# INSTRUMENT SCHEMAS
# =============================================================================

class InstrumentResponse(BaseModel):
    """A synced instrument."""

    id: int
    symbol: str
    market: str
    name: str
    type: InstrumentType
    currency: str

    last_price: Decimal | None = None
    change: Decimal | None = None
    change_percent: Decimal | None = None
    volume: Decimal | None = None
    market_cap: Decimal | None = None

    sector: str | None = None
    industry: str | None = None
    country: str | None = None

    fund_type: str | None = None
    risk_level: str | None = None
    manager_name: str | None = None
    yield_7d: Decimal | None = Field(default=None, description="Percent, e.g. 2.35")
    yield_1w: Decimal | None = None
    yield_1m: Decimal | None = None
    yield_3m: Decimal | None = None
    yield_6m: Decimal | None = None
    yield_1y: Decimal | None = None
    yield_ytd: Decimal | None = None
    yield_since_inception: Decimal | None = None
    nav_date: dt.date | None = None
    setup_date: dt.date | None = None

    is_active: bool
    last_sync_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class MarketCountResponse(BaseModel):
    market: str
    count: int

    model_config = ConfigDict(from_attributes=True)


class InstrumentStatsResponse(BaseModel):
    """Instrument counts, overall and per market."""

    total: int
    by_market: list[MarketCountResponse]

    model_config = ConfigDict(from_attributes=True)


class CryptoVolumeResponse(BaseModel):
    symbol: str
    name: str
    last_price: Decimal | None = None
    volume: Decimal | None = Field(default=None, description="24h quote (USDT) volume")

    model_config = ConfigDict(from_attributes=True)


class CryptoStatsResponse(BaseModel):
    """Active Binance pair count and the most traded pairs."""

    total: int
    top_by_volume: list[CryptoVolumeResponse]

    model_config = ConfigDict(from_attributes=True)


# =============================================================================
# SYNC SCHEMAS
# =============================================================================

class SyncTaskResponse(BaseModel):
    """One row of the sync ledger."""

    id: int
    market: str = Field(..., description="Source label, e.g. NASDAQ or BINANCE_TOP")
    status: SyncTaskStatus
    total_count: int
    success_count: int
    failed_count: int
    error_message: str | None = None
    started_at: dt.datetime
    completed_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class SyncStartedResponse(BaseModel):
    """Returned immediately when a background sync is scheduled."""

    message: str
    sources: list[str] = Field(..., description="Sources that will run")
