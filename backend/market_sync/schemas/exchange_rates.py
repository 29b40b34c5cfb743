# backend/market_sync/schemas/exchange_rates.py
"""
Pydantic schemas for Exchange Rate endpoints.

Rate convention: 1 from_currency = rate to_currency.
"""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class FXSyncResponse(BaseModel):
    """Outcome of a CCPR sync (forward and reciprocal rows counted separately)."""

    success: int
    failed: int
    date: dt.date | None = Field(default=None, description="Rate date published by the provider")


class LatestRateResponse(BaseModel):
    from_currency: str = Field(..., description="e.g. USD")
    to_currency: str = Field(..., description="e.g. CNY")
    rate: Decimal = Field(..., description="1 from_currency = rate to_currency")


class RatePoint(BaseModel):
    date: dt.date
    rate: Decimal


class RateHistoryResponse(BaseModel):
    from_currency: str
    to_currency: str
    start_date: dt.date
    end_date: dt.date
    rates: list[RatePoint]
    total: int


class FXStatsResponse(BaseModel):
    total_records: int
    currencies: list[str]
    currency_count: int
    latest_date: dt.date | None = None

    model_config = ConfigDict(from_attributes=True)


class SupportedCurrenciesResponse(BaseModel):
    currencies: list[str]
