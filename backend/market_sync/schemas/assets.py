# backend/market_sync/schemas/assets.py
"""Pydantic schemas for asset price refresh."""

from pydantic import BaseModel, ConfigDict


class AssetPriceRefreshResponse(BaseModel):
    """Counts from refreshing SYNC-sourced asset prices."""

    total: int
    updated: int
    unchanged: int

    model_config = ConfigDict(from_attributes=True)
