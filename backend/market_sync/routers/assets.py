# backend/market_sync/routers/assets.py
"""Asset price refresh endpoint."""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from market_sync.database import get_db
from market_sync.dependencies import get_price_resolver
from market_sync.middleware.rate_limit import RATE_LIMIT_SYNC, limiter
from market_sync.schemas.assets import AssetPriceRefreshResponse
from market_sync.services.price_resolver import PriceResolver

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/assets",
    tags=["Assets"],
)


@router.post(
    "/prices/refresh",
    response_model=AssetPriceRefreshResponse,
    summary="Copy synced instrument prices onto SYNC-sourced assets",
)
@limiter.limit(RATE_LIMIT_SYNC)
def refresh_asset_prices(
        request: Request,  # Required for rate limiting
        db: Session = Depends(get_db),
        resolver: PriceResolver = Depends(get_price_resolver),
):
    return resolver.refresh_asset_prices(db)
