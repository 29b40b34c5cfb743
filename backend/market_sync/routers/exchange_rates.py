# backend/market_sync/routers/exchange_rates.py
"""
Exchange rate endpoints (CNY central parity from ChinaMoney).

Rates follow "1 from = rate to". `from`/`to` are query parameter names
on the wire; they map onto from_currency/to_currency here.
"""

import datetime as dt
import logging

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from market_sync.database import get_db
from market_sync.dependencies import get_fx_rate_service
from market_sync.middleware.rate_limit import RATE_LIMIT_SYNC, limiter
from market_sync.schemas.exchange_rates import (
    FXStatsResponse,
    FXSyncResponse,
    LatestRateResponse,
    RateHistoryResponse,
    RatePoint,
    SupportedCurrenciesResponse,
)
from market_sync.services.exceptions import NotFoundError
from market_sync.services.fx_rate_service import FXRateService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/exchange-rates",
    tags=["Exchange Rates"],
)

_CURRENCY = dict(min_length=3, max_length=3, pattern=r"^[A-Za-z]{3}$")


@router.post(
    "/sync",
    response_model=FXSyncResponse,
    summary="Fetch today's central parity rates and store them",
)
@limiter.limit(RATE_LIMIT_SYNC)
def sync_rates(
        request: Request,  # Required for rate limiting
        db: Session = Depends(get_db),
        service: FXRateService = Depends(get_fx_rate_service),
):
    result = service.sync_latest_rates(db)
    return FXSyncResponse(success=result.success, failed=result.failed, date=result.rate_date)


@router.get(
    "/latest",
    response_model=LatestRateResponse,
    summary="Most recent stored rate for a pair",
)
def get_latest_rate(
        from_currency: str = Query(..., alias="from", **_CURRENCY),
        to_currency: str = Query(..., alias="to", **_CURRENCY),
        db: Session = Depends(get_db),
        service: FXRateService = Depends(get_fx_rate_service),
):
    from_currency, to_currency = from_currency.upper(), to_currency.upper()
    rate = service.get_latest_rate(db, from_currency, to_currency)
    if rate is None:
        raise NotFoundError(
            f"No exchange rate found for {from_currency}/{to_currency}",
            resource_type="ExchangeRate",
            resource_id=f"{from_currency}_{to_currency}",
        )
    return LatestRateResponse(from_currency=from_currency, to_currency=to_currency, rate=rate)


@router.get(
    "/history",
    response_model=RateHistoryResponse,
    summary="Stored rates for a pair over a date range",
)
def get_rate_history(
        from_currency: str = Query(..., alias="from", **_CURRENCY),
        to_currency: str = Query(..., alias="to", **_CURRENCY),
        start_date: dt.date = Query(...),
        end_date: dt.date = Query(...),
        db: Session = Depends(get_db),
        service: FXRateService = Depends(get_fx_rate_service),
):
    from_currency, to_currency = from_currency.upper(), to_currency.upper()
    history = service.get_rate_history(db, from_currency, to_currency, start_date, end_date)
    return RateHistoryResponse(
        from_currency=from_currency,
        to_currency=to_currency,
        start_date=start_date,
        end_date=end_date,
        rates=[RatePoint(date=d, rate=r) for d, r in history],
        total=len(history),
    )


@router.get("/stats", response_model=FXStatsResponse, summary="Stored rate statistics")
def get_stats(
        db: Session = Depends(get_db),
        service: FXRateService = Depends(get_fx_rate_service),
):
    stats = service.get_stats(db)
    return FXStatsResponse(
        total_records=stats.total_records,
        currencies=stats.currencies,
        currency_count=stats.currency_count,
        latest_date=stats.latest_date,
    )


@router.get(
    "/currencies",
    response_model=SupportedCurrenciesResponse,
    summary="Currencies quoted against CNY",
)
def get_currencies(service: FXRateService = Depends(get_fx_rate_service)):
    return SupportedCurrenciesResponse(currencies=service.get_supported_currencies())
