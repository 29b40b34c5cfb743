# backend/market_sync/routers/instruments.py
"""
Instrument endpoints: search, detail, statistics and sync triggers.

Sync endpoints validate their input, schedule the run as a background
task and return immediately; progress is visible through
GET /instruments/sync/tasks.
"""

import logging
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from market_sync.database import get_db
from market_sync.dependencies import get_instrument_service, get_sync_service
from market_sync.middleware.rate_limit import RATE_LIMIT_SYNC, limiter
from market_sync.schemas.instruments import (
    CryptoStatsResponse,
    InstrumentResponse,
    InstrumentStatsResponse,
    SyncStartedResponse,
    SyncTaskResponse,
)
from market_sync.services.constants import (
    BINANCE_MARKET,
    SEARCH_DEFAULT_LIMIT,
    SEARCH_MAX_LIMIT,
    SYNC_TASKS_DEFAULT_LIMIT,
)
from market_sync.services.exceptions import ValidationError
from market_sync.services.market_data.instrument_service import InstrumentService
from market_sync.services.market_data.sync_service import InstrumentSyncService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/instruments",
    tags=["Instruments"],
)


# =============================================================================
# BACKGROUND JOBS
# =============================================================================

def _run_sync_all(service: InstrumentSyncService) -> None:
    try:
        report = service.sync_all()
        logger.info(
            f"Background sync finished: {report.total_success} success, "
            f"{report.total_failed} failed"
        )
    except Exception as e:
        logger.exception(f"Background sync failed: {e}")


def _run_sync_source(service: InstrumentSyncService, market: str) -> None:
    try:
        report = service.sync_source(market)
        logger.info(f"Background sync of {market} finished: {report.summary()}")
    except Exception as e:
        logger.exception(f"Background sync of {market} failed: {e}")


def _run_sync_crypto(
        service: InstrumentSyncService,
        mode: str,
        limit: int | None,
        symbols: list[str] | None,
) -> None:
    try:
        result = service.sync_crypto(mode=mode, limit=limit, symbols=symbols)
        logger.info(
            f"Background crypto sync ({mode}) finished: "
            f"{result.success} success, {result.failed} failed"
        )
    except Exception as e:
        logger.exception(f"Background crypto sync ({mode}) failed: {e}")


# =============================================================================
# QUERY ENDPOINTS
# =============================================================================

@router.get(
    "/search",
    response_model=list[InstrumentResponse],
    summary="Search active instruments by symbol or name",
)
def search_instruments(
        q: str = Query(..., min_length=1, description="Symbol or name fragment"),
        market: str | None = Query(default=None, description="Restrict to one market"),
        limit: int = Query(default=SEARCH_DEFAULT_LIMIT, ge=1, le=SEARCH_MAX_LIMIT),
        db: Session = Depends(get_db),
        service: InstrumentService = Depends(get_instrument_service),
):
    return service.search(db, q, market=market, limit=limit)


@router.get(
    "/stats",
    response_model=InstrumentStatsResponse,
    summary="Active instrument counts per market",
)
def get_stats(
        db: Session = Depends(get_db),
        service: InstrumentService = Depends(get_instrument_service),
):
    return service.get_stats(db)


@router.get(
    "/fund-stats",
    response_model=InstrumentStatsResponse,
    summary="Instrument counts per fund company",
)
def get_fund_stats(
        db: Session = Depends(get_db),
        service: InstrumentService = Depends(get_instrument_service),
):
    return service.get_fund_stats(db)


@router.get(
    "/crypto-stats",
    response_model=CryptoStatsResponse,
    summary="Active Binance pair count and top pairs by quote volume",
)
def get_crypto_stats(
        db: Session = Depends(get_db),
        service: InstrumentService = Depends(get_instrument_service),
):
    return service.get_crypto_stats(db)


@router.get(
    "/sync/tasks",
    response_model=list[SyncTaskResponse],
    summary="Recent sync runs, newest first",
)
def get_sync_tasks(
        limit: int = Query(default=SYNC_TASKS_DEFAULT_LIMIT, ge=1, le=200),
        db: Session = Depends(get_db),
        service: InstrumentService = Depends(get_instrument_service),
):
    return service.get_sync_tasks(db, limit=limit)


# =============================================================================
# SYNC ENDPOINTS
# =============================================================================

@router.post(
    "/sync",
    response_model=SyncStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Sync every source in the background",
)
@limiter.limit(RATE_LIMIT_SYNC)
def sync_all(
        request: Request,  # Required for rate limiting
        background_tasks: BackgroundTasks,
        service: InstrumentSyncService = Depends(get_sync_service),
):
    background_tasks.add_task(_run_sync_all, service)
    logger.info("Scheduled full instrument sync")
    return SyncStartedResponse(message="Sync started in background", sources=service.sources)


@router.post(
    "/sync/crypto",
    response_model=SyncStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Sync Binance USDT pairs (all, top-N or named symbols)",
)
@limiter.limit(RATE_LIMIT_SYNC)
def sync_crypto(
        request: Request,  # Required for rate limiting
        background_tasks: BackgroundTasks,
        mode: Literal["all", "top", "specific"] = Query(default="all"),
        limit: int | None = Query(default=None, ge=1, le=1000),
        symbols: str | None = Query(default=None, description="Comma-separated base assets"),
        service: InstrumentSyncService = Depends(get_sync_service),
):
    symbol_list = [s.strip() for s in symbols.split(",") if s.strip()] if symbols else None
    if mode == "specific" and not symbol_list:
        # Checked here too so the caller gets a 400 instead of a 202
        raise ValidationError("symbols are required for specific mode", field="symbols")

    background_tasks.add_task(_run_sync_crypto, service, mode, limit, symbol_list)
    return SyncStartedResponse(
        message=f"Crypto sync ({mode}) started in background",
        sources=[BINANCE_MARKET],
    )


@router.post(
    "/sync/{market}",
    response_model=SyncStartedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Sync one source (or alias/group) in the background",
)
@limiter.limit(RATE_LIMIT_SYNC)
def sync_market(
        request: Request,  # Required for rate limiting
        market: str,
        background_tasks: BackgroundTasks,
        service: InstrumentSyncService = Depends(get_sync_service),
):
    # Raises ValidationError (400) before anything is scheduled
    sources = service.resolve_sources(market)
    background_tasks.add_task(_run_sync_source, service, market)
    logger.info(f"Scheduled sync for {market} -> {sources}")
    return SyncStartedResponse(message=f"Sync for {market.upper()} started in background", sources=sources)


# =============================================================================
# DETAIL ENDPOINT (last: its path matches any two segments)
# =============================================================================

@router.get(
    "/{market}/{symbol}",
    response_model=InstrumentResponse,
    summary="Get one instrument",
)
def get_instrument(
        market: str,
        symbol: str,
        db: Session = Depends(get_db),
        service: InstrumentService = Depends(get_instrument_service),
):
    return service.get_instrument(db, market, symbol)
