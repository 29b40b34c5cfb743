# backend/market_sync/scheduler.py
"""
Scheduled jobs and the startup sync.

Cron schedule (SCHEDULER_TIMEZONE, Mon-Fri):
    06:00  full instrument sync (before the Asian open)
    09:00  asset price refresh
    15:30  asset price refresh (near the close)

Job functions are plain callables so they can be triggered by hand or
from tests without a running scheduler.
"""

import logging
from collections.abc import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session

from market_sync.config import settings
from market_sync.database import SessionLocal
from market_sync.dependencies import (
    get_instrument_service,
    get_price_resolver,
    get_sync_service,
)
from market_sync.services.constants import FUND_MARKETS
from market_sync.services.market_data.instrument_service import InstrumentService
from market_sync.services.market_data.sync_service import InstrumentSyncService, SyncReport
from market_sync.utils.context import correlation_scope

logger = logging.getLogger(__name__)


# =============================================================================
# JOBS
# =============================================================================

def _log_report(title: str, report: SyncReport) -> None:
    logger.info(f"{title}:")
    for source, counts in report.summary().items():
        line = f"  {source}: {counts['success']} success, {counts['failed']} failed"
        if counts["error"]:
            line += f" (error: {counts['error']})"
        logger.info(line)


def sync_all_job() -> None:
    """Scheduled full instrument sync."""
    with correlation_scope("cron"):
        logger.info("Running scheduled market instruments sync (all sources)")
        try:
            report = get_sync_service().sync_all()
            _log_report("Scheduled sync completed", report)
        except Exception as e:
            logger.exception(f"Scheduled sync failed: {e}")


def refresh_prices_job() -> None:
    """Scheduled refresh of SYNC-sourced asset prices."""
    with correlation_scope("cron"):
        logger.info("Running scheduled asset price refresh")
        try:
            with SessionLocal() as db:
                get_price_resolver().refresh_asset_prices(db)
        except Exception as e:
            logger.exception(f"Scheduled price refresh failed: {e}")


def create_scheduler(timezone: str | None = None) -> BackgroundScheduler:
    """Build the scheduler with all cron jobs registered (not started)."""
    scheduler = BackgroundScheduler(timezone=timezone or settings.scheduler_timezone)

    scheduler.add_job(
        sync_all_job,
        CronTrigger(day_of_week="mon-fri", hour=6, minute=0),
        id="instrument_sync_all",
        replace_existing=True,
    )
    scheduler.add_job(
        refresh_prices_job,
        CronTrigger(day_of_week="mon-fri", hour=9, minute=0),
        id="asset_price_refresh_open",
        replace_existing=True,
    )
    scheduler.add_job(
        refresh_prices_job,
        CronTrigger(day_of_week="mon-fri", hour=15, minute=30),
        id="asset_price_refresh_close",
        replace_existing=True,
    )
    return scheduler


# =============================================================================
# STARTUP SYNC
# =============================================================================

def run_startup_sync(
        sync_service: InstrumentSyncService | None = None,
        instrument_service: InstrumentService | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
        force: bool | None = None,
) -> str:
    """
    Bring the instrument table up to date after boot.

    - force: clear every instrument, then run a full sync
    - empty table: run the initial full sync
    - no fund-company rows: sync the fund vendors only

    Returns:
        The action taken: "force", "initial", "funds" or "none"
    """
    sync_service = sync_service or get_sync_service()
    instrument_service = instrument_service or get_instrument_service()
    force = settings.force_sync_on_startup if force is None else force

    with correlation_scope("startup"):
        if force:
            logger.warning("FORCE_SYNC_ON_STARTUP is enabled, clearing all instruments")
            with session_factory() as db:
                instrument_service.clear_all(db)
            _log_report("Force sync completed", sync_service.sync_all())
            return "force"

        with session_factory() as db:
            total = instrument_service.count_instruments(db)
            funds = instrument_service.count_instruments(db, FUND_MARKETS)
        logger.info(f"Current market instruments: {total} (funds: {funds})")

        if total == 0:
            logger.info("No market instruments found, starting initial sync")
            _log_report("Initial sync completed", sync_service.sync_all())
            return "initial"

        if funds == 0:
            logger.info("No fund data found, starting initial fund sync")
            _log_report("Initial fund sync completed", sync_service.sync_funds())
            return "funds"

        return "none"
