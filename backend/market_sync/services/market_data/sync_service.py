# backend/market_sync/services/market_data/sync_service.py
"""
Instrument Sync Service: orchestrates extractor runs across all sources.

This service handles:
- Holding the registry of known sources (name -> extractor factory)
- Running every source concurrently, each with its own DB session
- Resolving user-facing source names (aliases, the FUNDS group)
- Crypto sync modes (all / top-N / named symbols)

Design Principles:
- Isolation: one source failing never affects another; failures are
  reported in the SyncReport, not raised
- Dependency Injection: transport, session factory and registry are
  constructor arguments so tests can swap any of them
- No HTTP Knowledge: raises domain exceptions, not HTTPException

Usage:
    from market_sync.services.market_data import InstrumentSyncService

    service = InstrumentSyncService(transport)
    report = service.sync_all()
    for source, counts in report.summary().items():
        print(source, counts["success"], counts["failed"])
"""

import contextvars
import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from market_sync.config import settings
from market_sync.database import SessionLocal
from market_sync.models import SyncTaskStatus
from market_sync.services.constants import (
    BINANCE_MARKET,
    BOSERA_MARKET,
    EFUNDS_MARKET,
    FUND_MARKETS,
    NF_FUND_MARKET,
    SOURCE_ALIASES,
    SSE_BOND_MARKET,
    SSE_FUND_MARKET,
    SSE_STOCK_MARKET,
    US_ETF_MARKET,
    US_EXCHANGES,
)
from market_sync.services.exceptions import ValidationError
from market_sync.services.market_data.base import SourceExtractor
from market_sync.services.market_data.binance import BinanceExtractor, CryptoMode
from market_sync.services.market_data.funds import (
    BoseraExtractor,
    EFundsExtractor,
    NFFundExtractor,
)
from market_sync.services.market_data.ledger import SourceSyncResult, SourceSyncRunner
from market_sync.services.market_data.nasdaq import USETFExtractor, USExchangeExtractor
from market_sync.services.market_data.sse import (
    SSEBondExtractor,
    SSEFundExtractor,
    SSEStockExtractor,
)
from market_sync.services.transport import HttpTransport
from market_sync.utils.context import correlation_scope

logger = logging.getLogger(__name__)

ExtractorFactory = Callable[[HttpTransport], SourceExtractor]
SessionFactory = Callable[[], Session]

# Names that expand to several registered sources
SOURCE_GROUPS: dict[str, tuple[str, ...]] = {
    "FUNDS": FUND_MARKETS,
}


def _us_exchange(exchange: str) -> ExtractorFactory:
    return lambda transport: USExchangeExtractor(transport, exchange)


def default_registry() -> dict[str, ExtractorFactory]:
    """
    Build the source registry.

    Order is the order sources are submitted in; results are still
    collected as they finish.
    """
    registry: dict[str, ExtractorFactory] = {
        exchange: _us_exchange(exchange) for exchange in US_EXCHANGES
    }
    registry.update({
        US_ETF_MARKET: USETFExtractor,
        SSE_STOCK_MARKET: SSEStockExtractor,
        SSE_FUND_MARKET: SSEFundExtractor,
        SSE_BOND_MARKET: lambda transport: SSEBondExtractor(
            transport, settings.sse_bond_prefixes
        ),
        NF_FUND_MARKET: NFFundExtractor,
        BOSERA_MARKET: BoseraExtractor,
        EFUNDS_MARKET: EFundsExtractor,
        BINANCE_MARKET: lambda transport: BinanceExtractor(transport, mode="all"),
    })
    return registry


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class SyncReport:
    """Results of a multi-source sync, keyed by source name."""

    started_at: datetime
    completed_at: datetime | None = None
    results: dict[str, SourceSyncResult] = field(default_factory=dict)

    @property
    def total_success(self) -> int:
        return sum(r.success for r in self.results.values())

    @property
    def total_failed(self) -> int:
        return sum(r.failed for r in self.results.values())

    @property
    def failed_sources(self) -> list[str]:
        return [name for name, r in self.results.items() if not r.ok]

    def summary(self) -> dict[str, dict]:
        """Source -> {success, failed, error}."""
        return {
            name: {"success": r.success, "failed": r.failed, "error": r.error}
            for name, r in self.results.items()
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SERVICE
# =============================================================================

class InstrumentSyncService:
    """
    Runs registered extractors and records each run in the sync ledger.

    Attributes:
        transport: Shared HTTP transport handed to every extractor
    """

    def __init__(
            self,
            transport: HttpTransport,
            session_factory: SessionFactory = SessionLocal,
            registry: dict[str, ExtractorFactory] | None = None,
    ) -> None:
        self.transport = transport
        self._session_factory = session_factory
        self._registry = registry if registry is not None else default_registry()

    @property
    def sources(self) -> list[str]:
        return list(self._registry)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def resolve_sources(self, name: str) -> list[str]:
        """
        Map a user-facing source name onto registered sources.

        Raises:
            ValidationError: If the name is not a known source, alias or group
        """
        key = (name or "").strip().upper()
        key = SOURCE_ALIASES.get(key, key)

        if key in SOURCE_GROUPS:
            return list(SOURCE_GROUPS[key])
        if key in self._registry:
            return [key]

        valid = sorted({*self._registry, *SOURCE_ALIASES, *SOURCE_GROUPS})
        raise ValidationError(
            f"Invalid market '{name}'. Valid markets: {', '.join(valid)}",
            field="market",
        )

    def sync_all(self) -> SyncReport:
        """Run every registered source concurrently."""
        logger.info(f"Starting full instrument sync ({len(self._registry)} sources)")
        report = self._run_many(self.sources)
        logger.info(
            f"Full instrument sync finished: {report.total_success} success, "
            f"{report.total_failed} failed, failed sources: {report.failed_sources or 'none'}"
        )
        return report

    def sync_source(self, name: str) -> SyncReport:
        """
        Run one source (or an alias/group of sources).

        Raises:
            ValidationError: For unknown names, before anything runs
        """
        return self._run_many(self.resolve_sources(name))

    def sync_funds(self) -> SyncReport:
        """Run the three fund-company sources."""
        return self._run_many(FUND_MARKETS)

    def sync_crypto(
            self,
            mode: CryptoMode = "all",
            limit: int | None = None,
            symbols: Iterable[str] | None = None,
    ) -> SourceSyncResult:
        """
        Sync Binance USDT pairs.

        Args:
            mode: "all" (volume-filtered), "top" (by volume) or "specific"
            limit: Number of pairs for "top"
            symbols: Base assets for "specific"

        Raises:
            ValidationError: For an unknown mode or missing arguments
        """
        extractor = BinanceExtractor(self.transport, mode=mode, limit=limit, symbols=symbols)
        with correlation_scope("sync"):
            return self._run_extractor(extractor)

    # =========================================================================
    # RUNNING
    # =========================================================================

    def _run_extractor(self, extractor: SourceExtractor) -> SourceSyncResult:
        with self._session_factory() as db:
            return SourceSyncRunner(db).run(extractor)

    def _run_named(self, name: str) -> SourceSyncResult:
        extractor = self._registry[name](self.transport)
        return self._run_extractor(extractor)

    def _run_many(self, names: Iterable[str]) -> SyncReport:
        names = list(names)
        report = SyncReport(started_at=_utcnow())
        if not names:
            report.completed_at = _utcnow()
            return report

        with correlation_scope("sync"):
            with ThreadPoolExecutor(max_workers=len(names), thread_name_prefix="sync") as executor:
                # Worker threads do not inherit contextvars; each task
                # carries its own copy so log lines keep the correlation ID
                future_to_name = {
                    executor.submit(contextvars.copy_context().run, self._run_named, name): name
                    for name in names
                }

                for future in as_completed(future_to_name):
                    name = future_to_name[future]
                    try:
                        report.results[name] = future.result()
                    except Exception as e:
                        logger.exception(f"[{name}] Source run crashed: {e}")
                        report.results[name] = SourceSyncResult(
                            source=name,
                            status=SyncTaskStatus.FAILED,
                            failed=0,
                            error=str(e) or type(e).__name__,
                        )

        report.completed_at = _utcnow()
        return report
