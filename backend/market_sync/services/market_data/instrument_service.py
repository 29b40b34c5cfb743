# backend/market_sync/services/market_data/instrument_service.py
"""
Read-side queries over synced instruments and the sync ledger.

All methods take the session explicitly; the service itself is stateless
and safe to share.
"""

import logging
from dataclasses import dataclass, field

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from market_sync.models import MarketInstrument, SyncTask
from market_sync.services.constants import (
    BINANCE_MARKET,
    CRYPTO_STATS_TOP_LIMIT,
    FUND_MARKETS,
    SEARCH_DEFAULT_LIMIT,
    SEARCH_MAX_LIMIT,
    SYNC_TASKS_DEFAULT_LIMIT,
)
from market_sync.services.exceptions import InstrumentNotFoundError, ValidationError
from market_sync.services.market_data.ledger import InstrumentRepository, SyncTaskLedger
from market_sync.utils.sql import LIKE_ESCAPE, contains_pattern

logger = logging.getLogger(__name__)


@dataclass
class MarketCount:
    market: str
    count: int


@dataclass
class InstrumentStats:
    total: int
    by_market: list[MarketCount] = field(default_factory=list)


@dataclass
class CryptoStats:
    total: int
    top_by_volume: list[MarketInstrument] = field(default_factory=list)


class InstrumentService:
    """Search, detail and statistics over MarketInstrument rows."""

    def search(
            self,
            db: Session,
            query: str,
            market: str | None = None,
            limit: int = SEARCH_DEFAULT_LIMIT,
    ) -> list[MarketInstrument]:
        """
        Search active instruments by symbol or name.

        Matches symbols containing the upper-cased query or names
        containing the query as typed. Largest market cap first, then
        symbol; instruments without a market cap sort last.

        Raises:
            ValidationError: If the query is blank or limit out of range
        """
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query is required", field="q")
        if limit < 1 or limit > SEARCH_MAX_LIMIT:
            raise ValidationError(
                f"limit must be between 1 and {SEARCH_MAX_LIMIT}", field="limit"
            )

        stmt = select(MarketInstrument).where(
            MarketInstrument.is_active.is_(True),
            or_(
                MarketInstrument.symbol.like(contains_pattern(query.upper()), escape=LIKE_ESCAPE),
                MarketInstrument.name.like(contains_pattern(query), escape=LIKE_ESCAPE),
            ),
        )
        if market:
            stmt = stmt.where(MarketInstrument.market == market.upper())

        stmt = stmt.order_by(
            MarketInstrument.market_cap.is_(None),
            MarketInstrument.market_cap.desc(),
            MarketInstrument.symbol.asc(),
        ).limit(limit)

        return list(db.scalars(stmt))

    def get_instrument(self, db: Session, market: str, symbol: str) -> MarketInstrument:
        """
        Raises:
            InstrumentNotFoundError: If no row exists for (symbol, market)
        """
        instrument = db.scalar(
            select(MarketInstrument).where(
                MarketInstrument.symbol == symbol.upper(),
                MarketInstrument.market == market.upper(),
            )
        )
        if instrument is None:
            raise InstrumentNotFoundError(symbol, market)
        return instrument

    def get_stats(self, db: Session) -> InstrumentStats:
        """Active instrument count, overall and per market."""
        total = db.scalar(
            select(func.count(MarketInstrument.id)).where(MarketInstrument.is_active.is_(True))
        ) or 0
        rows = db.execute(
            select(MarketInstrument.market, func.count(MarketInstrument.id))
            .where(MarketInstrument.is_active.is_(True))
            .group_by(MarketInstrument.market)
            .order_by(MarketInstrument.market)
        ).all()
        return InstrumentStats(
            total=total,
            by_market=[MarketCount(market=m, count=c) for m, c in rows],
        )

    def get_fund_stats(self, db: Session) -> InstrumentStats:
        """Instrument count per fund-company source (markets with rows only)."""
        rows = dict(
            db.execute(
                select(MarketInstrument.market, func.count(MarketInstrument.id))
                .where(MarketInstrument.market.in_(FUND_MARKETS))
                .group_by(MarketInstrument.market)
            ).all()
        )
        by_market = [
            MarketCount(market=m, count=rows[m]) for m in FUND_MARKETS if rows.get(m)
        ]
        return InstrumentStats(total=sum(c.count for c in by_market), by_market=by_market)

    def get_crypto_stats(self, db: Session, top: int = CRYPTO_STATS_TOP_LIMIT) -> CryptoStats:
        """
        Active Binance pair count and the most traded pairs.

        Binance rows store 24h quote volume (USDT) in `volume`; pairs
        without a volume sort last.
        """
        active_binance = (
            MarketInstrument.market == BINANCE_MARKET,
            MarketInstrument.is_active.is_(True),
        )
        total = db.scalar(select(func.count(MarketInstrument.id)).where(*active_binance)) or 0
        top_by_volume = db.scalars(
            select(MarketInstrument)
            .where(*active_binance)
            .order_by(
                MarketInstrument.volume.is_(None),
                MarketInstrument.volume.desc(),
                MarketInstrument.symbol.asc(),
            )
            .limit(top)
        )
        return CryptoStats(total=total, top_by_volume=list(top_by_volume))

    def get_sync_tasks(self, db: Session, limit: int = SYNC_TASKS_DEFAULT_LIMIT) -> list[SyncTask]:
        return SyncTaskLedger(db).recent(limit)

    def count_instruments(self, db: Session, markets: tuple[str, ...] | None = None) -> int:
        stmt = select(func.count(MarketInstrument.id))
        if markets:
            stmt = stmt.where(MarketInstrument.market.in_(markets))
        return db.scalar(stmt) or 0

    def clear_all(self, db: Session) -> int:
        return InstrumentRepository(db).clear_all()
