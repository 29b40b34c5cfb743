# backend/market_sync/models.py
import enum
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import String, Date, DateTime, Enum, Numeric, UniqueConstraint, Boolean, Text, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InstrumentType(str, enum.Enum):
    STOCK = "STOCK"
    ETF = "ETF"
    FUND = "FUND"
    BOND = "BOND"
    CRYPTO = "CRYPTO"


class SyncTaskStatus(str, enum.Enum):
    """
    Lifecycle of a single source sync run.

    State transitions:
        PENDING → RUNNING → SUCCESS
        PENDING → RUNNING → FAILED
        PENDING → FAILED (run aborted before fetch)

    SUCCESS and FAILED are terminal and written exactly once.
    """
    PENDING = "PENDING"
    RUNNING = "RUNNING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class AssetSource(str, enum.Enum):
    SYNC = "SYNC"  # Price follows the synced instrument
    MANUAL = "MANUAL"  # Price maintained by the user


class MarketInstrument(Base):
    """
    Canonical tradable instrument, one row per (symbol, market).

    Written exclusively by the sync pipeline through an upsert on the
    unique key; everything else only reads these rows.
    """
    __tablename__ = "market_instruments"
    __table_args__ = (
        UniqueConstraint('symbol', 'market', name='uq_instrument_symbol_market'),
        Index('ix_instrument_market_active', 'market', 'is_active'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)

    # Identity
    symbol: Mapped[str] = mapped_column(String(32), index=True)
    market: Mapped[str] = mapped_column(String(32), index=True)  # e.g., "NASDAQ", "SSE_FUND"
    type: Mapped[InstrumentType] = mapped_column(Enum(InstrumentType))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    name: Mapped[str] = mapped_column(String(255))

    # Market data
    last_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    change: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    change_percent: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    volume: Mapped[Decimal | None] = mapped_column(Numeric(30, 4), nullable=True)
    market_cap: Mapped[Decimal | None] = mapped_column(Numeric(30, 2), nullable=True)

    # Descriptive
    sector: Mapped[str | None] = mapped_column(String(128), nullable=True)
    industry: Mapped[str | None] = mapped_column(String(255), nullable=True)
    country: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Fund-specific (yields are percentages, e.g. 2.35 means 2.35%)
    fund_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    risk_level: Mapped[str | None] = mapped_column(String(32), nullable=True)
    manager_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    yield_7d: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_1w: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_1m: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_3m: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_6m: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_1y: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_ytd: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    yield_since_inception: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    nav_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    setup_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Lifecycle
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    last_sync_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class SyncTask(Base):
    """
    Audit row for one extractor run.

    Created PENDING before any network call; completed_at is only set
    when the task reaches SUCCESS or FAILED.
    """
    __tablename__ = "sync_tasks"
    __table_args__ = (
        Index('ix_sync_task_market_started', 'market', 'started_at'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    market: Mapped[str] = mapped_column(String(32))  # Source label, e.g. "NASDAQ", "BINANCE_TOP"
    status: Mapped[SyncTaskStatus] = mapped_column(
        Enum(SyncTaskStatus), default=SyncTaskStatus.PENDING
    )
    total_count: Mapped[int] = mapped_column(default=0)
    success_count: Mapped[int] = mapped_column(default=0)
    failed_count: Mapped[int] = mapped_column(default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class ExchangeRate(Base):
    """
    Daily exchange rates between currency pairs.

    Convention: amount_in_to = amount_in_from * rate
    Example: from=USD, to=CNY, rate=7.1 means 1 USD = 7.1 CNY

    A sync always stores the forward row and its reciprocal for the same day.
    """
    __tablename__ = "exchange_rates"
    __table_args__ = (
        UniqueConstraint('from_currency', 'to_currency', 'date',
                         name='uq_exchange_rate_pair_date'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    from_currency: Mapped[str] = mapped_column(String(3), index=True)
    to_currency: Mapped[str] = mapped_column(String(3), index=True)
    date: Mapped[date] = mapped_column(Date, index=True)
    rate: Mapped[Decimal] = mapped_column(Numeric(18, 8))
    source: Mapped[str] = mapped_column(String(32), default="CHINAMONEY")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)


class Asset(Base):
    """
    A held position as seen by the pricing read path.

    Owned by the portfolio layer; the sync pipeline only refreshes
    current_price for SYNC-sourced rows.
    """
    __tablename__ = "assets"
    __table_args__ = (
        Index('ix_asset_symbol_market', 'symbol', 'market'),
    )

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    symbol: Mapped[str] = mapped_column(String(32))
    name: Mapped[str] = mapped_column(String(255))
    market: Mapped[str] = mapped_column(String(32))
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    quantity: Mapped[Decimal] = mapped_column(Numeric(20, 8), default=Decimal("0"))
    cost_price: Mapped[Decimal] = mapped_column(Numeric(20, 8), default=Decimal("0"))
    current_price: Mapped[Decimal | None] = mapped_column(Numeric(20, 8), nullable=True)
    source: Mapped[AssetSource] = mapped_column(Enum(AssetSource), default=AssetSource.SYNC)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)
