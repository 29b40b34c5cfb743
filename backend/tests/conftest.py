# backend/tests/conftest.py
"""
Pytest configuration and fixtures.

This module provides shared fixtures for all tests:
- Database session fixtures (in-memory SQLite, file SQLite for threaded runs)
- A fake vendor behind httpx.MockTransport, so extractors run their real
  HTTP code without network access
- A stub extractor for ledger and orchestration tests
- Sample data factories
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any, Iterator
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from market_sync.models import (
    Asset,
    AssetSource,
    Base,
    ExchangeRate,
    InstrumentType,
    MarketInstrument,
)
from market_sync.services.market_data.base import RawInstrument, SourceExtractor
from market_sync.services.transport import HttpTransport


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)


@pytest.fixture(scope="function")
def db(db_engine) -> Iterator[Session]:
    """Create a database session for testing."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(scope="function")
def file_engine(tmp_path):
    """
    File-backed SQLite engine.

    The orchestrator opens one session per source from worker threads;
    an in-memory StaticPool would share a single connection between them.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'sync.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(file_engine) -> sessionmaker:
    """Session factory handed to InstrumentSyncService."""
    return sessionmaker(autocommit=False, autoflush=False, bind=file_engine)


# =============================================================================
# FAKE VENDOR (httpx.MockTransport)
# =============================================================================

Handler = Callable[[httpx.Request], httpx.Response]


class FakeVendor:
    """
    Serves canned responses keyed by URL path.

    Unknown paths answer 404. Every request is recorded, and the sleeps
    the transport would have taken between retries are collected.
    """

    def __init__(self) -> None:
        self._routes: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []
        self.sleeps: list[float] = []

    def add_json(self, path: str, payload: Any, status_code: int = 200) -> None:
        self._routes[path] = lambda request: httpx.Response(status_code, json=payload)

    def add_text(self, path: str, text: str, status_code: int = 200) -> None:
        self._routes[path] = lambda request: httpx.Response(status_code, text=text)

    def add_handler(self, path: str, handler: Handler) -> None:
        self._routes[path] = handler

    def calls(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self._routes.get(request.url.path)
        if handler is None:
            return httpx.Response(404, text="not found")
        return handler(request)


@pytest.fixture
def vendor() -> FakeVendor:
    """Fresh fake vendor for each test."""
    return FakeVendor()


def make_transport(vendor: FakeVendor, **kwargs) -> HttpTransport:
    """HttpTransport wired to the fake vendor; sleeps are recorded, not taken."""
    options = {
        "max_retries": 3,
        "initial_delay": 1.0,
        "max_delay": 10.0,
        "backoff_multiplier": 2.0,
        "timeout": 5.0,
    }
    options.update(kwargs)
    return HttpTransport(
        transport=httpx.MockTransport(vendor.handle),
        sleep=vendor.sleeps.append,
        **options,
    )


@pytest.fixture
def transport(vendor: FakeVendor) -> Iterator[HttpTransport]:
    """Transport backed by the fake vendor."""
    t = make_transport(vendor)
    yield t
    t.close()


# =============================================================================
# STUB EXTRACTOR
# =============================================================================

class StubExtractor(SourceExtractor):
    """
    Extractor returning preconfigured rows (or raising a preconfigured error).

    Example:
        StubExtractor("NASDAQ", records=[raw_instrument("AAPL")])
        StubExtractor("SSE_BOND", error=TransportError(url, "reset", 4))
    """

    def __init__(
            self,
            name: str = "STUB",
            records: list[RawInstrument] | None = None,
            error: Exception | None = None,
            failed_symbols: list[str] | None = None,
    ) -> None:
        super().__init__(transport=MagicMock(spec=HttpTransport))
        self._name = name
        self._records = records or []
        self._error = error
        self._failed = failed_symbols or []
        self.fetch_calls = 0

    @property
    def source_name(self) -> str:
        return self._name

    def fetch(self) -> list[RawInstrument]:
        self.fetch_calls += 1
        if self._error is not None:
            raise self._error
        self.failed_symbols = list(self._failed)
        return list(self._records)


# =============================================================================
# SAMPLE DATA FACTORIES
# =============================================================================

def raw_instrument(
        symbol: str = "AAPL",
        market: str = "NASDAQ",
        name: str | None = None,
        type: InstrumentType = InstrumentType.STOCK,
        currency: str | None = "USD",
        last_price: float | None = 189.84,
        **extra: Any,
) -> RawInstrument:
    """Factory function for creating RawInstrument test data."""
    return RawInstrument(
        symbol=symbol,
        name=name if name is not None else f"{symbol} Inc.",
        market=market,
        type=type,
        currency=currency,
        last_price=last_price,
        **extra,
    )


def create_instrument(
        db: Session,
        symbol: str = "AAPL",
        market: str = "NASDAQ",
        name: str = "Apple Inc.",
        type: InstrumentType = InstrumentType.STOCK,
        currency: str = "USD",
        last_price: Decimal | None = Decimal("189.84"),
        market_cap: Decimal | None = None,
        is_active: bool = True,
        **extra: Any,
) -> MarketInstrument:
    """Factory function for creating MarketInstrument entities in the database."""
    instrument = MarketInstrument(
        symbol=symbol,
        market=market,
        name=name,
        type=type,
        currency=currency,
        last_price=last_price,
        market_cap=market_cap,
        is_active=is_active,
        **extra,
    )
    db.add(instrument)
    db.commit()
    db.refresh(instrument)
    return instrument


def create_asset(
        db: Session,
        symbol: str = "AAPL",
        market: str = "NASDAQ",
        name: str = "Apple Inc.",
        current_price: Decimal | None = None,
        source: AssetSource = AssetSource.SYNC,
) -> Asset:
    """Factory function for creating Asset entities in the database."""
    asset = Asset(
        symbol=symbol,
        market=market,
        name=name,
        current_price=current_price,
        source=source,
    )
    db.add(asset)
    db.commit()
    db.refresh(asset)
    return asset


def create_rate(
        db: Session,
        from_currency: str = "USD",
        to_currency: str = "CNY",
        rate_date: date = date(2026, 2, 6),
        rate: Decimal = Decimal("7.1"),
        source: str = "CHINAMONEY",
) -> ExchangeRate:
    """Factory function for creating ExchangeRate entities in the database."""
    row = ExchangeRate(
        from_currency=from_currency,
        to_currency=to_currency,
        date=rate_date,
        rate=rate,
        source=source,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


# =============================================================================
# API CLIENT
# =============================================================================

@pytest.fixture(scope="function")
def client(db: Session) -> Iterator[TestClient]:
    """
    TestClient with get_db bound to the test session.

    Tests override service dependencies through app.dependency_overrides;
    every override is removed again on teardown.
    """
    from market_sync.database import get_db
    from market_sync.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
