# tests/services/test_sync_service.py
"""
Tests for the InstrumentSyncService orchestrator.

This module tests:
- Concurrent runs with one session per source
- Source isolation (one failing source never affects the others)
- Name resolution (aliases, the FUNDS group, invalid names)
- Crypto sync modes

Sources run in worker threads, so these tests use the file-backed
SQLite session factory from conftest.
"""

import threading
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy import select

from market_sync.models import MarketInstrument, SyncTask, SyncTaskStatus
from market_sync.services.constants import FUND_MARKETS
from market_sync.services.exceptions import TransportError, ValidationError
from market_sync.services.market_data.ledger import SourceSyncResult
from market_sync.services.market_data.sync_service import (
    InstrumentSyncService,
    SyncReport,
    default_registry,
)
from market_sync.services.transport import HttpTransport
from market_sync.utils.context import get_correlation_id
from tests.conftest import StubExtractor, raw_instrument


def _crashing_factory(transport):
    raise RuntimeError("extractor construction failed")


@pytest.fixture
def registry() -> dict:
    return {
        "GOOD": lambda t: StubExtractor("GOOD", records=[
            raw_instrument("AAPL", market="GOOD"), raw_instrument("MSFT", market="GOOD"),
        ]),
        "BAD": lambda t: StubExtractor(
            "BAD", error=TransportError("https://bad.example", "connection reset", 4)
        ),
        "CRASH": _crashing_factory,
    }


@pytest.fixture
def service(registry, session_factory) -> InstrumentSyncService:
    return InstrumentSyncService(
        transport=MagicMock(spec=HttpTransport),
        session_factory=session_factory,
        registry=registry,
    )


# =============================================================================
# SYNC ALL
# =============================================================================

class TestSyncAll:
    """Tests for sync_all()."""

    def test_failing_source_is_isolated(self, service, session_factory):
        report = service.sync_all()

        assert set(report.results) == {"GOOD", "BAD", "CRASH"}
        assert report.results["GOOD"].ok
        assert report.results["GOOD"].success == 2
        assert report.results["BAD"].status == SyncTaskStatus.FAILED
        assert "connection reset" in report.results["BAD"].error
        assert report.results["CRASH"].status == SyncTaskStatus.FAILED
        assert "construction failed" in report.results["CRASH"].error
        assert sorted(report.failed_sources) == ["BAD", "CRASH"]
        assert report.completed_at is not None

        with session_factory() as db:
            assert len(db.scalars(select(MarketInstrument)).all()) == 2
            tasks = {t.market: t for t in db.scalars(select(SyncTask))}
        assert tasks["GOOD"].status == SyncTaskStatus.SUCCESS
        assert tasks["BAD"].status == SyncTaskStatus.FAILED
        # The crash happened before a task could be created
        assert "CRASH" not in tasks

    def test_summary(self, service):
        summary = service.sync_all().summary()

        assert summary["GOOD"] == {"success": 2, "failed": 0, "error": None}
        assert summary["BAD"]["success"] == 0
        assert summary["BAD"]["error"]

    def test_totals(self, service):
        report = service.sync_all()

        assert report.total_success == 2
        assert report.total_failed == 0

    def test_runs_share_a_correlation_id(self, session_factory):
        seen = []

        class RecordingExtractor(StubExtractor):
            def fetch(self):
                seen.append(get_correlation_id())
                return super().fetch()

        service = InstrumentSyncService(
            transport=MagicMock(spec=HttpTransport),
            session_factory=session_factory,
            registry={name: (lambda t, n=name: RecordingExtractor(n)) for name in ("A", "B")},
        )

        service.sync_all()

        assert len(seen) == 2
        assert seen[0] is not None
        assert seen[0] == seen[1]
        assert seen[0].startswith("sync-")

    def test_sources_run_concurrently(self, session_factory):
        """Each fetch waits for the other; a sequential run would break the barrier."""
        barrier = threading.Barrier(2, timeout=5)
        threads = set()

        class RendezvousExtractor(StubExtractor):
            def fetch(self):
                threads.add(threading.current_thread().name)
                barrier.wait()
                return super().fetch()

        service = InstrumentSyncService(
            transport=MagicMock(spec=HttpTransport),
            session_factory=session_factory,
            registry={
                name: (lambda t, n=name: RendezvousExtractor(n, records=[raw_instrument("AAPL", market=n)]))
                for name in ("A", "B")
            },
        )

        report = service.sync_all()

        assert report.failed_sources == []
        assert report.results["A"].success == 1
        assert report.results["B"].success == 1
        assert len(threads) == 2
        assert not barrier.broken

    def test_empty_registry(self, session_factory):
        service = InstrumentSyncService(
            transport=MagicMock(spec=HttpTransport),
            session_factory=session_factory,
            registry={},
        )

        report = service.sync_all()

        assert report.results == {}
        assert report.completed_at is not None


# =============================================================================
# NAME RESOLUTION
# =============================================================================

class TestResolveSources:
    """Tests for resolve_sources() against the default registry."""

    @pytest.fixture
    def default_service(self) -> InstrumentSyncService:
        return InstrumentSyncService(transport=MagicMock(spec=HttpTransport))

    def test_registered_name_case_insensitive(self, default_service):
        assert default_service.resolve_sources("nasdaq") == ["NASDAQ"]

    def test_alias(self, default_service):
        assert default_service.resolve_sources("SSE") == ["SSE_STOCK"]

    def test_funds_group(self, default_service):
        assert default_service.resolve_sources("funds") == list(FUND_MARKETS)

    def test_invalid_name(self, default_service):
        with pytest.raises(ValidationError) as exc_info:
            default_service.resolve_sources("LSE")

        assert exc_info.value.field == "market"
        assert "NASDAQ" in str(exc_info.value)

    def test_default_registry_covers_every_source(self):
        assert set(default_registry()) == {
            "NASDAQ", "NYSE", "AMEX", "US_ETF",
            "SSE_STOCK", "SSE_FUND", "SSE_BOND",
            "NF_FUND", "BOSERA", "EFUNDS",
            "BINANCE",
        }

    def test_registry_builds_extractors(self):
        transport = MagicMock(spec=HttpTransport)
        for name, factory in default_registry().items():
            assert factory(transport).source_name == name


# =============================================================================
# SINGLE SOURCE / FUNDS
# =============================================================================

class TestSyncSource:
    """Tests for sync_source() and sync_funds()."""

    def test_sync_one_source(self, service):
        report = service.sync_source("good")

        assert list(report.results) == ["GOOD"]
        assert report.results["GOOD"].ok

    def test_invalid_source_runs_nothing(self, service):
        with patch.object(service, "_run_many") as run_many:
            with pytest.raises(ValidationError):
                service.sync_source("nope")
        run_many.assert_not_called()

    def test_sync_funds_runs_fund_vendors(self, session_factory):
        registry = {name: (lambda t, n=name: StubExtractor(n)) for name in FUND_MARKETS}
        registry["NASDAQ"] = lambda t: StubExtractor("NASDAQ")
        service = InstrumentSyncService(
            transport=MagicMock(spec=HttpTransport),
            session_factory=session_factory,
            registry=registry,
        )

        report = service.sync_funds()

        assert set(report.results) == set(FUND_MARKETS)


# =============================================================================
# CRYPTO
# =============================================================================

class TestSyncCrypto:
    """Tests for sync_crypto()."""

    def test_top_mode(self, vendor, transport, session_factory):
        vendor.add_json("/api/v3/ticker/24hr", [
            {"symbol": "BTCUSDT", "lastPrice": "97000", "quoteVolume": "5000000000"},
            {"symbol": "ETHUSDT", "lastPrice": "3400", "quoteVolume": "2000000000"},
            {"symbol": "DOGEUSDT", "lastPrice": "0.3", "quoteVolume": "900000000"},
        ])
        service = InstrumentSyncService(transport, session_factory=session_factory, registry={})

        result = service.sync_crypto(mode="top", limit=2)

        assert isinstance(result, SourceSyncResult)
        assert result.source == "BINANCE_TOP"
        assert result.success == 2
        with session_factory() as db:
            symbols = set(db.scalars(select(MarketInstrument.symbol)))
            task = db.get(SyncTask, result.task_id)
        assert symbols == {"BTC", "ETH"}
        assert task.market == "BINANCE_TOP"

    def test_invalid_mode_raises_before_running(self, session_factory):
        service = InstrumentSyncService(
            transport=MagicMock(spec=HttpTransport),
            session_factory=session_factory,
            registry={},
        )

        with pytest.raises(ValidationError):
            service.sync_crypto(mode="bogus")

        with session_factory() as db:
            assert db.scalars(select(SyncTask)).all() == []


class TestSyncReport:
    """Tests for SyncReport helpers."""

    def test_failed_sources(self):
        report = SyncReport(started_at=datetime.now(timezone.utc))
        report.results["A"] = SourceSyncResult("A", SyncTaskStatus.SUCCESS, success=3)
        report.results["B"] = SourceSyncResult("B", SyncTaskStatus.FAILED, error="boom")

        assert report.failed_sources == ["B"]
        assert report.total_success == 3
