# backend/market_sync/services/market_data/__init__.py
"""
Instrument sync pipeline.

Each source is an extractor that yields RawInstrument rows. The
normalizer turns rows into validated InstrumentRecords, the ledger
upserts them and tracks one SyncTask per source run, and the sync
service runs sources concurrently and aggregates a SyncReport.

Usage:
    from market_sync.services.market_data import (
        InstrumentSyncService,
        InstrumentService,
        SourceExtractor,
        RawInstrument,
    )

Architecture:
    SourceExtractor (ABC)
    ├── USExchangeExtractor / USETFExtractor    (Nasdaq screener)
    ├── SSEStockExtractor / SSEFundExtractor / SSEBondExtractor
    ├── NFFundExtractor / BoseraExtractor / EFundsExtractor
    └── BinanceExtractor

    InstrumentSyncService
    └── SourceSyncRunner (one per source, own session)
        ├── normalize / validate_or_raise
        ├── InstrumentRepository.upsert
        └── SyncTaskLedger
"""

from market_sync.services.market_data.base import RawInstrument, SourceExtractor
from market_sync.services.market_data.binance import BinanceExtractor
from market_sync.services.market_data.funds import (
    BoseraExtractor,
    EFundsExtractor,
    NFFundExtractor,
)
from market_sync.services.market_data.instrument_service import (
    InstrumentService,
    InstrumentStats,
    MarketCount,
)
from market_sync.services.market_data.ledger import (
    InstrumentRepository,
    SourceSyncResult,
    SourceSyncRunner,
    SyncTaskLedger,
)
from market_sync.services.market_data.nasdaq import USETFExtractor, USExchangeExtractor
from market_sync.services.market_data.normalizer import (
    InstrumentRecord,
    normalize,
    validate,
    validate_or_raise,
)
from market_sync.services.market_data.sse import (
    SSEBondExtractor,
    SSEFundExtractor,
    SSEStockExtractor,
)
from market_sync.services.market_data.sync_service import (
    InstrumentSyncService,
    SyncReport,
    default_registry,
)

__all__ = [
    # Extractors
    "RawInstrument",
    "SourceExtractor",
    "USExchangeExtractor",
    "USETFExtractor",
    "SSEStockExtractor",
    "SSEFundExtractor",
    "SSEBondExtractor",
    "NFFundExtractor",
    "BoseraExtractor",
    "EFundsExtractor",
    "BinanceExtractor",
    # Normalization
    "InstrumentRecord",
    "normalize",
    "validate",
    "validate_or_raise",
    # Persistence
    "SyncTaskLedger",
    "InstrumentRepository",
    "SourceSyncRunner",
    "SourceSyncResult",
    # Orchestration
    "InstrumentSyncService",
    "SyncReport",
    "default_registry",
    # Queries
    "InstrumentService",
    "InstrumentStats",
    "MarketCount",
]
