# backend/market_sync/services/market_data/ledger.py
"""
Sync task ledger, instrument repository and the per-source run frame.

Every extractor run is recorded as a SyncTask:

    create() -> PENDING -> mark_running() -> RUNNING -> complete() -> SUCCESS
                                                     -> fail()     -> FAILED

Records are upserted one at a time on (symbol, market). A record that
fails validation or cannot be written is counted as failed and the run
continues; only a fetch-level error (network, vendor payload) or an
unexpected exception fails the whole task.

Usage:
    from market_sync.services.market_data.ledger import SourceSyncRunner

    result = SourceSyncRunner(db).run(USExchangeExtractor(transport, "NASDAQ"))
    print(result.success, result.failed, result.status)
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from market_sync.models import MarketInstrument, SyncTask, SyncTaskStatus
from market_sync.services.constants import SYNC_TASKS_DEFAULT_LIMIT
from market_sync.services.exceptions import (
    NotFoundError,
    PersistenceError,
    TransportError,
    ValidationError,
    VendorFormatError,
)
from market_sync.services.market_data.base import SourceExtractor
from market_sync.services.market_data.normalizer import (
    InstrumentRecord,
    normalize,
    validate_or_raise,
)
from market_sync.utils.upsert import build_upsert

logger = logging.getLogger(__name__)

# Written on insert only; a later sync never rewrites them
IDENTITY_COLUMNS: tuple[str, ...] = ("symbol", "market", "type", "currency")


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class SourceSyncResult:
    """Outcome of one extractor run."""

    source: str
    status: SyncTaskStatus
    task_id: int | None = None
    total: int = 0
    success: int = 0
    failed: int = 0
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == SyncTaskStatus.SUCCESS


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SYNC TASK LEDGER
# =============================================================================

class SyncTaskLedger:
    """
    Writes SyncTask rows. Every transition is committed immediately so
    progress is visible while a long run is still in flight.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def create(self, market: str) -> SyncTask:
        task = SyncTask(market=market, status=SyncTaskStatus.PENDING)
        self._db.add(task)
        self._db.commit()
        self._db.refresh(task)
        logger.debug(f"Created sync task {task.id} for {market}")
        return task

    def _get(self, task_id: int) -> SyncTask:
        task = self._db.get(SyncTask, task_id)
        if task is None:
            raise NotFoundError(f"Sync task {task_id} not found", "sync_task", task_id)
        return task

    def mark_running(self, task_id: int) -> SyncTask:
        task = self._get(task_id)
        task.status = SyncTaskStatus.RUNNING
        self._db.commit()
        return task

    def complete(self, task_id: int, total: int, success: int, failed: int) -> SyncTask:
        task = self._get(task_id)
        task.status = SyncTaskStatus.SUCCESS
        task.total_count = total
        task.success_count = success
        task.failed_count = failed
        task.completed_at = _utcnow()
        self._db.commit()
        return task

    def fail(
            self,
            task_id: int,
            error_message: str,
            success: int = 0,
            failed: int = 0,
    ) -> SyncTask:
        """
        Mark a task FAILED.

        total_count is reset to 0 because the fetch never produced a
        complete batch; success/failed keep whatever was processed first.
        """
        task = self._get(task_id)
        task.status = SyncTaskStatus.FAILED
        task.total_count = 0
        task.success_count = success
        task.failed_count = failed
        task.error_message = error_message
        task.completed_at = _utcnow()
        self._db.commit()
        return task

    def recent(self, limit: int = SYNC_TASKS_DEFAULT_LIMIT) -> list[SyncTask]:
        """Most recent tasks first."""
        stmt = (
            select(SyncTask)
            .order_by(SyncTask.started_at.desc(), SyncTask.id.desc())
            .limit(limit)
        )
        return list(self._db.scalars(stmt))


# =============================================================================
# INSTRUMENT REPOSITORY
# =============================================================================

def _to_column_value(value: Any) -> Any:
    # Floats go through str() so 0.1 is stored as 0.1, not 0.1000000000000000055
    if isinstance(value, float):
        return Decimal(str(value))
    return value


class InstrumentRepository:
    """Upserts MarketInstrument rows keyed on (symbol, market)."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def upsert(self, record: InstrumentRecord) -> None:
        """
        Insert the record, or merge it into the existing row.

        On conflict only the fields this sync reported (non-None) are
        overwritten, plus last_sync_at; identity columns are never touched.

        Raises:
            PersistenceError: If the statement fails (session rolled back)
        """
        now = _utcnow()
        values = {
            name: _to_column_value(value)
            for name, value in record.column_values().items()
        }
        values["last_sync_at"] = now

        update_columns = [
            name for name, value in values.items()
            if name not in IDENTITY_COLUMNS and value is not None
        ]

        stmt = build_upsert(
            self._db,
            MarketInstrument,
            values,
            index_elements=["symbol", "market"],
            update_columns=update_columns,
            extra_set={"updated_at": now},
        )
        try:
            self._db.execute(stmt)
            self._db.commit()
        except SQLAlchemyError as e:
            self._db.rollback()
            raise PersistenceError(record.symbol, record.market, str(e)) from e

    def clear_all(self) -> int:
        """Delete every instrument. Returns the number of rows removed."""
        result = self._db.execute(delete(MarketInstrument))
        self._db.commit()
        count = result.rowcount or 0
        logger.warning(f"Cleared {count} market instruments")
        return count


# =============================================================================
# SOURCE RUN
# =============================================================================

class SourceSyncRunner:
    """
    Runs one extractor end to end against one session.

    The runner never raises for source-level failures: the task is marked
    FAILED and the returned result carries the error.
    """

    def __init__(self, db: Session) -> None:
        self._db = db
        self.ledger = SyncTaskLedger(db)
        self.repository = InstrumentRepository(db)

    def run(self, extractor: SourceExtractor) -> SourceSyncResult:
        source = extractor.source_name
        task = self.ledger.create(source)
        task_id = task.id
        success = 0
        failed = 0

        try:
            self.ledger.mark_running(task_id)
            logger.info(f"[{source}] Sync started (task {task_id})")

            raw_records = extractor.fetch()

            for raw in raw_records:
                if self._store(source, raw):
                    success += 1
                else:
                    failed += 1

            # Keys the vendor could not serve count as failed records
            failed += len(extractor.failed_symbols)
            total = len(raw_records) + len(extractor.failed_symbols)

            self.ledger.complete(task_id, total, success, failed)
            logger.info(
                f"[{source}] Sync completed: {success} success, {failed} failed "
                f"(task {task_id})"
            )
            return SourceSyncResult(
                source=source,
                status=SyncTaskStatus.SUCCESS,
                task_id=task_id,
                total=total,
                success=success,
                failed=failed,
            )

        except (TransportError, VendorFormatError) as e:
            logger.error(f"[{source}] Sync failed: {e}")
            return self._fail(source, task_id, str(e), success, failed)

        except Exception as e:
            logger.exception(f"[{source}] Sync failed with unexpected error: {e}")
            self._db.rollback()
            return self._fail(source, task_id, str(e) or type(e).__name__, success, failed)

    def _store(self, source: str, raw) -> bool:
        """Normalize, validate and upsert one record. Returns True on success."""
        try:
            record = validate_or_raise(normalize(raw))
            self.repository.upsert(record)
            return True
        except ValidationError:
            # Already logged by the validator
            return False
        except PersistenceError as e:
            logger.warning(f"[{source}] {e}")
            return False
        except Exception as e:
            logger.exception(f"[{source}] Unexpected error storing {raw.symbol}: {e}")
            self._db.rollback()
            return False

    def _fail(
            self,
            source: str,
            task_id: int,
            message: str,
            success: int,
            failed: int,
    ) -> SourceSyncResult:
        self.ledger.fail(task_id, message, success=success, failed=failed)
        return SourceSyncResult(
            source=source,
            status=SyncTaskStatus.FAILED,
            task_id=task_id,
            total=0,
            success=success,
            failed=failed,
            error=message,
        )
