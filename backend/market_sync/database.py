# backend/market_sync/database.py
"""
Engine, session factory and FastAPI session dependency.

Sync runs open one session per source from worker threads, so the
engine is configured for concurrent writers:
- PostgreSQL: QueuePool; DB_POOL_SIZE + DB_POOL_MAX_OVERFLOW must cover
  every source the orchestrator runs at once
- SQLite file: one connection per thread, WAL journal and a busy timeout
  so parallel upserts wait instead of failing with "database is locked"
- SQLite in-memory: StaticPool (single shared connection, tests only)
"""

import logging
from collections.abc import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from market_sync.config import settings

logger = logging.getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 30


def _is_memory_url(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


def _enable_sqlite_wal(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute(f"PRAGMA busy_timeout={SQLITE_BUSY_TIMEOUT_SECONDS * 1000}")
        cursor.close()


def _create_engine() -> Engine:
    url = settings.database_url

    if settings.is_sqlite and _is_memory_url(url):
        logger.info("Configuring in-memory SQLite database")
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    if settings.is_sqlite:
        logger.info("Configuring SQLite database file (WAL)")
        sqlite_engine = create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT_SECONDS},
            echo=settings.debug,
        )
        _enable_sqlite_wal(sqlite_engine)
        return sqlite_engine

    logger.info(
        f"Configuring PostgreSQL pool: size={settings.db_pool_size}, "
        f"max_overflow={settings.db_pool_max_overflow}"
    )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_pool_max_overflow,
        pool_recycle=settings.db_pool_recycle,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_timeout=30,
        echo=settings.debug,
    )


engine = _create_engine()
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; closed when the response is sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Create any missing tables (instruments, sync tasks, rates, assets)."""
    from market_sync.models import Base

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables ensured")


def check_database(db: Session) -> dict:
    """
    Run a trivial query through `db`.

    Returns:
        {"status": "healthy"} or {"status": "unhealthy", "error": ...}
    """
    try:
        db.execute(text("SELECT 1"))
        return {"status": "healthy"}
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return {"status": "unhealthy", "error": str(e)}
