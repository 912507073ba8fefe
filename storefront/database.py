"""
SQLAlchemy Async Database Configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import event
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from storefront.config import get_settings
from storefront.errors import StoreUnavailableError
from storefront.models.base import Base  # noqa: F401

logger = logging.getLogger(__name__)

settings = get_settings()

# Connection-level faults that mean the store itself is unreachable.
TRANSIENT_ERRORS = (OperationalError, InterfaceError, DisconnectionError)


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, with SQLite tuned for serialized writes."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=echo, future=True)
        _configure_sqlite(engine)
        return engine

    return create_async_engine(
        url,
        echo=echo,
        future=True,
        pool_size=20,
        max_overflow=40,
        pool_timeout=10,       # Fail fast instead of blocking for 30s
        pool_recycle=900,
        pool_pre_ping=True,
    )


def _configure_sqlite(engine: AsyncEngine) -> None:
    # pysqlite defers BEGIN until the first DML statement, which lets two
    # writers deadlock on lock promotion. Take the write lock up front instead.
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
async_session_maker = build_session_maker(engine)


@asynccontextmanager
async def session_scope(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
) -> AsyncIterator[AsyncSession]:
    """
    Unit of work: commit on success, roll back on error.

    Connectivity faults are re-raised as StoreUnavailableError so callers
    can tell a retryable outage from a caller mistake.
    """
    maker = session_maker or async_session_maker
    async with maker() as session:
        try:
            yield session
            await session.commit()
        except TRANSIENT_ERRORS as e:
            await _safe_rollback(session)
            logger.error(f"Store unavailable: {e}")
            raise StoreUnavailableError(str(e).splitlines()[0]) from e
        except Exception:
            await _safe_rollback(session)
            raise


async def _safe_rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except TRANSIENT_ERRORS as e:
        logger.warning(f"Rollback failed on broken connection: {e}")


def store_retry(attempts: int | None = None):
    """Retry a coroutine on StoreUnavailableError with exponential backoff."""
    return retry(
        retry=retry_if_exception_type(StoreUnavailableError),
        stop=stop_after_attempt(attempts or settings.STORE_RETRY_ATTEMPTS),
        wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
        reraise=True,
    )


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency for FastAPI routes to get database session."""
    async with session_scope() as session:
        yield session
