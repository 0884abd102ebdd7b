"""
Database configuration and session management.
Uses async SQLAlchemy for the SQL-backed entity stores.

Logging:
- SQL echo disabled
- slow queries (1s and above) logged as warnings
"""
import logging
import time

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool, StaticPool

_logger = logging.getLogger("photo_manager.db")

# Slow query threshold (seconds)
SLOW_QUERY_THRESHOLD = 1.0


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def _is_memory_sqlite(database_url: str) -> bool:
    return "sqlite" in database_url and (
        ":memory:" in database_url or database_url.rstrip("/").endswith("sqlite+aiosqlite:")
    )


def create_engine(database_url: str) -> AsyncEngine:
    """
    Create an async engine for ``database_url``.

    In-memory SQLite shares one connection (StaticPool) so every session
    sees the same database; file-based SQLite uses no pooling.
    """
    if _is_memory_sqlite(database_url):
        engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    elif "sqlite" in database_url:
        engine = create_async_engine(
            database_url,
            echo=False,
            poolclass=NullPool,
        )
    else:
        engine = create_async_engine(
            database_url,
            echo=False,
            pool_pre_ping=True,
        )

    @event.listens_for(engine.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        conn.info.setdefault("query_start_time", []).append(time.perf_counter())

    @event.listens_for(engine.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        start_times = conn.info.get("query_start_time")
        if start_times:
            elapsed = time.perf_counter() - start_times.pop()
            if elapsed >= SLOW_QUERY_THRESHOLD:
                short_stmt = statement[:100] + "..." if len(statement) > 100 else statement
                _logger.warning(
                    "Slow query",
                    extra={"event": "db", "ms": round(elapsed * 1000), "query": short_stmt},
                )

    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by the SQL stores."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """Initialize database by creating all tables."""
    # models must be imported so their tables are registered on Base.metadata
    from photo_manager import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db(engine: AsyncEngine) -> None:
    """Close database connections properly."""
    await engine.dispose()
