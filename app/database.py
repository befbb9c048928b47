"""Database setup for the invoice workflow service.

One async engine per process, configured from DATABASE_URL. SQLite (the
default, via aiosqlite) is used for development and tests; a PostgreSQL URL
is rewritten to the asyncpg driver.
"""

from __future__ import annotations

import os
from typing import Any, AsyncGenerator, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase


def _async_url(url: str) -> str:
    """Point plain postgres URLs at the asyncpg driver."""
    for prefix in ("postgres://", "postgresql://"):
        if url.startswith(prefix):
            return "postgresql+asyncpg://" + url[len(prefix):]
    return url


def _is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


DATABASE_URL = _async_url(os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./invoiceflow.db"))


def _engine_options(url: str) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": os.getenv("DB_ECHO", "false").lower() == "true"}
    if not _is_sqlite(url):
        options.update(pool_size=5, max_overflow=10, pool_pre_ping=True)
    return options


engine: AsyncEngine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))

if _is_sqlite(DATABASE_URL):

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        # Runs cascade with their workflow; WAL lets the API read while a run is stored
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA busy_timeout=5000")
        cursor.close()


async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    """Declarative base for the workflow and run tables."""


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, committed on success."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create the workflow and run tables if they do not exist."""
    import app.models.db  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
