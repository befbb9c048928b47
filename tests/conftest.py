"""Root conftest for API and repository tests.

Provides:
- In-memory SQLite database (replaces production engine)
- Async HTTP client bound to the FastAPI app
- Recording notifier so no webhook leaves the test process
"""

from __future__ import annotations

from typing import Any, Dict, List, Tuple
from typing import AsyncGenerator
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import app.database as db_module
from app.database import Base

# Import all ORM models so they register with Base.metadata
import app.models.db  # noqa: F401


class RecordingNotifier:
    """Notifier that keeps every payload instead of sending it."""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def notify(self, url: str, payload: Dict[str, Any]) -> None:
        self.calls.append((url, payload))


# ---------------------------------------------------------------------------
# In-memory async SQLite engine (StaticPool shares one connection)
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create an in-memory SQLite engine for one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Per-test database session with automatic rollback."""
    factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()


# ---------------------------------------------------------------------------
# FastAPI test client, patches DB engine and export notifier at module level
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def client(
    test_engine: AsyncEngine,
    recording_notifier: RecordingNotifier,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI routes.

    Replaces the production DB engine/session_factory in app.database
    with the test in-memory engine, so every get_session() call uses
    the test DB.
    """
    original_engine = db_module.engine
    original_factory = db_module.async_session_factory

    test_factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    db_module.engine = test_engine
    db_module.async_session_factory = test_factory

    try:
        with patch("app.routes.workflows.get_default_notifier", return_value=recording_notifier):
            with patch("app.routes.runs.get_default_notifier", return_value=recording_notifier):
                from app.main import app

                transport = ASGITransport(app=app)
                async with AsyncClient(transport=transport, base_url="http://test") as ac:
                    yield ac
    finally:
        db_module.engine = original_engine
        db_module.async_session_factory = original_factory
