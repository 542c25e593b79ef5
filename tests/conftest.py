"""Pytest configuration and shared fixtures.

Usage Guide:
- For ORM model tests: import factories from tests.factories
- For provider schema tests: use dict factories (make_github_run, etc.)
- For sync tests: use FakeProviderClient from tests.fixtures.provider
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ci_build_sync.db.models import Base

# -----------------------------------------------------------------------------
# Test Timeline Constants
#
# Define a consistent "test epoch" for deterministic timestamps across tests.
# Build and commit times are epoch millis; provider payloads use ISO strings.
# -----------------------------------------------------------------------------

JAN_10 = datetime(2024, 1, 10, 9, 0, 0, tzinfo=UTC)  # First pushes
JAN_12 = datetime(2024, 1, 12, 16, 0, 0, tzinfo=UTC)
JAN_15 = datetime(2024, 1, 15, 10, 0, 0, tzinfo=UTC)
JAN_16 = datetime(2024, 1, 16, 14, 0, 0, tzinfo=UTC)
JAN_20 = datetime(2024, 1, 20, 16, 0, 0, tzinfo=UTC)

JAN_10_ISO = "2024-01-10T09:00:00Z"
JAN_12_ISO = "2024-01-12T16:00:00Z"
JAN_15_ISO = "2024-01-15T10:00:00Z"
JAN_15_LATER_ISO = "2024-01-15T10:12:30Z"  # Run finished
JAN_16_ISO = "2024-01-16T14:00:00Z"
JAN_20_ISO = "2024-01-20T16:00:00Z"


def millis(value: datetime) -> int:
    """Epoch millis of an aware datetime."""
    return int(value.timestamp() * 1000)


JAN_10_MS = millis(JAN_10)
JAN_12_MS = millis(JAN_12)
JAN_15_MS = millis(JAN_15)
JAN_16_MS = millis(JAN_16)
JAN_20_MS = millis(JAN_20)
HOUR_MS = int(timedelta(hours=1).total_seconds() * 1000)


# -----------------------------------------------------------------------------
# Database Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture
async def test_engine():
    """Create an in-memory SQLite engine for tests.

    Each test gets a fresh database with all tables created.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(test_engine):
    """Create an async session with auto-rollback.

    Changes are rolled back after each test to ensure isolation.
    """
    session_factory = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()


# -----------------------------------------------------------------------------
# Settings Fixtures
# -----------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch):
    """Keep tests independent of the developer's environment and .env file."""
    from ci_build_sync.config import get_settings

    monkeypatch.setenv("GITHUB_TOKEN", "test-token")
    monkeypatch.delenv("PIPELINES", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
