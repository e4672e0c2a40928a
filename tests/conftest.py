"""
ScanFlow — Shared pytest Fixtures & Configuration

Provides common fixtures for all test modules:
- Fixed evaluation time and Keepa-minute helpers
- ProductSnapshot builder
- In-memory SQLite session factory (aiosqlite)
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, AsyncGenerator, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.engine.snapshot import Channel, ProductSnapshot, to_keepa_minutes
from src.models import Base


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

pytest_plugins = ("pytest_asyncio",)

FIXED_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Time & Snapshot Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def now() -> datetime:
    """Fixed evaluation time so stockout windows are deterministic."""
    return FIXED_NOW


@pytest.fixture
def days_ago(now: datetime) -> Callable[[float], int]:
    """Keepa minute for a point ``days`` before the evaluation time."""

    def _days_ago(days: float) -> int:
        return int(to_keepa_minutes(now - timedelta(days=days)))

    return _days_ago


@pytest.fixture
def make_snapshot() -> Callable[..., ProductSnapshot]:
    """
    Build a ProductSnapshot with sensible defaults.

    Defaults: rank 500,000 (180d avg), 5 drops, no price history.
    """

    def _make(
        series: dict[Channel, tuple[tuple[int, int], ...]] | None = None,
        avg180: dict[Channel, int] | None = None,
        avg90: dict[Channel, int] | None = None,
        **overrides: Any,
    ) -> ProductSnapshot:
        fields: dict[str, Any] = {
            "asin": "0131103628",
            "title": "The C Programming Language",
            "series": series or {},
            "avg180": avg180 if avg180 is not None else {Channel.SALES_RANK: 500_000},
            "avg90": avg90 or {},
            "sales_rank_drops_90": 5,
            "binding": "Paperback",
        }
        fields.update(overrides)
        return ProductSnapshot(**fields)

    return _make


# ---------------------------------------------------------------------------
# Database Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """
    In-memory SQLite session factory with all tables created.

    Creates a fresh database for each test, ensuring isolation.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session
