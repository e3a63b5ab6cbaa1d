"""Pytest fixtures for time clock payroll tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from timeclock_payroll.database import make_session_factory
from timeclock_payroll.models import Base, PayRate, TimeEntry

BUSINESS_ID = "biz-1"
LOCATION_ID = "loc-1"


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    """Aware UTC datetime shorthand."""
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine so that concurrent sessions see each other."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'timeclock.db'}", echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest_asyncio.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """A session for read-mostly tests; rolled back at teardown."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def add_rate(session_factory) -> Callable[..., Awaitable[PayRate]]:
    """Insert and commit a pay rate."""

    async def _add(
        user_id: str,
        hourly_rate_cents: int | None,
        effective_from: datetime,
        business_id: str = BUSINESS_ID,
    ) -> PayRate:
        async with session_factory() as session:
            async with session.begin():
                rate = PayRate(
                    business_id=business_id,
                    user_id=user_id,
                    hourly_rate_cents=hourly_rate_cents,
                    effective_from=effective_from,
                )
                session.add(rate)
        return rate

    return _add


@pytest.fixture
def add_entry(session_factory) -> Callable[..., Awaitable[TimeEntry]]:
    """Insert and commit a time entry."""

    async def _add(
        user_id: str,
        clock_in_at: datetime,
        clock_out_at: datetime | None = None,
        **overrides: Any,
    ) -> TimeEntry:
        values: dict[str, Any] = {
            "business_id": BUSINESS_ID,
            "location_id": LOCATION_ID,
            "location_timezone": "UTC",
            "calculation_status": "open",
        }
        values.update(overrides)
        async with session_factory() as session:
            async with session.begin():
                entry = TimeEntry(
                    user_id=user_id,
                    clock_in_at=clock_in_at,
                    clock_out_at=clock_out_at,
                    **values,
                )
                session.add(entry)
        return entry

    return _add
