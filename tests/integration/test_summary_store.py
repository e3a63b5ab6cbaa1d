"""Integration tests for daily summary merges under concurrency."""

import asyncio
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm.exc import StaleDataError

from timeclock_payroll.calculators.types import SummaryDelta, SummaryKey
from timeclock_payroll.config import get_settings
from timeclock_payroll.models import DailySummary
from timeclock_payroll.services.summary_store import DailySummaryStore, SummaryMergeConflictError

from tests.conftest import BUSINESS_ID, LOCATION_ID

KEY = SummaryKey(summary_date=date(2024, 3, 15), user_id="alice")


def hours(value, pay_cents):
    value = Decimal(value)
    return SummaryDelta(hours=value, pay_cents=pay_cents, regular_hours=value)


async def merge(store, delta, key=KEY):
    return await store.merge(key, delta, business_id=BUSINESS_ID, location_id=LOCATION_ID)


class TestDailySummaryStore:
    """Sequential merges."""

    async def test_first_merge_creates_summary(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=3)

        await merge(store, hours("8", 16000))

        summary = await store.get(KEY)
        assert summary is not None
        assert summary.summary_id == "2024-03-15_alice"
        assert summary.total_hours == Decimal("8")
        assert summary.total_pay_cents == 16000
        assert summary.version == 1

    async def test_merges_accumulate(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=3)

        await merge(store, hours("8", 16000))
        await merge(store, hours("4.25", 8500))

        summary = await store.get(KEY)
        assert summary.total_hours == Decimal("12.25")
        assert summary.regular_hours == Decimal("12.25")
        assert summary.total_pay_cents == 24500
        assert summary.version == 2

    async def test_keys_are_independent(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=3)
        other_day = SummaryKey(summary_date=date(2024, 3, 16), user_id="alice")
        other_worker = SummaryKey(summary_date=date(2024, 3, 15), user_id="bob")

        await merge(store, hours("8", 16000))
        await merge(store, hours("6", 9000), key=other_day)
        await merge(store, hours("5", 7500), key=other_worker)

        async with session_factory() as session:
            result = await session.execute(select(DailySummary))
            rows = {row.summary_id: row.total_pay_cents for row in result.scalars()}

        assert rows == {
            "2024-03-15_alice": 16000,
            "2024-03-16_alice": 9000,
            "2024-03-15_bob": 7500,
        }

    async def test_get_missing_summary(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=3)
        assert await store.get(KEY) is None


class TestConcurrentMerges:
    """Concurrent merges into one key lose no update."""

    async def test_concurrent_first_closes(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=10)

        await asyncio.gather(
            merge(store, hours("8", 16000)),
            merge(store, hours("4", 8000)),
        )

        summary = await store.get(KEY)
        assert summary.total_hours == Decimal("12")
        assert summary.total_pay_cents == 24000

    async def test_many_concurrent_merges(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=10)
        await merge(store, hours("1", 1000))

        await asyncio.gather(*(merge(store, hours("1", 1000)) for _ in range(4)))

        summary = await store.get(KEY)
        assert summary.total_hours == Decimal("5")
        assert summary.total_pay_cents == 5000

    async def test_write_from_stale_read_is_rejected(self, session_factory):
        store = DailySummaryStore(session_factory, max_retries=3)
        await merge(store, hours("8", 16000))

        async with session_factory() as stale:
            summary = (
                await stale.execute(select(DailySummary).where(DailySummary.user_id == "alice"))
            ).scalar_one()

            # Another close lands between the read and the write
            await merge(store, hours("4", 8000))

            summary.total_pay_cents = summary.total_pay_cents + 5000
            with pytest.raises(StaleDataError):
                await stale.commit()

        current = await store.get(KEY)
        assert current.total_pay_cents == 24000


class TestRetryExhaustion:
    """Bounded retry."""

    async def test_retry_limit_defaults_to_settings(self, session_factory):
        store = DailySummaryStore(session_factory)
        assert store.max_retries == get_settings().summary_merge_max_retries

    async def test_explicit_retry_limit_is_kept(self, session_factory):
        assert DailySummaryStore(session_factory, max_retries=1).max_retries == 1

    @pytest.mark.parametrize("max_retries", [0, -1])
    async def test_retry_limit_below_one_rejected(self, session_factory, max_retries):
        with pytest.raises(ValueError):
            DailySummaryStore(session_factory, max_retries=max_retries)

    async def test_conflicts_exhaust_retries(self, session_factory, monkeypatch):
        store = DailySummaryStore(session_factory, max_retries=3)
        calls = []

        async def always_stale(*args, **kwargs):
            calls.append(args)
            raise StaleDataError("row was updated concurrently")

        monkeypatch.setattr(store, "_merge_once", always_stale)

        with pytest.raises(SummaryMergeConflictError) as exc_info:
            await merge(store, hours("8", 16000))

        assert len(calls) == 3
        assert exc_info.value.attempts == 3
        assert exc_info.value.key == KEY
        assert isinstance(exc_info.value.last_error, StaleDataError)

    async def test_conflict_then_success(self, session_factory, monkeypatch):
        store = DailySummaryStore(session_factory, max_retries=3)
        real_merge_once = store._merge_once
        calls = []

        async def stale_once(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                raise StaleDataError("row was updated concurrently")
            return await real_merge_once(*args, **kwargs)

        monkeypatch.setattr(store, "_merge_once", stale_once)

        await merge(store, hours("8", 16000))

        assert len(calls) == 2
        assert (await store.get(KEY)).total_pay_cents == 16000

    async def test_non_retryable_database_error_propagates(self, session_factory, monkeypatch):
        store = DailySummaryStore(session_factory, max_retries=3)
        calls = []

        async def broken(*args, **kwargs):
            calls.append(args)
            raise DBAPIError("UPDATE daily_payroll_summary", {}, Exception("disk I/O error"))

        monkeypatch.setattr(store, "_merge_once", broken)

        with pytest.raises(DBAPIError):
            await merge(store, hours("8", 16000))
        assert len(calls) == 1
