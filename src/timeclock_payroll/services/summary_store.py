"""Transactional read-modify-write of daily payroll summaries."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from timeclock_payroll.calculators.aggregator import merge_into_summary
from timeclock_payroll.calculators.types import SummaryDelta, SummaryKey
from timeclock_payroll.config import get_settings
from timeclock_payroll.models import DailySummary

logger = logging.getLogger(__name__)

# Serialization failure and deadlock (PostgreSQL)
_RETRYABLE_SQLSTATES = {"40001", "40P01"}


class SummaryMergeConflictError(Exception):
    """Raised when a summary merge keeps losing to concurrent writers."""

    def __init__(self, key: SummaryKey, attempts: int, last_error: Exception | None):
        self.key = key
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(
            f"Daily summary {key.summary_date}/{key.user_id} could not be merged "
            f"after {attempts} attempt(s): {last_error}"
        )


def _is_retryable(exc: DBAPIError) -> bool:
    if isinstance(exc, IntegrityError):
        # Two first-closes for one key both inserted; the loser retries as an update
        return True
    sqlstate = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if sqlstate in _RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(exc.orig).lower()


class DailySummaryStore:
    """Applies summary deltas under a transaction with bounded retry.

    Concurrency control:
    1. Each attempt runs in its own transaction, reading the row with
       SELECT ... FOR UPDATE where the backend supports it
    2. The ``version`` column makes a write based on a stale read fail
       (StaleDataError) instead of overwriting a concurrent merge
    3. The unique (summary_date, user_id) key rejects a duplicate first insert
    4. Conflicts are retried up to ``max_retries`` attempts, then surfaced as
       SummaryMergeConflictError
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        max_retries: int | None = None,
    ):
        if max_retries is None:
            max_retries = get_settings().summary_merge_max_retries
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.session_factory = session_factory
        self.max_retries = max_retries

    async def merge(
        self,
        key: SummaryKey,
        delta: SummaryDelta,
        *,
        business_id: str,
        location_id: str,
    ) -> DailySummary:
        """Add ``delta`` to the summary for ``key``, creating it if needed."""
        last_error: Exception | None = None

        for attempt in range(1, self.max_retries + 1):
            try:
                return await self._merge_once(
                    key, delta, business_id=business_id, location_id=location_id
                )
            except StaleDataError as exc:
                last_error = exc
            except DBAPIError as exc:
                if not _is_retryable(exc):
                    raise
                last_error = exc

            logger.info(
                "Daily summary %s/%s merge conflict (attempt %d/%d): %s",
                key.summary_date,
                key.user_id,
                attempt,
                self.max_retries,
                last_error,
            )

        raise SummaryMergeConflictError(key, self.max_retries, last_error)

    async def _merge_once(
        self,
        key: SummaryKey,
        delta: SummaryDelta,
        *,
        business_id: str,
        location_id: str,
    ) -> DailySummary:
        async with self.session_factory() as session:
            async with session.begin():
                existing = await self._load(session, key, for_update=True)
                summary = merge_into_summary(
                    existing,
                    key,
                    delta,
                    business_id=business_id,
                    location_id=location_id,
                )
                if existing is None:
                    session.add(summary)
            return summary

    async def get(self, key: SummaryKey) -> DailySummary | None:
        async with self.session_factory() as session:
            return await self._load(session, key)

    @staticmethod
    async def _load(
        session: AsyncSession,
        key: SummaryKey,
        for_update: bool = False,
    ) -> DailySummary | None:
        stmt = select(DailySummary).where(
            DailySummary.summary_date == key.summary_date,
            DailySummary.user_id == key.user_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await session.execute(stmt)
        return result.scalar_one_or_none()
