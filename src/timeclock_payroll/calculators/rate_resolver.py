"""Pay rate resolution with effective dating."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timeclock_payroll.calculators.normalizer import to_instant
from timeclock_payroll.calculators.types import RateRecord
from timeclock_payroll.models import PayRate

logger = logging.getLogger(__name__)

# One rate per calculation call, looked up at the earliest entry's start.
# A rate change in the middle of a reporting window is not split.
RATE_RESOLUTION_GRANULARITY = "batch"


def resolve_rate(rate_records: Iterable[RateRecord], on_date: datetime | date | Any) -> int | None:
    """Return the hourly rate in cents in effect at ``on_date``.

    Rate selection:
    1. Among usable records effective on or before ``on_date``, the latest
       ``effective_from`` wins.
    2. If none qualifies, fall back to the latest usable record regardless
       of date, so that rates entered after the work still price it.
    3. Equal ``effective_from`` values resolve to the earliest record in
       input (insertion) order.

    Returns None only when no record has a positive rate.
    """
    reference = to_instant(on_date)
    if reference is None:
        raise ValueError(f"Cannot resolve a pay rate for date {on_date!r}")

    on_or_before: tuple[datetime, int] | None = None
    latest_any: tuple[datetime, int] | None = None

    for record in rate_records:
        rate_cents = record.hourly_rate_cents
        if not record.is_usable or rate_cents is None:
            continue
        effective = to_instant(record.effective_from)
        if effective is None:
            continue

        if latest_any is None or effective > latest_any[0]:
            latest_any = (effective, rate_cents)
        if effective <= reference and (on_or_before is None or effective > on_or_before[0]):
            on_or_before = (effective, rate_cents)

    if on_or_before is not None:
        return on_or_before[1]
    if latest_any is not None:
        logger.debug(
            "No rate effective on %s; falling back to most recent rate from %s",
            reference.isoformat(),
            latest_any[0].isoformat(),
        )
        return latest_any[1]
    return None


class RateResolver:
    """Resolves a worker's pay rate from the pay_rate table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_rate_records(self, business_id: str, user_id: str) -> list[RateRecord]:
        """All rate records for a worker, in insertion order."""
        result = await self.session.execute(
            select(PayRate)
            .where(PayRate.business_id == business_id, PayRate.user_id == user_id)
            .order_by(PayRate.pay_rate_id)
        )
        return [
            RateRecord(
                hourly_rate_cents=rate.hourly_rate_cents,
                effective_from=rate.effective_from,
                record_id=rate.pay_rate_id,
            )
            for rate in result.scalars().all()
        ]

    async def get_rate_records_for_users(
        self,
        business_id: str,
        user_ids: Iterable[str],
    ) -> dict[str, list[RateRecord]]:
        """Rate records for several workers in one query, keyed by user."""
        wanted = sorted(set(user_ids))
        records: dict[str, list[RateRecord]] = {user_id: [] for user_id in wanted}
        if not wanted:
            return records

        result = await self.session.execute(
            select(PayRate)
            .where(PayRate.business_id == business_id, PayRate.user_id.in_(wanted))
            .order_by(PayRate.pay_rate_id)
        )
        for rate in result.scalars().all():
            records[rate.user_id].append(
                RateRecord(
                    hourly_rate_cents=rate.hourly_rate_cents,
                    effective_from=rate.effective_from,
                    record_id=rate.pay_rate_id,
                )
            )
        return records

    async def resolve_pay_rate(
        self,
        business_id: str,
        user_id: str,
        on_date: datetime | date,
    ) -> int | None:
        """Resolve the hourly rate in cents for a worker on a date."""
        records = await self.get_rate_records(business_id, user_id)
        return resolve_rate(records, on_date)
