"""Payroll calculation engine - hours and gross pay for one worker."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from datetime import tzinfo
from decimal import ROUND_HALF_UP, Decimal

import pytz
from sqlalchemy.ext.asyncio import AsyncSession

from timeclock_payroll.calculators.bucketer import bucket_by_week
from timeclock_payroll.calculators.normalizer import normalize_entry
from timeclock_payroll.calculators.overtime import calculate_week, week_pay
from timeclock_payroll.calculators.rate_resolver import RateResolver, resolve_rate
from timeclock_payroll.calculators.types import (
    ZERO,
    InvalidRange,
    OvertimeConfig,
    PayrollResult,
    RateRecord,
    TimeEntryInput,
    TimeRange,
)

logger = logging.getLogger(__name__)


def round_cents(amount: Decimal) -> int:
    """Round an amount in cents to a whole cent, half away from zero."""
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def closed_ranges(entries: Iterable[TimeEntryInput | TimeRange]) -> list[TimeRange]:
    """Normalize entries, dropping invalid and open ones."""
    ranges: list[TimeRange] = []
    for entry in entries:
        normalized = normalize_entry(entry)
        if isinstance(normalized, InvalidRange):
            logger.debug("Excluding time entry %s: %s", normalized.entry_id, normalized.reason)
            continue
        if normalized.is_open:
            continue
        ranges.append(normalized)
    return ranges


def calculate_payroll(
    entries: Iterable[TimeEntryInput | TimeRange],
    rate_records: Iterable[RateRecord],
    config: OvertimeConfig | None = None,
    tz: tzinfo = pytz.utc,
) -> PayrollResult:
    """Calculate tiered hours and gross pay for one worker's entries.

    Pipeline:
    1) Normalize and keep closed, valid entries
    2) Resolve the rate once, at the earliest entry's start
    3) Bucket entries into Monday-start weeks in ``tz``
    4) Split each week into regular/overtime/double time
    5) Sum hours and unrounded pay, then round pay to cents once

    A missing rate prices the hours at zero and sets ``rate_missing``.
    """
    config = config or OvertimeConfig()
    ranges = closed_ranges(entries)
    if not ranges:
        return PayrollResult.zero()

    earliest = min(ranges, key=lambda r: r.start)
    resolved = resolve_rate(rate_records, earliest.start)
    rate_cents = resolved or 0

    regular = overtime = double_time = ZERO
    gross = ZERO
    weeks = bucket_by_week(ranges, tz)
    for week_key in sorted(weeks):
        hours = calculate_week(weeks[week_key], config)
        regular += hours.regular
        overtime += hours.overtime
        double_time += hours.double_time
        gross += week_pay(hours, rate_cents, config)

    return PayrollResult(
        regular_hours=regular,
        overtime_hours=overtime,
        double_time_hours=double_time,
        total_hours=regular + overtime + double_time,
        hourly_rate_cents=rate_cents,
        gross_pay_cents=round_cents(gross),
        source_entries=tuple(ranges),
        rate_missing=resolved is None,
    )


class PayrollEngine:
    """Database-backed entry point: loads rate records, then calculates."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.rate_resolver = RateResolver(session)

    async def calculate_for_worker(
        self,
        business_id: str,
        user_id: str,
        entries: Sequence[TimeEntryInput | TimeRange],
        config: OvertimeConfig | None = None,
        tz: tzinfo = pytz.utc,
    ) -> PayrollResult:
        rate_records = await self.rate_resolver.get_rate_records(business_id, user_id)
        return calculate_payroll(entries, rate_records, config, tz)
