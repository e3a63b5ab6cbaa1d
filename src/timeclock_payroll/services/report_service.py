"""Payroll report over a reporting window."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from timeclock_payroll.calculators.bucketer import get_timezone
from timeclock_payroll.calculators.engine import calculate_payroll
from timeclock_payroll.calculators.normalizer import to_instant
from timeclock_payroll.calculators.rate_resolver import RateResolver
from timeclock_payroll.calculators.types import (
    ZERO,
    OvertimeConfig,
    PayrollResult,
    TimeEntryInput,
)
from timeclock_payroll.config import get_settings
from timeclock_payroll.models import TimeEntry


class InvalidReportWindowError(ValueError):
    """Raised when a reporting window is empty or inverted."""

    def __init__(self, window_start: object, window_end: object):
        self.window_start = window_start
        self.window_end = window_end
        super().__init__(f"Report window end {window_end} must be after start {window_start}")


@dataclass
class PayrollReportRow:
    """One worker's line in a payroll report."""

    user_id: str
    location_id: str | None
    entry_count: int
    result: PayrollResult

    @property
    def rate_missing(self) -> bool:
        return self.result.rate_missing


@dataclass
class PayrollReport:
    """Per-worker payroll over [window_start, window_end) with totals."""

    business_id: str
    window_start: datetime
    window_end: datetime
    rows: list[PayrollReportRow] = field(default_factory=list)

    def _sum_hours(self, attr: str) -> Decimal:
        return sum((getattr(row.result, attr) for row in self.rows), ZERO)

    @property
    def total_hours(self) -> Decimal:
        return self._sum_hours("total_hours")

    @property
    def total_regular_hours(self) -> Decimal:
        return self._sum_hours("regular_hours")

    @property
    def total_overtime_hours(self) -> Decimal:
        return self._sum_hours("overtime_hours")

    @property
    def total_double_time_hours(self) -> Decimal:
        return self._sum_hours("double_time_hours")

    @property
    def total_gross_pay_cents(self) -> int:
        return sum(row.result.gross_pay_cents for row in self.rows)

    @property
    def workers_missing_rate(self) -> list[str]:
        return [row.user_id for row in self.rows if row.rate_missing]


class PayrollReportService:
    """Builds payroll reports for interactive requests.

    Unlike the shift close path, failures here propagate: someone asking
    for a report must see an error rather than wrong numbers.
    """

    def __init__(self, session: AsyncSession, config: OvertimeConfig | None = None):
        self.session = session
        self.settings = get_settings()
        self.config = config or OvertimeConfig.from_settings(self.settings)
        self.rate_resolver = RateResolver(session)

    async def build_report(
        self,
        business_id: str,
        window_start: datetime | date,
        window_end: datetime | date,
        user_id: str | None = None,
        location_id: str | None = None,
        timezone_name: str | None = None,
    ) -> PayrollReport:
        """Calculate payroll for every worker with entries in the window.

        Entries are selected by clock-in within [window_start, window_end).
        Weeks are bucketed in ``timezone_name`` (default from settings).
        """
        start = to_instant(window_start)
        end = to_instant(window_end)
        if start is None or end is None or end <= start:
            raise InvalidReportWindowError(window_start, window_end)

        tz = get_timezone(timezone_name or self.settings.default_timezone)
        entries = await self._get_time_entries(business_id, start, end, user_id, location_id)

        entries_by_user: dict[str, list[TimeEntry]] = defaultdict(list)
        for entry in entries:
            entries_by_user[entry.user_id].append(entry)
        if user_id is not None:
            entries_by_user.setdefault(user_id, [])

        rates_by_user = await self.rate_resolver.get_rate_records_for_users(
            business_id, entries_by_user.keys()
        )

        report = PayrollReport(business_id=business_id, window_start=start, window_end=end)
        for worker_id in sorted(entries_by_user):
            worker_entries = entries_by_user[worker_id]
            result = calculate_payroll(
                [
                    TimeEntryInput(e.clock_in_at, e.clock_out_at, e.time_entry_id)
                    for e in worker_entries
                ],
                rates_by_user.get(worker_id, []),
                self.config,
                tz,
            )
            report.rows.append(
                PayrollReportRow(
                    user_id=worker_id,
                    location_id=location_id
                    or (worker_entries[0].location_id if worker_entries else None),
                    entry_count=len(worker_entries),
                    result=result,
                )
            )
        return report

    async def _get_time_entries(
        self,
        business_id: str,
        start: datetime,
        end: datetime,
        user_id: str | None,
        location_id: str | None,
    ) -> list[TimeEntry]:
        stmt = select(TimeEntry).where(
            TimeEntry.business_id == business_id,
            TimeEntry.clock_in_at >= start,
            TimeEntry.clock_in_at < end,
        )
        if user_id is not None:
            stmt = stmt.where(TimeEntry.user_id == user_id)
        if location_id is not None:
            stmt = stmt.where(TimeEntry.location_id == location_id)
        result = await self.session.execute(stmt.order_by(TimeEntry.clock_in_at))
        return list(result.scalars().all())
