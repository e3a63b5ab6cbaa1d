"""Shift close trigger: prices a time entry when its clock-out is recorded."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timeclock_payroll.calculators.aggregator import quantize_hours
from timeclock_payroll.calculators.bucketer import get_timezone, local_date
from timeclock_payroll.calculators.engine import PayrollEngine
from timeclock_payroll.calculators.normalizer import normalize
from timeclock_payroll.calculators.types import (
    InvalidRange,
    OvertimeConfig,
    PayrollResult,
    SummaryKey,
)
from timeclock_payroll.config import get_settings
from timeclock_payroll.models import TimeEntry
from timeclock_payroll.services.state_machine import CalculationStatus, TimeEntryStateMachine
from timeclock_payroll.services.summary_store import DailySummaryStore, SummaryMergeConflictError

logger = logging.getLogger(__name__)


class InvalidTimeEntryError(ValueError):
    """Raised when a closed entry's timestamps cannot be priced."""

    def __init__(self, entry_id: str, reason: str):
        self.entry_id = entry_id
        self.reason = reason
        super().__init__(f"Time entry {entry_id} is invalid: {reason}")


class AlreadyCalculatedError(Exception):
    """Raised when another delivery of the same close already priced the entry."""


@dataclass
class ShiftCloseOutcome:
    """What the trigger did for one write event."""

    entry_id: str
    fired: bool
    status: CalculationStatus | None
    result: PayrollResult | None = None
    summary_updated: bool = False
    error: str | None = None


SNAPSHOT_FIELDS = (
    "business_id",
    "user_id",
    "location_id",
    "clock_in_at",
    "clock_out_at",
    "location_timezone",
    "calculated_hours",
    "calculated_pay_cents",
    "calculation_status",
)


def snapshot_of(entry: TimeEntry) -> dict[str, Any]:
    """Plain mapping of an entry, shaped like a write-event snapshot."""
    return entry.to_dict(*SNAPSHOT_FIELDS)


class ShiftCloseTrigger:
    """Event handler invoked for every time entry write.

    On a shift close:
    1) Price the single entry (rate looked up at its clock-in)
    2) Write hours/pay back onto the entry
    3) Merge the result into the daily summary for
       (clock-out date in the location's timezone, worker)

    Nothing raised here reaches the write path that caused the event:
    calculation failures leave the entry in closed_calculation_failed for a
    later reconciliation pass, and summary failures are logged.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        summary_store: DailySummaryStore | None = None,
        config: OvertimeConfig | None = None,
    ):
        self.session_factory = session_factory
        self.settings = get_settings()
        self.summary_store = summary_store or DailySummaryStore(session_factory)
        self.config = config or OvertimeConfig.from_settings(self.settings)

    async def on_time_entry_write(
        self,
        entry_id: str,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
    ) -> ShiftCloseOutcome:
        """Handle a write event with the entry's before/after snapshots."""
        if after is None or not TimeEntryStateMachine.is_shift_close(before, after):
            return ShiftCloseOutcome(
                entry_id=entry_id,
                fired=False,
                status=TimeEntryStateMachine.status_of(after),
            )
        return await self.process_entry(entry_id, after)

    async def process_entry(self, entry_id: str, snapshot: Mapping[str, Any]) -> ShiftCloseOutcome:
        """Price one closed entry and fold it into its daily summary."""
        try:
            clock_out_at, result = await self._calculate(entry_id, snapshot)
            await self._write_back(entry_id, result)
        except AlreadyCalculatedError:
            logger.info("Time entry %s already calculated, skipping", entry_id)
            return ShiftCloseOutcome(
                entry_id=entry_id,
                fired=False,
                status=CalculationStatus.CLOSED_CALCULATED,
            )
        except Exception as exc:
            logger.exception("Error calculating payroll for time entry %s", entry_id)
            await self._mark_failed(entry_id, exc)
            return ShiftCloseOutcome(
                entry_id=entry_id,
                fired=True,
                status=CalculationStatus.CLOSED_CALCULATION_FAILED,
                error=str(exc),
            )

        if result.rate_missing:
            logger.warning(
                "No pay rate on file for user %s; time entry %s priced at zero",
                snapshot["user_id"],
                entry_id,
            )

        summary_updated = await self._merge_summary(entry_id, snapshot, clock_out_at, result)
        logger.info(
            "Payroll calculated for time entry %s: %s hours, %d cents",
            entry_id,
            quantize_hours(result.total_hours),
            result.gross_pay_cents,
        )
        return ShiftCloseOutcome(
            entry_id=entry_id,
            fired=True,
            status=CalculationStatus.CLOSED_CALCULATED,
            result=result,
            summary_updated=summary_updated,
        )

    async def _calculate(
        self,
        entry_id: str,
        snapshot: Mapping[str, Any],
    ) -> tuple[datetime, PayrollResult]:
        normalized = normalize(snapshot.get("clock_in_at"), snapshot.get("clock_out_at"), entry_id)
        if isinstance(normalized, InvalidRange):
            raise InvalidTimeEntryError(entry_id, normalized.reason)
        if normalized.end is None:
            raise InvalidTimeEntryError(entry_id, "entry has no clock-out")

        tz = get_timezone(snapshot.get("location_timezone"))
        async with self.session_factory() as session:
            result = await PayrollEngine(session).calculate_for_worker(
                snapshot["business_id"], snapshot["user_id"], [normalized], self.config, tz
            )
        return normalized.end, result

    async def _write_back(self, entry_id: str, result: PayrollResult) -> None:
        """Store the result unless another delivery already did.

        The UPDATE only matches while the entry has no calculated pay, so
        of two concurrent deliveries exactly one writes; the other gets
        AlreadyCalculatedError and skips the summary merge.
        """
        async with self.session_factory() as session:
            async with session.begin():
                entry = await self._load_entry(session, entry_id)
                current = TimeEntryStateMachine.status_of(snapshot_of(entry))
                if current == CalculationStatus.CLOSED_CALCULATED:
                    raise AlreadyCalculatedError(entry_id)
                if current is None:
                    raise LookupError(f"Time entry {entry_id} not found")
                TimeEntryStateMachine.validate_transition(
                    current, CalculationStatus.CLOSED_CALCULATED
                )
                updated = await session.execute(
                    update(TimeEntry)
                    .where(
                        TimeEntry.time_entry_id == entry_id,
                        TimeEntry.calculated_pay_cents.is_(None),
                    )
                    .values(
                        calculated_hours=quantize_hours(result.total_hours),
                        calculated_pay_cents=result.gross_pay_cents,
                        calculation_status=CalculationStatus.CLOSED_CALCULATED.value,
                        calculation_error=None,
                        calculated_at=datetime.now(timezone.utc),
                        calculation_engine_version=self.settings.engine_version,
                    )
                    .execution_options(synchronize_session=False)
                )
                if updated.rowcount == 0:
                    raise AlreadyCalculatedError(entry_id)

    async def _mark_failed(self, entry_id: str, exc: Exception) -> None:
        try:
            async with self.session_factory() as session:
                async with session.begin():
                    entry = await self._load_entry(session, entry_id)
                    current = TimeEntryStateMachine.status_of(snapshot_of(entry))
                    if current is None or not TimeEntryStateMachine.can_transition(
                        current, CalculationStatus.CLOSED_CALCULATION_FAILED
                    ):
                        return
                    # A concurrent delivery may have priced the entry meanwhile
                    await session.execute(
                        update(TimeEntry)
                        .where(
                            TimeEntry.time_entry_id == entry_id,
                            TimeEntry.calculated_pay_cents.is_(None),
                        )
                        .values(
                            calculation_status=CalculationStatus.CLOSED_CALCULATION_FAILED.value,
                            calculation_error=f"{type(exc).__name__}: {exc}",
                        )
                        .execution_options(synchronize_session=False)
                    )
        except Exception:
            logger.exception("Could not record calculation failure on time entry %s", entry_id)

    async def _merge_summary(
        self,
        entry_id: str,
        snapshot: Mapping[str, Any],
        clock_out_at: datetime,
        result: PayrollResult,
    ) -> bool:
        tz = get_timezone(snapshot.get("location_timezone"))
        key = SummaryKey(summary_date=local_date(clock_out_at, tz), user_id=snapshot["user_id"])
        try:
            await self.summary_store.merge(
                key,
                result.to_summary_delta(),
                business_id=snapshot["business_id"],
                location_id=snapshot["location_id"],
            )
        except SummaryMergeConflictError:
            logger.error(
                "Daily summary update for time entry %s abandoned after retries", entry_id
            )
            return False
        except Exception:
            logger.exception("Daily summary update failed for time entry %s", entry_id)
            return False
        return True

    @staticmethod
    async def _load_entry(session: AsyncSession, entry_id: str) -> TimeEntry:
        result = await session.execute(
            select(TimeEntry).where(TimeEntry.time_entry_id == entry_id).with_for_update()
        )
        entry = result.scalar_one_or_none()
        if entry is None:
            raise LookupError(f"Time entry {entry_id} not found")
        return entry
