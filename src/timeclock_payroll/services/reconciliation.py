"""Batch recalculation of closed entries the shift close trigger did not price."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from timeclock_payroll.models import TimeEntry
from timeclock_payroll.services.shift_close import ShiftCloseTrigger, snapshot_of
from timeclock_payroll.services.state_machine import CalculationStatus, TimeEntryStateMachine

logger = logging.getLogger(__name__)


@dataclass
class ReconciliationReport:
    """Counts from one reconciliation pass."""

    examined: int = 0
    calculated: int = 0
    failed: int = 0
    failed_entry_ids: list[str] = field(default_factory=list)


class ReconciliationService:
    """Reprocesses entries left closed but uncalculated.

    Candidates are entries with a clock-out and no calculated pay, either
    never processed or marked closed_calculation_failed. Each one goes
    through the same path as a live shift close, so summaries are updated
    exactly once per successful calculation.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        trigger: ShiftCloseTrigger | None = None,
    ):
        self.session_factory = session_factory
        self.trigger = trigger or ShiftCloseTrigger(session_factory)

    async def find_pending(self, business_id: str | None = None, limit: int = 500) -> list[TimeEntry]:
        stmt = select(TimeEntry).where(
            TimeEntry.clock_out_at.is_not(None),
            TimeEntry.calculated_pay_cents.is_(None),
        )
        if business_id is not None:
            stmt = stmt.where(TimeEntry.business_id == business_id)
        stmt = stmt.order_by(TimeEntry.clock_in_at).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(stmt)
            entries = list(result.scalars().all())
        return [
            e
            for e in entries
            if TimeEntryStateMachine.needs_recalculation(
                TimeEntryStateMachine.status_of(snapshot_of(e))
            )
        ]

    async def recalculate_pending(
        self,
        business_id: str | None = None,
        limit: int = 500,
    ) -> ReconciliationReport:
        report = ReconciliationReport()
        for entry in await self.find_pending(business_id, limit):
            report.examined += 1
            outcome = await self.trigger.process_entry(entry.time_entry_id, snapshot_of(entry))
            if outcome.status == CalculationStatus.CLOSED_CALCULATED:
                report.calculated += 1
            else:
                report.failed += 1
                report.failed_entry_ids.append(entry.time_entry_id)

        logger.info(
            "Reconciliation examined %d entries: %d calculated, %d failed",
            report.examined,
            report.calculated,
            report.failed,
        )
        return report
