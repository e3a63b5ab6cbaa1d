"""Additive merge of shift results into daily payroll summaries."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from timeclock_payroll.calculators.types import SummaryDelta, SummaryKey
from timeclock_payroll.models import DailySummary

HOURS_QUANTUM = Decimal("0.0001")


def quantize_hours(hours: Decimal) -> Decimal:
    """Hours at the precision the summary columns store."""
    return Decimal(hours).quantize(HOURS_QUANTUM)


def merge_into_summary(
    existing: DailySummary | None,
    key: SummaryKey,
    delta: SummaryDelta,
    *,
    business_id: str,
    location_id: str,
    now: datetime | None = None,
) -> DailySummary:
    """Seed a new summary with ``delta`` or add ``delta`` to ``existing``.

    Not synchronized: callers serialize merges for one key with a
    transaction (see DailySummaryStore).
    """
    now = now or datetime.now(timezone.utc)

    if existing is None:
        return DailySummary(
            summary_id=DailySummary.make_id(key.summary_date, key.user_id),
            business_id=business_id,
            location_id=location_id,
            user_id=key.user_id,
            summary_date=key.summary_date,
            total_hours=quantize_hours(delta.hours),
            total_pay_cents=delta.pay_cents,
            regular_hours=quantize_hours(delta.regular_hours),
            overtime_hours=quantize_hours(delta.overtime_hours),
            double_time_hours=quantize_hours(delta.double_time_hours),
            created_at=now,
            updated_at=now,
        )

    existing.total_hours = quantize_hours((existing.total_hours or 0) + delta.hours)
    existing.total_pay_cents = (existing.total_pay_cents or 0) + delta.pay_cents
    existing.regular_hours = quantize_hours((existing.regular_hours or 0) + delta.regular_hours)
    existing.overtime_hours = quantize_hours((existing.overtime_hours or 0) + delta.overtime_hours)
    existing.double_time_hours = quantize_hours(
        (existing.double_time_hours or 0) + delta.double_time_hours
    )
    existing.updated_at = now
    return existing
