"""Three-tier weekly overtime calculation."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

from timeclock_payroll.calculators.types import ZERO, OvertimeConfig, TimeRange, WeekHours


def split_week_hours(total_hours: Decimal, config: OvertimeConfig) -> WeekHours:
    """Split a week's total into regular, overtime and double time hours."""
    threshold = config.regular_hours_per_week
    regular = min(total_hours, threshold)

    if total_hours <= threshold:
        return WeekHours(regular=regular)

    excess = total_hours - threshold
    double_time_threshold = config.double_time_threshold_hours
    if double_time_threshold is not None and total_hours > double_time_threshold:
        double_time = total_hours - double_time_threshold
        return WeekHours(regular=regular, overtime=excess - double_time, double_time=double_time)

    return WeekHours(regular=regular, overtime=excess)


def calculate_week(ranges: Iterable[TimeRange], config: OvertimeConfig) -> WeekHours:
    """Tiered hours for the ranges of one week, using clamped durations."""
    total_hours = sum((r.hours for r in ranges), ZERO)
    return split_week_hours(total_hours, config)


def week_pay(hours: WeekHours, rate_cents: int, config: OvertimeConfig) -> Decimal:
    """Unrounded pay in cents; rounding happens once, after aggregation."""
    rate = Decimal(rate_cents)
    return (
        hours.regular * rate
        + hours.overtime * rate * config.overtime_multiplier
        + hours.double_time * rate * config.double_time_multiplier
    )
