"""Hours and pay calculation engine."""

from timeclock_payroll.calculators.aggregator import merge_into_summary
from timeclock_payroll.calculators.bucketer import bucket_by_week, week_start
from timeclock_payroll.calculators.engine import PayrollEngine, calculate_payroll
from timeclock_payroll.calculators.normalizer import normalize, to_instant
from timeclock_payroll.calculators.overtime import calculate_week, week_pay
from timeclock_payroll.calculators.rate_resolver import RateResolver, resolve_rate
from timeclock_payroll.calculators.types import (
    InvalidRange,
    OvertimeConfig,
    PayrollResult,
    RateRecord,
    SummaryDelta,
    SummaryKey,
    TimeEntryInput,
    TimeRange,
    WeekHours,
)

__all__ = [
    "InvalidRange",
    "OvertimeConfig",
    "PayrollEngine",
    "PayrollResult",
    "RateRecord",
    "RateResolver",
    "SummaryDelta",
    "SummaryKey",
    "TimeEntryInput",
    "TimeRange",
    "WeekHours",
    "bucket_by_week",
    "calculate_payroll",
    "calculate_week",
    "merge_into_summary",
    "normalize",
    "resolve_rate",
    "to_instant",
    "week_pay",
    "week_start",
]
