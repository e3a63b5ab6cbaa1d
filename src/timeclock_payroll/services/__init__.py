"""Time clock payroll services."""

from timeclock_payroll.services.rate_service import PayRateService
from timeclock_payroll.services.reconciliation import ReconciliationReport, ReconciliationService
from timeclock_payroll.services.report_service import (
    InvalidReportWindowError,
    PayrollReport,
    PayrollReportRow,
    PayrollReportService,
)
from timeclock_payroll.services.shift_close import ShiftCloseOutcome, ShiftCloseTrigger
from timeclock_payroll.services.state_machine import (
    CalculationStatus,
    InvalidTransitionError,
    TimeEntryStateMachine,
)
from timeclock_payroll.services.summary_store import DailySummaryStore, SummaryMergeConflictError

__all__ = [
    "CalculationStatus",
    "DailySummaryStore",
    "InvalidReportWindowError",
    "InvalidTransitionError",
    "PayRateService",
    "PayrollReport",
    "PayrollReportRow",
    "PayrollReportService",
    "ReconciliationReport",
    "ReconciliationService",
    "ShiftCloseOutcome",
    "ShiftCloseTrigger",
    "SummaryMergeConflictError",
    "TimeEntryStateMachine",
]
