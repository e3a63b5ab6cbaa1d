"""SQLAlchemy ORM models."""

from timeclock_payroll.models.base import Base, TimestampMixin
from timeclock_payroll.models.time_clock import DailySummary, PayRate, TimeEntry

__all__ = [
    "Base",
    "TimestampMixin",
    "DailySummary",
    "PayRate",
    "TimeEntry",
]
