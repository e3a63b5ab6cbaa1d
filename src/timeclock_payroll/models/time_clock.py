"""Time clock models: time entries, pay rates and daily payroll summaries."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from timeclock_payroll.models.base import Base, TimestampMixin


def _new_id() -> str:
    return uuid4().hex


class TimeEntry(Base, TimestampMixin):
    """A worker's clock-in/clock-out record at a location."""

    __tablename__ = "time_entry"

    time_entry_id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    business_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    clock_in_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    clock_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    location_timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Written back by the shift close trigger
    calculated_hours: Mapped[Decimal | None] = mapped_column(Numeric(12, 4), nullable=True)
    calculated_pay_cents: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    calculation_status: Mapped[str] = mapped_column(String(32), nullable=False, default="open")
    calculation_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    calculated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    calculation_engine_version: Mapped[str | None] = mapped_column(String(32), nullable=True)

    __table_args__ = (
        Index("ix_time_entry_business_clock_in", "business_id", "clock_in_at"),
        Index("ix_time_entry_calculation_status", "calculation_status"),
    )

    @property
    def is_open(self) -> bool:
        return self.clock_out_at is None

    def __repr__(self) -> str:
        return (
            f"<TimeEntry {self.time_entry_id} user={self.user_id} "
            f"status={self.calculation_status}>"
        )


class PayRate(Base, TimestampMixin):
    """Effective-dated hourly rate for a worker.

    Rows are append-only: a rate change inserts a new row so that
    historical payroll keeps resolving to the rate that applied then.
    """

    __tablename__ = "pay_rate"

    pay_rate_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    hourly_rate_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)
    effective_from: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("ix_pay_rate_business_user", "business_id", "user_id"),)


class DailySummary(Base, TimestampMixin):
    """Running per-worker, per-day payroll totals."""

    __tablename__ = "daily_payroll_summary"

    summary_id: Mapped[str] = mapped_column(String(160), primary_key=True)
    business_id: Mapped[str] = mapped_column(String(64), nullable=False)
    location_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    summary_date: Mapped[date] = mapped_column(Date, nullable=False)

    total_hours: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    total_pay_cents: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    regular_hours: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    overtime_hours: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False, default=Decimal("0"))
    double_time_hours: Mapped[Decimal] = mapped_column(
        Numeric(14, 4), nullable=False, default=Decimal("0")
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("summary_date", "user_id", name="daily_payroll_summary_key"),
        CheckConstraint("total_pay_cents >= 0", name="daily_payroll_summary_pay_nonneg"),
    )
    __mapper_args__ = {"version_id_col": version}

    @staticmethod
    def make_id(summary_date: date, user_id: str) -> str:
        return f"{summary_date.isoformat()}_{user_id}"
