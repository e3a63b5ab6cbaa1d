"""Type definitions for the hours and pay calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from timeclock_payroll.config import Settings

ZERO = Decimal("0")

# Safety clamp against missed clock-outs that later got a spurious end value
MAX_SHIFT_HOURS = Decimal("24")

_MICROSECONDS_PER_HOUR = Decimal(3_600_000_000)


@dataclass(frozen=True)
class TimeEntryInput:
    """A time entry as stored, before its timestamps are normalized."""

    clock_in_at: Any
    clock_out_at: Any = None
    entry_id: str | None = None


@dataclass(frozen=True)
class TimeRange:
    """A validated work interval in UTC.

    The literal endpoints are preserved for display; only ``hours`` applies
    the per-shift clamp.
    """

    start: datetime
    end: datetime | None = None
    entry_id: str | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def duration(self) -> timedelta:
        if self.end is None:
            return timedelta(0)
        return self.end - self.start

    @property
    def hours(self) -> Decimal:
        """Worked hours, capped at MAX_SHIFT_HOURS; open ranges are zero."""
        if self.end is None:
            return ZERO
        micros = self.duration // timedelta(microseconds=1)
        return min(Decimal(micros) / _MICROSECONDS_PER_HOUR, MAX_SHIFT_HOURS)


@dataclass(frozen=True)
class InvalidRange:
    """Normalization failure; the entry is excluded from calculation."""

    reason: str
    entry_id: str | None = None


@dataclass(frozen=True)
class RateRecord:
    """One effective-dated hourly rate, in minor currency units."""

    hourly_rate_cents: int | None
    effective_from: datetime | None
    record_id: int | str | None = None

    @property
    def is_usable(self) -> bool:
        return (
            self.hourly_rate_cents is not None
            and self.hourly_rate_cents > 0
            and self.effective_from is not None
        )


@dataclass(frozen=True)
class OvertimeConfig:
    """Weekly overtime thresholds and multipliers.

    Numeric fields accept anything ``Decimal(str(x))`` accepts and are stored
    as ``Decimal``.
    """

    regular_hours_per_week: Decimal = Decimal("40")
    overtime_multiplier: Decimal = Decimal("1.5")
    double_time_multiplier: Decimal = Decimal("2.0")
    double_time_threshold_hours: Decimal | None = None

    def __post_init__(self) -> None:
        for name in ("regular_hours_per_week", "overtime_multiplier", "double_time_multiplier"):
            object.__setattr__(self, name, Decimal(str(getattr(self, name))))
        if self.double_time_threshold_hours is not None:
            object.__setattr__(
                self,
                "double_time_threshold_hours",
                Decimal(str(self.double_time_threshold_hours)),
            )

        if self.regular_hours_per_week < 0:
            raise ValueError("regular_hours_per_week must be non-negative")
        if self.overtime_multiplier < 1 or self.double_time_multiplier < 1:
            raise ValueError("Overtime and double time multipliers must be at least 1")
        if (
            self.double_time_threshold_hours is not None
            and self.double_time_threshold_hours < self.regular_hours_per_week
        ):
            raise ValueError(
                f"double_time_threshold_hours ({self.double_time_threshold_hours}) "
                f"must not be below regular_hours_per_week ({self.regular_hours_per_week})"
            )

    @classmethod
    def from_settings(cls, settings: Settings) -> OvertimeConfig:
        """Business-level defaults from application settings."""
        return cls(
            regular_hours_per_week=settings.regular_hours_per_week,
            overtime_multiplier=settings.overtime_multiplier,
            double_time_multiplier=settings.double_time_multiplier,
            double_time_threshold_hours=settings.double_time_threshold_hours,
        )


@dataclass(frozen=True)
class WeekHours:
    """Tiered hours for one week."""

    regular: Decimal = ZERO
    overtime: Decimal = ZERO
    double_time: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.regular + self.overtime + self.double_time


@dataclass(frozen=True)
class SummaryDelta:
    """Amounts one shift close adds to a daily summary."""

    hours: Decimal = ZERO
    pay_cents: int = 0
    regular_hours: Decimal = ZERO
    overtime_hours: Decimal = ZERO
    double_time_hours: Decimal = ZERO


@dataclass(frozen=True)
class SummaryKey:
    """Identity of a daily summary: local work date and worker."""

    summary_date: date
    user_id: str


@dataclass(frozen=True)
class PayrollResult:
    """Hours and gross pay for one worker over a set of entries."""

    regular_hours: Decimal
    overtime_hours: Decimal
    double_time_hours: Decimal
    total_hours: Decimal
    hourly_rate_cents: int
    gross_pay_cents: int
    source_entries: tuple[TimeRange, ...] = field(default_factory=tuple)
    rate_missing: bool = False

    @classmethod
    def zero(cls) -> PayrollResult:
        return cls(
            regular_hours=ZERO,
            overtime_hours=ZERO,
            double_time_hours=ZERO,
            total_hours=ZERO,
            hourly_rate_cents=0,
            gross_pay_cents=0,
        )

    def to_summary_delta(self) -> SummaryDelta:
        return SummaryDelta(
            hours=self.total_hours,
            pay_cents=self.gross_pay_cents,
            regular_hours=self.regular_hours,
            overtime_hours=self.overtime_hours,
            double_time_hours=self.double_time_hours,
        )
