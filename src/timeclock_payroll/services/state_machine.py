"""Time entry calculation state machine with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class CalculationStatus(str, Enum):
    """Calculation status values stored on a time entry."""

    OPEN = "open"
    CLOSED_UNCALCULATED = "closed_uncalculated"
    CLOSED_CALCULATED = "closed_calculated"
    CLOSED_CALCULATION_FAILED = "closed_calculation_failed"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class TimeEntryStateMachine:
    """State machine for a time entry's pay calculation.

    Allowed transitions:
    - open → closed_uncalculated (clock-out recorded)
    - closed_uncalculated → closed_calculated
    - closed_uncalculated → closed_calculation_failed
    - closed_calculation_failed → closed_calculated (explicit recalculation)
    - closed_calculation_failed → closed_calculation_failed (recalculation failed again)

    closed_calculated is terminal for the automatic path; corrections go
    through an explicit recalculation.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        CalculationStatus.OPEN: [CalculationStatus.CLOSED_UNCALCULATED],
        CalculationStatus.CLOSED_UNCALCULATED: [
            CalculationStatus.CLOSED_CALCULATED,
            CalculationStatus.CLOSED_CALCULATION_FAILED,
        ],
        CalculationStatus.CLOSED_CALCULATION_FAILED: [
            CalculationStatus.CLOSED_CALCULATED,
            CalculationStatus.CLOSED_CALCULATION_FAILED,
        ],
        CalculationStatus.CLOSED_CALCULATED: [],
    }

    # Statuses a reconciliation pass picks up
    PENDING_RECALCULATION = {
        CalculationStatus.CLOSED_UNCALCULATED,
        CalculationStatus.CLOSED_CALCULATION_FAILED,
    }

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def needs_recalculation(cls, status: str) -> bool:
        return status in cls.PENDING_RECALCULATION

    @classmethod
    def status_of(cls, snapshot: Mapping[str, Any] | None) -> CalculationStatus | None:
        """Derive the status of a stored entry snapshot (None if absent)."""
        if snapshot is None:
            return None
        if snapshot.get("clock_out_at") is None:
            return CalculationStatus.OPEN
        if snapshot.get("calculated_pay_cents") is not None:
            return CalculationStatus.CLOSED_CALCULATED
        stored = snapshot.get("calculation_status")
        if stored == CalculationStatus.CLOSED_CALCULATION_FAILED:
            return CalculationStatus.CLOSED_CALCULATION_FAILED
        return CalculationStatus.CLOSED_UNCALCULATED

    @classmethod
    def is_shift_close(
        cls,
        before: Mapping[str, Any] | None,
        after: Mapping[str, Any] | None,
    ) -> bool:
        """True when a write closed an open entry that has no pay yet.

        Creates (no ``before``), deletes (no ``after``), edits of closed
        entries and entries that already carry calculated pay never fire;
        those go through explicit recalculation.
        """
        if before is None or after is None:
            return False
        return (
            cls.status_of(before) == CalculationStatus.OPEN
            and cls.status_of(after) == CalculationStatus.CLOSED_UNCALCULATED
        )
