"""Tests for time entry calculation state machine."""

import pytest

from timeclock_payroll.services.state_machine import (
    CalculationStatus,
    InvalidTransitionError,
    TimeEntryStateMachine,
)

from tests.conftest import utc

OPEN = {"clock_in_at": utc(2024, 3, 15, 9), "clock_out_at": None, "calculated_pay_cents": None}
CLOSED = {**OPEN, "clock_out_at": utc(2024, 3, 15, 17)}
CALCULATED = {**CLOSED, "calculated_pay_cents": 16000, "calculation_status": "closed_calculated"}
FAILED = {**CLOSED, "calculation_status": "closed_calculation_failed"}


class TestTimeEntryStateMachine:
    """Test state machine transitions."""

    def test_valid_transitions(self):
        """Test that valid transitions are allowed."""
        # open → closed_uncalculated
        assert TimeEntryStateMachine.can_transition("open", "closed_uncalculated") is True

        # closed_uncalculated → closed_calculated / closed_calculation_failed
        assert TimeEntryStateMachine.can_transition("closed_uncalculated", "closed_calculated") is True
        assert (
            TimeEntryStateMachine.can_transition("closed_uncalculated", "closed_calculation_failed")
            is True
        )

        # failed → calculated (explicit recalculation)
        assert (
            TimeEntryStateMachine.can_transition("closed_calculation_failed", "closed_calculated")
            is True
        )

    def test_invalid_transitions(self):
        """Test that invalid transitions are blocked."""
        # Can't calculate an open entry
        assert TimeEntryStateMachine.can_transition("open", "closed_calculated") is False

        # Calculated is terminal for the automatic path
        assert TimeEntryStateMachine.can_transition("closed_calculated", "closed_calculated") is False
        assert (
            TimeEntryStateMachine.can_transition("closed_calculated", "closed_calculation_failed")
            is False
        )
        assert TimeEntryStateMachine.can_transition("closed_calculated", "open") is False

        # Unknown statuses have no transitions
        assert TimeEntryStateMachine.can_transition("bogus", "closed_calculated") is False

    def test_validate_transition_raises(self):
        """Test that validate_transition raises for invalid transitions."""
        with pytest.raises(InvalidTransitionError) as exc_info:
            TimeEntryStateMachine.validate_transition("closed_calculated", "closed_calculated")

        assert exc_info.value.from_status == "closed_calculated"
        assert exc_info.value.to_status == "closed_calculated"

    def test_needs_recalculation(self):
        assert TimeEntryStateMachine.needs_recalculation("closed_uncalculated") is True
        assert TimeEntryStateMachine.needs_recalculation("closed_calculation_failed") is True
        assert TimeEntryStateMachine.needs_recalculation("closed_calculated") is False
        assert TimeEntryStateMachine.needs_recalculation("open") is False

    def test_enum_values_compare_as_strings(self):
        assert CalculationStatus.CLOSED_CALCULATED == "closed_calculated"


class TestStatusOf:
    """Status derived from a stored snapshot."""

    def test_absent(self):
        assert TimeEntryStateMachine.status_of(None) is None

    def test_open(self):
        assert TimeEntryStateMachine.status_of(OPEN) == CalculationStatus.OPEN

    def test_closed_uncalculated(self):
        assert TimeEntryStateMachine.status_of(CLOSED) == CalculationStatus.CLOSED_UNCALCULATED

    def test_calculated_pay_wins_over_stored_status(self):
        snapshot = {**CLOSED, "calculated_pay_cents": 0, "calculation_status": "closed_uncalculated"}
        assert TimeEntryStateMachine.status_of(snapshot) == CalculationStatus.CLOSED_CALCULATED

    def test_failed(self):
        assert TimeEntryStateMachine.status_of(FAILED) == CalculationStatus.CLOSED_CALCULATION_FAILED


class TestIsShiftClose:
    """Firing rule for the shift-close trigger."""

    def test_open_to_closed_fires(self):
        assert TimeEntryStateMachine.is_shift_close(OPEN, CLOSED) is True

    def test_create_does_not_fire(self):
        assert TimeEntryStateMachine.is_shift_close(None, CLOSED) is False

    def test_delete_does_not_fire(self):
        assert TimeEntryStateMachine.is_shift_close(OPEN, None) is False

    def test_edit_of_closed_entry_does_not_fire(self):
        edited = {**CLOSED, "clock_out_at": utc(2024, 3, 15, 18)}
        assert TimeEntryStateMachine.is_shift_close(CLOSED, edited) is False

    def test_already_calculated_does_not_fire(self):
        assert TimeEntryStateMachine.is_shift_close(OPEN, CALCULATED) is False
        assert TimeEntryStateMachine.is_shift_close(CALCULATED, CALCULATED) is False

    def test_open_to_open_does_not_fire(self):
        edited = {**OPEN, "notes": "moved location"}
        assert TimeEntryStateMachine.is_shift_close(OPEN, edited) is False
