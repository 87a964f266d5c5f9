"""Unit tests for the booking state machine."""

import pytest

from cabbooking.domain.entities import ensure_transition, is_terminal
from cabbooking.domain.enums import BOOKING_TRANSITIONS, BookingStatus
from cabbooking.domain.errors import ErrorKind, InvalidTransitionError


class TestBookingStateMachine:
    # ── Valid transitions ─────────────────────────────────────────

    def test_pending_payment_to_paid(self):
        ensure_transition(BookingStatus.PENDING_PAYMENT, BookingStatus.PAID)

    def test_pending_payment_to_cancelled(self):
        ensure_transition(BookingStatus.PENDING_PAYMENT, BookingStatus.CANCELLED)

    def test_paid_to_in_progress(self):
        ensure_transition(BookingStatus.PAID, BookingStatus.IN_PROGRESS)

    def test_paid_to_cancelled(self):
        ensure_transition(BookingStatus.PAID, BookingStatus.CANCELLED)

    def test_in_progress_to_completed(self):
        ensure_transition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED)

    def test_in_progress_to_cancelled(self):
        ensure_transition(BookingStatus.IN_PROGRESS, BookingStatus.CANCELLED)

    # ── Invalid transitions ───────────────────────────────────────

    def test_in_progress_back_to_pending_payment_fails(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ensure_transition(BookingStatus.IN_PROGRESS, BookingStatus.PENDING_PAYMENT)
        assert exc_info.value.kind == ErrorKind.INVALID_TRANSITION
        assert exc_info.value.message == (
            "Cannot transition from IN_PROGRESS to PENDING_PAYMENT"
        )

    def test_pending_payment_to_completed_fails(self):
        with pytest.raises(InvalidTransitionError):
            ensure_transition(BookingStatus.PENDING_PAYMENT, BookingStatus.COMPLETED)

    def test_paid_to_completed_is_not_a_manual_transition(self):
        """Completion from PAID goes through trip completion, not status change."""
        with pytest.raises(InvalidTransitionError):
            ensure_transition(BookingStatus.PAID, BookingStatus.COMPLETED)

    def test_self_transition_fails(self):
        with pytest.raises(InvalidTransitionError):
            ensure_transition(BookingStatus.PAID, BookingStatus.PAID)

    @pytest.mark.parametrize("target", list(BookingStatus))
    def test_completed_to_anything_fails(self, target):
        with pytest.raises(InvalidTransitionError):
            ensure_transition(BookingStatus.COMPLETED, target)

    @pytest.mark.parametrize("target", list(BookingStatus))
    def test_cancelled_to_anything_fails(self, target):
        with pytest.raises(InvalidTransitionError):
            ensure_transition(BookingStatus.CANCELLED, target)


class TestTerminalStatuses:
    def test_terminal_statuses(self):
        assert is_terminal(BookingStatus.COMPLETED)
        assert is_terminal(BookingStatus.CANCELLED)

    def test_open_statuses(self):
        for status in (
            BookingStatus.PENDING_PAYMENT,
            BookingStatus.PAID,
            BookingStatus.IN_PROGRESS,
        ):
            assert not is_terminal(status)
            assert BookingStatus.CANCELLED in BOOKING_TRANSITIONS[status]
