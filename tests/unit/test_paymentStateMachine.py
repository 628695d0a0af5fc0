"""
Unit tests for the Payment State Machine.

Verifies due-date derivation from operator cycles, the payment-scheduled
due-date rule and the append-only history.
"""

from datetime import date, timedelta

import pytest

from ryde.models.job import PaymentStatus
from ryde.services.errors import MissingDueDateError
from ryde.services.jobRecord import OperatorPolicy
from ryde.services.paymentStateMachine import (
    JOB_CREATED_NOTE,
    apply_payment_transition,
    calculate_due_date,
    initial_payment_state,
    validate_payment_transition,
)

BOOKED = date(2025, 6, 1)


# ---------------------------------------------------------------------------
# Due dates
# ---------------------------------------------------------------------------


class TestCalculateDueDate:

    @pytest.mark.parametrize(
        "cycle, days",
        [("Weekly", 7), ("weekly on Friday", 7), ("Monthly", 30), ("MONTHLY invoice", 30)],
    )
    def test_known_cycles(self, cycle, days):
        result = calculate_due_date(BOOKED, cycle)
        assert result.due_date == BOOKED + timedelta(days=days)
        assert result.is_estimate is False

    def test_unknown_cycle_is_an_estimate(self):
        result = calculate_due_date(BOOKED, "Fortnightly")
        assert result.due_date == date(2025, 6, 8)
        assert result.is_estimate is True
        assert result.rule == "default"

    @pytest.mark.parametrize("cycle", [None, "", "   "])
    def test_no_cycle(self, cycle):
        assert calculate_due_date(BOOKED, cycle) is None

    def test_no_booking_date(self):
        assert calculate_due_date(None, "Weekly") is None


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


class TestValidatePaymentTransition:

    @pytest.mark.parametrize("current", list(PaymentStatus))
    @pytest.mark.parametrize(
        "new",
        [s for s in PaymentStatus if s != PaymentStatus.PAYMENT_SCHEDULED],
    )
    def test_every_edge_is_allowed(self, current, new):
        assert validate_payment_transition(current, new).allowed is True

    def test_scheduled_needs_due_date(self):
        result = validate_payment_transition(PaymentStatus.UNPAID, PaymentStatus.PAYMENT_SCHEDULED)
        assert result.allowed is False
        assert "due date" in result.reason

    def test_scheduled_with_due_date(self):
        result = validate_payment_transition(
            PaymentStatus.UNPAID, PaymentStatus.PAYMENT_SCHEDULED, date(2025, 6, 8)
        )
        assert result.allowed is True


class TestApplyPaymentTransition:

    def test_appends_exactly_one_entry(self, job, now):
        updated = apply_payment_transition(job, PaymentStatus.PAID, now=now, note="Bank transfer")

        assert len(updated.payment_history) == len(job.payment_history) + 1
        assert updated.payment_history.last.status == PaymentStatus.PAID
        assert updated.payment_history.last.note == "Bank transfer"
        assert updated.payment_history.last.timestamp == now
        assert updated.payment_status == PaymentStatus.PAID

    def test_original_is_untouched(self, job, now):
        apply_payment_transition(job, PaymentStatus.PAID, now=now)
        assert job.payment_status == PaymentStatus.UNPAID
        assert len(job.payment_history) == 1

    def test_scheduled_sets_due_date(self, job, now):
        updated = apply_payment_transition(
            job, PaymentStatus.PAYMENT_SCHEDULED, now=now, due_date=date(2025, 6, 8)
        )
        assert updated.payment_due_date == date(2025, 6, 8)

    def test_scheduled_without_date_raises(self, job, now):
        with pytest.raises(MissingDueDateError):
            apply_payment_transition(job, PaymentStatus.PAYMENT_SCHEDULED, now=now)

    @pytest.mark.parametrize(
        "new",
        [PaymentStatus.PAID, PaymentStatus.OVERDUE, PaymentStatus.UNPAID, PaymentStatus.CANCELLED],
    )
    def test_leaving_scheduled_clears_due_date(self, job_factory, now, new):
        job = job_factory(
            payment_status=PaymentStatus.PAYMENT_SCHEDULED,
            payment_due_date=date(2025, 6, 8),
        )
        updated = apply_payment_transition(job, new, now=now, due_date=date(2025, 7, 1))
        assert updated.payment_due_date is None

    def test_last_entry_tracks_status_over_a_sequence(self, job, now):
        current = job
        for status in (
            PaymentStatus.OVERDUE,
            PaymentStatus.PAID,
            PaymentStatus.UNPAID,
            PaymentStatus.PAID,
        ):
            current = apply_payment_transition(current, status, now=now)
            assert current.payment_history.last.status == current.payment_status

        assert len(current.payment_history) == 5


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestInitialPaymentState:

    def test_unpaid_without_operator(self, now):
        state = initial_payment_state(BOOKED, PaymentStatus.UNPAID, None, now)

        assert state.status == PaymentStatus.UNPAID
        assert state.due_date is None
        assert len(state.history) == 1
        assert state.history[0].note == JOB_CREATED_NOTE

    def test_unpaid_with_operator_cycle_is_scheduled(self, commission_operator, now):
        state = initial_payment_state(BOOKED, PaymentStatus.UNPAID, commission_operator, now)

        assert state.status == PaymentStatus.PAYMENT_SCHEDULED
        assert state.due_date == date(2025, 6, 8)
        assert [e.status for e in state.history] == [
            PaymentStatus.UNPAID,
            PaymentStatus.PAYMENT_SCHEDULED,
        ]
        assert state.history.last.note == "Due date calculated based on operator cycle: Weekly"

    def test_operator_without_cycle_stays_unpaid(self, now):
        operator = OperatorPolicy(name="Direct")
        state = initial_payment_state(BOOKED, PaymentStatus.UNPAID, operator, now)
        assert state.status == PaymentStatus.UNPAID
        assert len(state.history) == 1

    def test_paid_ignores_cycle(self, commission_operator, now):
        state = initial_payment_state(BOOKED, PaymentStatus.PAID, commission_operator, now)
        assert state.status == PaymentStatus.PAID
        assert state.due_date is None

    def test_scheduled_with_explicit_date(self, now):
        state = initial_payment_state(
            BOOKED, PaymentStatus.PAYMENT_SCHEDULED, None, now, due_date=date(2025, 6, 20)
        )
        assert state.due_date == date(2025, 6, 20)

    def test_scheduled_derives_from_cycle(self, now):
        operator = OperatorPolicy(name="Airport Runs", payment_cycle="Monthly")
        state = initial_payment_state(BOOKED, PaymentStatus.PAYMENT_SCHEDULED, operator, now)
        assert state.due_date == date(2025, 7, 1)

    def test_scheduled_without_any_date_raises(self, now):
        with pytest.raises(MissingDueDateError):
            initial_payment_state(BOOKED, PaymentStatus.PAYMENT_SCHEDULED, None, now)

    def test_unknown_cycle_flags_estimate(self, now):
        operator = OperatorPolicy(name="Odd", payment_cycle="Every other Tuesday")
        state = initial_payment_state(BOOKED, PaymentStatus.UNPAID, operator, now)
        assert state.status == PaymentStatus.PAYMENT_SCHEDULED
        assert state.is_estimate is True
