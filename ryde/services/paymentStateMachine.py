"""
Payment State Machine
=====================

Tracks whether the driver has been paid for a job.  Unlike the lifecycle
state machine there is no forbidden edge: the driver may move a job from any
payment status to any other (e.g. correct an accidental "paid").  What *is*
enforced:

- ``payment-scheduled`` always carries a due date; every other status clears it
- each change appends exactly one ``PaymentHistoryEntry``
- the last history entry always matches the current status

Due dates derive from the operator's payment cycle::

    "weekly"  -> booking date + 7 days
    "monthly" -> booking date + 30 days
    other     -> booking date + 7 days (flagged as an estimate)
    empty     -> no due date
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from ryde.models.job import PaymentStatus
from ryde.services.errors import MissingDueDateError
from ryde.services.jobRecord import (
    JobRecord,
    OperatorPolicy,
    PaymentHistory,
    PaymentHistoryEntry,
)

logger = logging.getLogger(__name__)

JOB_CREATED_NOTE = "Job created."


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None


@dataclass(frozen=True)
class DueDate:
    """A computed payment due date.

    ``is_estimate`` is set when the operator's cycle text was not recognised
    and the weekly default was used instead.
    """
    due_date: date
    is_estimate: bool = False
    rule: str = "weekly"


@dataclass(frozen=True)
class InitialPaymentState:
    status: PaymentStatus
    due_date: Optional[date]
    history: PaymentHistory
    is_estimate: bool = False


# ---------------------------------------------------------------------------
# Due dates
# ---------------------------------------------------------------------------

_CYCLE_DAYS: tuple[tuple[str, int], ...] = (
    ("weekly", 7),
    ("monthly", 30),
)

_DEFAULT_CYCLE_DAYS = 7


def calculate_due_date(
    booking_date: Optional[date],
    payment_cycle: Optional[str],
) -> Optional[DueDate]:
    """Compute when the operator should pay for a job booked on *booking_date*.

    Returns ``None`` when there is no booking date or no cycle.
    """
    if booking_date is None or not payment_cycle or not payment_cycle.strip():
        return None

    cycle = payment_cycle.lower()
    for keyword, days in _CYCLE_DAYS:
        if keyword in cycle:
            return DueDate(
                due_date=booking_date + timedelta(days=days),
                is_estimate=False,
                rule=keyword,
            )

    logger.warning(
        "Unrecognised payment cycle %r; defaulting to %d days",
        payment_cycle,
        _DEFAULT_CYCLE_DAYS,
    )
    return DueDate(
        due_date=booking_date + timedelta(days=_DEFAULT_CYCLE_DAYS),
        is_estimate=True,
        rule="default",
    )


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------

def validate_payment_transition(
    current_status: PaymentStatus,
    new_status: PaymentStatus,
    due_date: Optional[date] = None,
) -> TransitionResult:
    """Check a payment status change without applying it.

    Every edge is structurally allowed; the only refusal is entering
    ``payment-scheduled`` without a due date.
    """
    if new_status == PaymentStatus.PAYMENT_SCHEDULED and due_date is None:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Cannot move payment from '{current_status.value}' to "
                f"'{new_status.value}' without a due date."
            ),
        )
    return TransitionResult(allowed=True)


def apply_payment_transition(
    job: JobRecord,
    new_status: PaymentStatus,
    *,
    now: datetime,
    due_date: Optional[date] = None,
    note: Optional[str] = None,
) -> JobRecord:
    """Return a copy of *job* with the new payment status applied.

    Raises:
        MissingDueDateError: Entering ``payment-scheduled`` without a date.
    """
    result = validate_payment_transition(job.payment_status, new_status, due_date)
    if not result.allowed:
        raise MissingDueDateError(result.reason)

    entry = PaymentHistoryEntry(status=new_status, timestamp=now, note=note)
    updated = job.evolve(
        payment_status=new_status,
        payment_due_date=due_date if new_status == PaymentStatus.PAYMENT_SCHEDULED else None,
        payment_history=job.payment_history.append(entry),
    )

    logger.info(
        "Job %s payment status: %s -> %s",
        job.job_ref or job.id,
        job.payment_status.value,
        new_status.value,
    )
    return updated


def initial_payment_state(
    booking_date: Optional[date],
    requested_status: PaymentStatus,
    operator: Optional[OperatorPolicy],
    now: datetime,
    *,
    due_date: Optional[date] = None,
) -> InitialPaymentState:
    """Payment status, due date and history for a freshly created job.

    An unpaid job whose operator has a payment cycle is moved straight to
    ``payment-scheduled``; the history records both steps.  A job created as
    ``payment-scheduled`` needs either an explicit *due_date* or an operator
    cycle to derive one from.

    Raises:
        MissingDueDateError: Created as ``payment-scheduled`` with no way to
            determine a due date.
    """
    history = PaymentHistory().append(
        PaymentHistoryEntry(status=requested_status, timestamp=now, note=JOB_CREATED_NOTE)
    )
    cycle = operator.payment_cycle if operator is not None else None

    if requested_status == PaymentStatus.PAYMENT_SCHEDULED:
        if due_date is not None:
            return InitialPaymentState(status=requested_status, due_date=due_date, history=history)
        computed = calculate_due_date(booking_date, cycle)
        if computed is None:
            raise MissingDueDateError()
        return InitialPaymentState(
            status=requested_status,
            due_date=computed.due_date,
            history=history,
            is_estimate=computed.is_estimate,
        )

    if requested_status != PaymentStatus.UNPAID or operator is None:
        return InitialPaymentState(status=requested_status, due_date=None, history=history)

    computed = calculate_due_date(booking_date, cycle)
    if computed is None:
        return InitialPaymentState(status=requested_status, due_date=None, history=history)

    history = history.append(
        PaymentHistoryEntry(
            status=PaymentStatus.PAYMENT_SCHEDULED,
            timestamp=now,
            note=f"Due date calculated based on operator cycle: {operator.payment_cycle}",
        )
    )
    return InitialPaymentState(
        status=PaymentStatus.PAYMENT_SCHEDULED,
        due_date=computed.due_date,
        history=history,
        is_estimate=computed.is_estimate,
    )
