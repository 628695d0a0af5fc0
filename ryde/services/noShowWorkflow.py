"""
No-Show Workflow
================

When a passenger fails to turn up the driver may still be owed all, half or
a negotiated part of the fare.  Marking a job as a no-show:

1. Captures the fare as ``original_fare`` (once; a later amend never
   overwrites it)
2. Applies the payment rule to the original fare
3. Cancels the job with reason "No Show" and records the wait time
4. Appends the evidence to the job notes
5. Recomputes the cached profit

A revert restores the original fare and turns the job back into a plain
cancellation.  Eligibility needs the booking start to be more than the grace
period in the past, measured in the driver's local timezone.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional
from zoneinfo import ZoneInfo

from ryde.models.job import JobStatus, PaymentStatus
from ryde.services.errors import (
    NoShowNotAllowedError,
    NoShowRevertError,
    PreconditionError,
)
from ryde.services.jobRecord import CostSettings, Expense, JobRecord, OperatorPolicy
from ryde.services.parsing import ZERO, round_money
from ryde.services.paymentStateMachine import TransitionResult, apply_payment_transition
from ryde.services.profitEngine import ExpensePolicy, recompute_profit

logger = logging.getLogger(__name__)

NO_SHOW_GRACE_MINUTES = 15
NO_SHOW_REASON = "No Show"
EVIDENCE_PREFIX = "[No Show Evidence]: "
ZERO_FARE_PAYMENT_NOTE = "No-show with no fare due."

DEFAULT_TIMEZONE = "Europe/London"


class PaymentRule(str, enum.Enum):
    FULL = "full"
    HALF = "half"
    CUSTOM = "custom"


@dataclass(frozen=True)
class NoShowRequest:
    """What the driver records when marking (or amending) a no-show.

    ``expenses`` is the full list of no-show expenses.  Marking always
    replaces the job's expenses (``None`` clears them); amending keeps the
    existing ones when ``None``.
    """
    wait_time: Optional[int] = None
    notes: Optional[str] = None
    payment_rule: PaymentRule = PaymentRule.FULL
    custom_fare: Optional[Decimal] = None
    expenses: Optional[tuple[Expense, ...]] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def booking_start(job: JobRecord, tz: str = DEFAULT_TIMEZONE) -> Optional[datetime]:
    """The job's start as an aware datetime, or ``None`` without date/time."""
    if job.booking_date is None or job.booking_time is None:
        return None
    return datetime.combine(job.booking_date, job.booking_time, tzinfo=ZoneInfo(tz))


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def adjusted_fare(base_fare: Decimal, request: NoShowRequest) -> Decimal:
    """Apply the payment rule to *base_fare*.

    Raises:
        PreconditionError: Custom rule without a non-negative amount.
    """
    if request.payment_rule == PaymentRule.HALF:
        return round_money(base_fare * Decimal("0.5"))
    if request.payment_rule == PaymentRule.CUSTOM:
        if request.custom_fare is None or request.custom_fare < 0:
            raise PreconditionError(
                "A non-negative custom fare is required for the custom payment rule."
            )
        return request.custom_fare
    return base_fare


def _append_evidence(existing: Optional[str], evidence: Optional[str]) -> Optional[str]:
    if not evidence or not evidence.strip():
        return existing
    entry = f"{EVIDENCE_PREFIX}{evidence.strip()}"
    if existing:
        return f"{existing}\n\n{entry}"
    return entry


def _settle_zero_fare(job: JobRecord, now: datetime) -> JobRecord:
    """Nothing is owed: move payment to ``cancelled`` unless already there."""
    if job.fare != ZERO or job.payment_status == PaymentStatus.CANCELLED:
        return job
    return apply_payment_transition(
        job, PaymentStatus.CANCELLED, now=now, note=ZERO_FARE_PAYMENT_NOTE
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def check_no_show_eligibility(
    job: JobRecord,
    now: datetime,
    *,
    grace_minutes: int = NO_SHOW_GRACE_MINUTES,
    tz: str = DEFAULT_TIMEZONE,
) -> TransitionResult:
    """Can *job* be marked as a no-show at *now*?"""
    if job.is_no_show:
        return TransitionResult(allowed=False, reason="Job is already marked as a no-show.")

    if job.status not in (JobStatus.SCHEDULED, JobStatus.CANCELLED):
        return TransitionResult(
            allowed=False,
            reason=(
                f"Only scheduled or cancelled jobs can be marked as a no-show "
                f"(job is '{job.status.value}')."
            ),
        )

    start = booking_start(job, tz)
    if start is None:
        return TransitionResult(
            allowed=False,
            reason="Job needs a booking date and time to be marked as a no-show.",
        )

    eligible_from = start + timedelta(minutes=grace_minutes)
    if _aware(now) <= eligible_from:
        return TransitionResult(
            allowed=False,
            reason=(
                f"A no-show can only be recorded {grace_minutes} minutes after "
                f"the booking time."
            ),
        )
    return TransitionResult(allowed=True)


def mark_no_show(
    job: JobRecord,
    request: NoShowRequest,
    *,
    now: datetime,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
    expense_policy: ExpensePolicy = ExpensePolicy.ALL,
    grace_minutes: int = NO_SHOW_GRACE_MINUTES,
    tz: str = DEFAULT_TIMEZONE,
) -> JobRecord:
    """Record a no-show and return the updated job.

    Raises:
        NoShowNotAllowedError: The job is not eligible at *now*.
        PreconditionError: Custom rule without a valid amount.
    """
    eligibility = check_no_show_eligibility(job, now, grace_minutes=grace_minutes, tz=tz)
    if not eligibility.allowed:
        raise NoShowNotAllowedError(eligibility.reason)

    original = job.original_fare if job.original_fare is not None else job.fare
    fare = adjusted_fare(original, request)

    updated = job.evolve(
        fare=fare,
        original_fare=original,
        status=JobStatus.CANCELLED,
        no_show_at=now,
        no_show_wait_time=request.wait_time,
        notes=_append_evidence(job.notes, request.notes),
        expenses=request.expenses or (),
        cancelled_at=now,
        cancellation_reason=NO_SHOW_REASON,
    )
    updated = _settle_zero_fare(updated, now)
    updated = updated.evolve(
        profit=recompute_profit(updated, settings, operator, expense_policy=expense_policy)
    )

    logger.info(
        "Job %s marked as no-show (%s): fare %s -> %s",
        job.job_ref or job.id,
        request.payment_rule.value,
        original,
        fare,
    )
    return updated


def amend_no_show(
    job: JobRecord,
    request: NoShowRequest,
    *,
    now: datetime,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
    expense_policy: ExpensePolicy = ExpensePolicy.ALL,
) -> JobRecord:
    """Edit an existing no-show.

    The payment rule is applied to ``original_fare``, so amending "half" to
    "half" leaves the fare at half the original.

    Raises:
        NoShowNotAllowedError: The job is not a no-show.
    """
    if not job.is_no_show or job.original_fare is None:
        raise NoShowNotAllowedError("Job is not marked as a no-show.")

    fare = adjusted_fare(job.original_fare, request)
    updated = job.evolve(
        fare=fare,
        no_show_wait_time=(
            request.wait_time if request.wait_time is not None else job.no_show_wait_time
        ),
        notes=_append_evidence(job.notes, request.notes),
        expenses=request.expenses if request.expenses is not None else job.expenses,
    )
    updated = _settle_zero_fare(updated, now)
    updated = updated.evolve(
        profit=recompute_profit(updated, settings, operator, expense_policy=expense_policy)
    )

    logger.info(
        "Job %s no-show amended (%s): fare %s",
        job.job_ref or job.id,
        request.payment_rule.value,
        fare,
    )
    return updated


def revert_no_show(
    job: JobRecord,
    *,
    now: datetime,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
    expense_policy: ExpensePolicy = ExpensePolicy.ALL,
) -> JobRecord:
    """Undo a no-show, leaving a plain cancelled job with its full fare.

    Raises:
        NoShowRevertError: No original fare was captured.
    """
    if job.original_fare is None:
        raise NoShowRevertError("No original fare recorded; nothing to revert.")

    updated = job.evolve(
        fare=job.original_fare,
        original_fare=None,
        no_show_at=None,
        no_show_wait_time=None,
        expenses=(),
        status=JobStatus.CANCELLED,
        cancellation_reason=None,
        cancelled_at=job.cancelled_at or now,
    )
    updated = updated.evolve(
        profit=recompute_profit(updated, settings, operator, expense_policy=expense_policy)
    )

    logger.info("Job %s no-show reverted: fare restored to %s", job.job_ref or job.id, job.original_fare)
    return updated
