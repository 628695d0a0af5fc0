"""
Job Service
===========

Business logic for a driver's jobs.  All operations use async SQLAlchemy
sessions and follow the same read -> compute -> write pattern:

  - load the row (``SELECT ... FOR UPDATE`` for mutations)
  - convert it once into a ``JobRecord``
  - run the pure engine (profit, overlap, payment, no-show, lifecycle)
  - write the engine-owned fields back and flush

Nothing is committed here; the request-scoped session commits or rolls back
as a whole, so a failed operation never leaves partial state behind.

Key functions:
  - create_job          -- overlap check, initial payment state, job ref
  - update_job          -- field edits, profit recompute, overlap re-check
  - update_job_status / cancel_job / archive_job / restore_job
  - update_payment_status
  - mark_no_show / amend_no_show / revert_no_show
  - get_profit_breakdown
  - backfill_job_refs   -- RYDE<DDMMYYYY>-<N> for legacy rows
"""

from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Callable, Mapping, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ryde.core.config import settings
from ryde.models.job import ACTIVE_STATUSES, Job, JobStatus, PaymentStatus, TimeOfDay
from ryde.services import noShowWorkflow, operatorService
from ryde.services.errors import (
    InsufficientDataError,
    InvalidTransitionError,
    JobNotFoundError,
    JobRefAllocationError,
    PreconditionError,
)
from ryde.services.jobRecord import (
    CostSettings,
    Expense,
    JobRecord,
    OperatorPolicy,
    apply_record_to_model,
    job_from_mapping,
    job_from_model,
)
from ryde.services.jobRefAllocator import (
    BackfillCandidate,
    allocate_job_refs,
    format_job_ref,
    job_ref_prefix,
    max_ref_index,
)
from ryde.services.jobStateManager import validate_transition
from ryde.services.overlapDetector import (
    OverlapResult,
    find_overlapping_jobs,
    find_overlaps_for_job,
)
from ryde.services.parsing import (
    categorize_time_of_day,
    local_today,
    parse_booking_date,
    parse_booking_time,
    parse_duration_minutes,
    parse_money,
)
from ryde.services.paymentStateMachine import (
    TransitionResult,
    apply_payment_transition,
    initial_payment_state,
)
from ryde.services.profitEngine import (
    ExpensePolicy,
    ProfitBreakdown,
    calculate_for_record,
    recompute_profit,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PaginatedResult:
    """Generic container for a page of results plus metadata."""

    items: Sequence
    total_items: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        if self.total_items == 0:
            return 0
        return math.ceil(self.total_items / self.page_size)


@dataclass(frozen=True)
class JobWriteResult:
    """A created or edited job plus anything the driver should be told.

    Overlaps are warnings, not errors: the job is saved regardless.
    """

    job: Job
    overlapping: list[JobRecord] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


# Free-text columns copied straight from the payload
_DESCRIPTIVE_FIELDS: tuple[str, ...] = (
    "pickup",
    "dropoff",
    "vehicle",
    "customer_name",
    "customer_phone",
    "flight_number",
    "distance",
    "duration",
    "operator",
    "notes",
)

_SCHEDULE_FIELDS = frozenset({"booking_date", "booking_time", "duration"})


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _today() -> date:
    return local_today(settings.timezone)


def _expense_policy() -> ExpensePolicy:
    return ExpensePolicy(settings.expense_policy)


def _time_of_day(job: Job) -> Optional[TimeOfDay]:
    if job.booking_time is None:
        return None
    return TimeOfDay(categorize_time_of_day(job.booking_time))


async def _load_job(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    for_update: bool = True,
) -> Job:
    stmt = select(Job).where(Job.id == job_id, Job.user_id == user_id)
    if for_update:
        stmt = stmt.with_for_update()
    job = (await db.execute(stmt)).scalar_one_or_none()
    if job is None:
        raise JobNotFoundError(job_id)
    return job


async def _context(
    db: AsyncSession,
    job: Job,
    costs: Optional[CostSettings],
) -> tuple[JobRecord, Optional[OperatorPolicy], CostSettings]:
    record = job_from_model(job)
    operator = await operatorService.get_operator_policy(db, job.user_id, job.operator)
    return record, operator, costs or settings.cost_settings()


async def _refs_with_prefix(db: AsyncSession, prefix: str) -> list[str]:
    # Global scan: refs are unique across every driver
    stmt = select(Job.job_ref).where(Job.job_ref.like(f"{prefix}-%"))
    return [ref for ref in (await db.execute(stmt)).scalars().all() if ref]


async def _insert_with_ref(
    db: AsyncSession,
    booking_date: date,
    build: Callable[[str], Job],
) -> Job:
    """Insert a new job under the next free reference for *booking_date*.

    Each attempt runs in a SAVEPOINT; losing a race on the unique index moves
    on to the next index.
    """
    prefix = job_ref_prefix(booking_date)
    index = max_ref_index(prefix, await _refs_with_prefix(db, prefix)) + 1

    for _ in range(settings.job_ref_max_attempts):
        job_ref = format_job_ref(prefix, index)
        job = build(job_ref)
        try:
            async with db.begin_nested():
                db.add(job)
            return job
        except IntegrityError:
            logger.warning("Job ref %s already taken, retrying", job_ref)
            index += 1

    raise JobRefAllocationError(prefix, settings.job_ref_max_attempts)


async def _claim_ref(db: AsyncSession, job: Job, job_ref: str) -> str:
    """Assign *job_ref* (or the next free index) to an existing row."""
    prefix, _, raw_index = job_ref.rpartition("-")
    index = int(raw_index)
    job_id = job.id

    for _ in range(settings.job_ref_max_attempts):
        candidate = format_job_ref(prefix, index)
        try:
            async with db.begin_nested():
                job.job_ref = candidate
            return candidate
        except IntegrityError:
            logger.warning("Job ref %s already taken for job %s, retrying", candidate, job_id)
            await db.refresh(job)
            index += 1

    raise JobRefAllocationError(prefix, settings.job_ref_max_attempts)


def _require_date(value: Any) -> date:
    parsed = parse_booking_date(value)
    if parsed is None:
        raise PreconditionError(f"Unrecognised booking date: {value!r}")
    return parsed


def _require_time(value: Any):
    parsed = parse_booking_time(value)
    if parsed is None and value not in (None, ""):
        raise PreconditionError(f"Unrecognised booking time: {value!r}")
    return parsed


async def _active_jobs_on(
    db: AsyncSession,
    user_id: uuid.UUID,
    booking_date: date,
) -> list[JobRecord]:
    stmt = select(Job).where(
        Job.user_id == user_id,
        Job.booking_date == booking_date,
        Job.status.in_(ACTIVE_STATUSES),
    )
    return [job_from_model(job) for job in (await db.execute(stmt)).scalars().all()]


# ---------------------------------------------------------------------------
# Overlap
# ---------------------------------------------------------------------------

async def check_overlap(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    booking_date: Any,
    booking_time: Any,
    duration: Any,
    exclude_job_id: Optional[uuid.UUID] = None,
) -> OverlapResult:
    """Find the driver's active jobs that clash with the given slot."""
    day = parse_booking_date(booking_date)
    start = parse_booking_time(booking_time)
    if day is None or start is None:
        return OverlapResult(overlapping=False)

    others = await _active_jobs_on(db, user_id, day)
    return find_overlapping_jobs(
        day,
        start,
        parse_duration_minutes(duration),
        others,
        exclude_job_id=exclude_job_id,
    )


# ---------------------------------------------------------------------------
# Create / read
# ---------------------------------------------------------------------------

async def create_job(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    data: Mapping[str, Any],
    costs: Optional[CostSettings] = None,
    now: Optional[datetime] = None,
) -> JobWriteResult:
    """Create a job for the driver.

    Args:
        db: Async database session.
        user_id: Owning driver.
        data: Job payload (snake_case or camelCase keys).  A missing booking
            date defaults to today in the configured timezone.
        costs: Cost assumptions; defaults to the configured values.
        now: Clock override.

    Returns:
        The new job, any overlapping active jobs and advisory warnings.

    Raises:
        PreconditionError: Unparsable booking date or time.
        MissingDueDateError: Created as ``payment-scheduled`` without a due
            date or an operator cycle.
        JobRefAllocationError: No free reference could be claimed.
    """
    now = now or _utcnow()
    costs = costs or settings.cost_settings()
    payload = dict(data)

    raw_date = payload.get("booking_date") or payload.get("bookingDate")
    booking_date = _require_date(raw_date) if raw_date else _today()
    booking_time = _require_time(payload.get("booking_time") or payload.get("bookingTime"))
    payload["booking_date"] = booking_date
    payload["booking_time"] = booking_time

    record = job_from_mapping(payload).evolve(user_id=user_id)
    operator = await operatorService.get_operator_policy(db, user_id, record.operator)

    initial = initial_payment_state(
        booking_date,
        record.payment_status,
        operator,
        now,
        due_date=record.payment_due_date,
    )
    record = record.evolve(
        payment_status=initial.status,
        payment_due_date=initial.due_date,
        payment_history=initial.history,
        no_show_at=None,
        original_fare=None,
    )
    record = record.evolve(
        profit=recompute_profit(record, costs, operator, expense_policy=_expense_policy())
    )

    warnings: list[str] = []
    if initial.is_estimate:
        warnings.append(
            f"Payment cycle '{operator.payment_cycle}' not recognised; "
            f"due date estimated as {initial.due_date.isoformat()}."
        )

    overlap = await check_overlap(
        db,
        user_id,
        booking_date=booking_date,
        booking_time=booking_time,
        duration=record.duration_text,
    )

    def build(job_ref: str) -> Job:
        job = Job(
            user_id=user_id,
            job_ref=job_ref,
            booking_date=booking_date,
            booking_time=booking_time,
        )
        for name in _DESCRIPTIVE_FIELDS:
            setattr(job, name, payload.get(name))
        job.distance = record.distance_text or None
        job.duration = record.duration_text or None
        job.time_of_day = _time_of_day(job)
        apply_record_to_model(record, job)
        return job

    job = await _insert_with_ref(db, booking_date, build)

    logger.info(
        "Job created: %s (ref=%s, date=%s, fare=%s, payment=%s, overlaps=%d)",
        job.id,
        job.job_ref,
        booking_date,
        record.fare,
        initial.status.value,
        len(overlap.jobs),
    )
    return JobWriteResult(job=job, overlapping=overlap.jobs, warnings=warnings)


async def get_job(db: AsyncSession, user_id: uuid.UUID, job_id: uuid.UUID) -> Job:
    """Fetch one of the driver's jobs.

    Raises:
        JobNotFoundError: If the job does not exist for this driver.
    """
    return await _load_job(db, user_id, job_id, for_update=False)


async def list_jobs(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    status_filter: Optional[JobStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    page: int = 1,
    page_size: int = 20,
) -> PaginatedResult:
    """Return a paginated list of the driver's jobs.

    Upcoming (``scheduled``) jobs are ordered soonest first; every other view
    is newest first.
    """
    filters = [Job.user_id == user_id]
    if status_filter is not None:
        filters.append(Job.status == status_filter)
    if payment_status is not None:
        filters.append(Job.payment_status == payment_status)

    count_stmt = select(func.count(Job.id)).where(*filters)
    total_items: int = (await db.execute(count_stmt)).scalar_one()

    if status_filter == JobStatus.SCHEDULED:
        ordering = (Job.booking_date.asc(), Job.booking_time.asc())
    else:
        ordering = (Job.created_at.desc(),)

    data_stmt = (
        select(Job)
        .where(*filters)
        .order_by(*ordering)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    jobs = (await db.execute(data_stmt)).scalars().all()

    return PaginatedResult(
        items=jobs,
        total_items=total_items,
        page=page,
        page_size=page_size,
    )


# ---------------------------------------------------------------------------
# Edit / delete
# ---------------------------------------------------------------------------

async def update_job(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    changes: Mapping[str, Any],
    *,
    costs: Optional[CostSettings] = None,
) -> JobWriteResult:
    """Apply a partial edit and recompute the cached profit.

    Status, payment and no-show fields have their own operations and are not
    accepted here.  Editing the date, time or duration re-runs the overlap
    check against the driver's other active jobs.

    Raises:
        JobNotFoundError: If the job does not exist for this driver.
        PreconditionError: Attempt to change the job reference, or an
            unparsable date/time.
    """
    job = await _load_job(db, user_id, job_id)

    new_ref = changes.get("job_ref")
    if new_ref is not None and new_ref != job.job_ref:
        raise PreconditionError("A job reference cannot be changed once assigned.")

    for name in _DESCRIPTIVE_FIELDS:
        if name in changes:
            setattr(job, name, changes[name])

    if "booking_date" in changes:
        job.booking_date = _require_date(changes["booking_date"])
    if "booking_time" in changes:
        job.booking_time = _require_time(changes["booking_time"])
        job.time_of_day = _time_of_day(job)

    if "fare" in changes and changes["fare"] is not None:
        job.fare = parse_money(changes["fare"])
    for name in ("operator_fee", "airport_fee"):
        if name in changes:
            setattr(job, name, changes[name])
    if "include_airport_fee" in changes:
        job.include_airport_fee = bool(changes["include_airport_fee"])
    if "expenses" in changes:
        job.expenses = [
            (item if isinstance(item, Expense) else Expense.from_mapping(item)).to_dict()
            for item in (changes["expenses"] or [])
        ]

    record, operator, costs = await _context(db, job, costs)
    job.profit = recompute_profit(record, costs, operator, expense_policy=_expense_policy())
    await db.flush()

    overlapping: list[JobRecord] = []
    if (
        _SCHEDULE_FIELDS & set(changes)
        and job.status in ACTIVE_STATUSES
        and job.booking_date is not None
    ):
        others = await _active_jobs_on(db, user_id, job.booking_date)
        overlapping = find_overlaps_for_job(record, others).jobs

    logger.info(
        "Job %s updated (%s)",
        job.job_ref or job.id,
        ", ".join(sorted(changes)),
    )
    return JobWriteResult(job=job, overlapping=overlapping)


async def delete_job(db: AsyncSession, user_id: uuid.UUID, job_id: uuid.UUID) -> None:
    job = await _load_job(db, user_id, job_id)
    await db.delete(job)
    await db.flush()
    logger.info("Job deleted: %s (ref=%s)", job_id, job.job_ref)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

async def update_job_status(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    new_status: JobStatus,
    *,
    now: Optional[datetime] = None,
) -> Job:
    """Transition a job to a new lifecycle status.

    Raises:
        JobNotFoundError: If the job does not exist.
        InvalidTransitionError: If the transition is not allowed.
    """
    job = await _load_job(db, user_id, job_id)
    old_status = job.status

    transition_result = validate_transition(old_status, new_status)
    if not transition_result.allowed:
        raise InvalidTransitionError(transition_result.reason or "Transition not allowed.")

    job.status = new_status
    if new_status == JobStatus.CANCELLED:
        job.cancelled_at = now or _utcnow()

    await db.flush()

    logger.info(
        "Job %s transitioned: %s -> %s",
        job.job_ref or job.id,
        old_status.value,
        new_status.value,
    )
    return job


async def cancel_job(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    reason: Optional[str] = None,
    costs: Optional[CostSettings] = None,
    now: Optional[datetime] = None,
) -> Job:
    """Cancel a job with an optional reason.

    Cancelling a no-show turns it into a plain cancellation: the original
    fare is restored and the no-show markers are cleared.

    Raises:
        JobNotFoundError: If the job does not exist.
        InvalidTransitionError: If the job is archived.
    """
    now = now or _utcnow()
    job = await _load_job(db, user_id, job_id)
    old_status = job.status

    if old_status != JobStatus.CANCELLED:
        transition_result = validate_transition(old_status, JobStatus.CANCELLED)
        if not transition_result.allowed:
            raise InvalidTransitionError(transition_result.reason or "Cancellation not allowed.")

    record, operator, costs = await _context(db, job, costs)
    if record.is_no_show and record.original_fare is not None:
        record = noShowWorkflow.revert_no_show(
            record, now=now, settings=costs, operator=operator, expense_policy=_expense_policy()
        )
    record = record.evolve(
        status=JobStatus.CANCELLED,
        no_show_at=None,
        no_show_wait_time=None,
        cancellation_reason=reason,
        cancelled_at=now,
    )
    apply_record_to_model(record, job)
    await db.flush()

    logger.info(
        "Job %s cancelled: %s -> cancelled (reason=%s)",
        job.job_ref or job.id,
        old_status.value,
        reason,
    )
    return job


async def archive_job(db: AsyncSession, user_id: uuid.UUID, job_id: uuid.UUID) -> Job:
    return await update_job_status(db, user_id, job_id, JobStatus.ARCHIVED)


async def restore_job(db: AsyncSession, user_id: uuid.UUID, job_id: uuid.UUID) -> Job:
    """Bring an archived job back as ``scheduled``."""
    job = await _load_job(db, user_id, job_id, for_update=False)
    if job.status != JobStatus.ARCHIVED:
        raise InvalidTransitionError(
            f"Only archived jobs can be restored (job is '{job.status.value}')."
        )
    return await update_job_status(db, user_id, job_id, JobStatus.SCHEDULED)


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

async def update_payment_status(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    new_status: PaymentStatus,
    *,
    due_date: Optional[date] = None,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Job:
    """Move a job to a new payment status and append to its history.

    Automatic due dates only apply at creation; entering
    ``payment-scheduled`` here needs an explicit *due_date*.

    Raises:
        JobNotFoundError: If the job does not exist.
        MissingDueDateError: Scheduling a payment without a due date.
    """
    job = await _load_job(db, user_id, job_id)

    updated = apply_payment_transition(
        job_from_model(job), new_status, now=now or _utcnow(), due_date=due_date, note=note
    )
    apply_record_to_model(updated, job)
    await db.flush()
    return job


# ---------------------------------------------------------------------------
# No-show
# ---------------------------------------------------------------------------

async def check_no_show_eligibility(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    now: Optional[datetime] = None,
) -> TransitionResult:
    job = await _load_job(db, user_id, job_id, for_update=False)
    return noShowWorkflow.check_no_show_eligibility(
        job_from_model(job),
        now or _utcnow(),
        grace_minutes=settings.no_show_grace_minutes,
        tz=settings.timezone,
    )


async def mark_no_show(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    request: noShowWorkflow.NoShowRequest,
    *,
    costs: Optional[CostSettings] = None,
    now: Optional[datetime] = None,
) -> Job:
    """Record a passenger no-show.

    Raises:
        JobNotFoundError: If the job does not exist.
        NoShowNotAllowedError: Not eligible yet, or already a no-show.
    """
    job = await _load_job(db, user_id, job_id)
    record, operator, costs = await _context(db, job, costs)

    updated = noShowWorkflow.mark_no_show(
        record,
        request,
        now=now or _utcnow(),
        settings=costs,
        operator=operator,
        expense_policy=_expense_policy(),
        grace_minutes=settings.no_show_grace_minutes,
        tz=settings.timezone,
    )
    apply_record_to_model(updated, job)
    await db.flush()
    return job


async def amend_no_show(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    request: noShowWorkflow.NoShowRequest,
    *,
    costs: Optional[CostSettings] = None,
    now: Optional[datetime] = None,
) -> Job:
    job = await _load_job(db, user_id, job_id)
    record, operator, costs = await _context(db, job, costs)

    updated = noShowWorkflow.amend_no_show(
        record,
        request,
        now=now or _utcnow(),
        settings=costs,
        operator=operator,
        expense_policy=_expense_policy(),
    )
    apply_record_to_model(updated, job)
    await db.flush()
    return job


async def revert_no_show(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    costs: Optional[CostSettings] = None,
    now: Optional[datetime] = None,
) -> Job:
    """Undo a no-show, restoring the original fare.

    Raises:
        JobNotFoundError: If the job does not exist.
        NoShowRevertError: No original fare was captured.
    """
    job = await _load_job(db, user_id, job_id)
    record, operator, costs = await _context(db, job, costs)

    updated = noShowWorkflow.revert_no_show(
        record,
        now=now or _utcnow(),
        settings=costs,
        operator=operator,
        expense_policy=_expense_policy(),
    )
    apply_record_to_model(updated, job)
    await db.flush()
    return job


# ---------------------------------------------------------------------------
# Profit
# ---------------------------------------------------------------------------

async def get_profit_breakdown(
    db: AsyncSession,
    user_id: uuid.UUID,
    job_id: uuid.UUID,
    *,
    costs: Optional[CostSettings] = None,
    expense_policy: Optional[ExpensePolicy] = None,
) -> ProfitBreakdown:
    """Live profitability figures for a stored job.

    Raises:
        JobNotFoundError: If the job does not exist.
        InsufficientDataError: The job has no fare.
    """
    job = await _load_job(db, user_id, job_id, for_update=False)
    record, operator, costs = await _context(db, job, costs)

    breakdown = calculate_for_record(
        record, costs, operator, expense_policy=expense_policy or _expense_policy()
    )
    if breakdown is None:
        raise InsufficientDataError(
            f"Job {job.job_ref or job.id} has no fare; profitability cannot be calculated."
        )
    return breakdown


# ---------------------------------------------------------------------------
# Job reference backfill
# ---------------------------------------------------------------------------

async def backfill_job_refs(
    db: AsyncSession,
    *,
    user_id: Optional[uuid.UUID] = None,
) -> dict[uuid.UUID, str]:
    """Give every job without a reference its ``RYDE<DDMMYYYY>-<N>`` ref.

    Jobs are numbered per booking date in creation order, continuing from
    the highest reference already issued for that date.

    Returns:
        Mapping of job id to the reference it received.
    """
    filters = [Job.job_ref.is_(None)]
    if user_id is not None:
        filters.append(Job.user_id == user_id)

    stmt = select(Job).where(*filters).order_by(Job.created_at.asc())
    jobs = (await db.execute(stmt)).scalars().all()
    if not jobs:
        logger.info("No jobs need a job ref")
        return {}

    existing: list[str] = []
    for booking_date in {job.booking_date for job in jobs if job.booking_date is not None}:
        existing.extend(await _refs_with_prefix(db, job_ref_prefix(booking_date)))

    candidates = [
        BackfillCandidate(job_id=job.id, booking_date=job.booking_date, created_at=job.created_at)
        for job in jobs
    ]
    planned = allocate_job_refs(candidates, existing)

    assigned: dict[uuid.UUID, str] = {}
    for job in jobs:
        job_id = job.id
        planned_ref = planned.get(job_id)
        if planned_ref is None:
            continue
        assigned[job_id] = await _claim_ref(db, job, planned_ref)

    await db.flush()
    logger.info("Backfilled %d job refs (%d skipped)", len(assigned), len(jobs) - len(assigned))
    return assigned
