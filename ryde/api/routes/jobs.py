"""
Job API Routes
==============

REST endpoints for a driver's jobs.  Every route takes the owning driver's
``user_id`` as a query parameter; cost assumptions can be overridden per
request with query parameters (see ``ryde.api.deps.get_cost_settings``).

Routes:
  POST   /api/v1/jobs                               -- Create a job
  GET    /api/v1/jobs                               -- List jobs (paginated)
  POST   /api/v1/jobs/overlap-check                 -- Check a slot for clashes
  POST   /api/v1/jobs/backfill-refs                 -- Assign missing job refs
  GET    /api/v1/jobs/{job_id}                      -- Job detail
  PATCH  /api/v1/jobs/{job_id}                      -- Edit a job
  DELETE /api/v1/jobs/{job_id}                      -- Delete a job
  PATCH  /api/v1/jobs/{job_id}/status               -- Lifecycle transition
  POST   /api/v1/jobs/{job_id}/cancel               -- Cancel with reason
  POST   /api/v1/jobs/{job_id}/archive              -- Archive
  POST   /api/v1/jobs/{job_id}/restore              -- Restore from archive
  POST   /api/v1/jobs/{job_id}/payment-status       -- Payment transition
  GET    /api/v1/jobs/{job_id}/no-show/eligibility  -- Can it be a no-show yet?
  POST   /api/v1/jobs/{job_id}/no-show              -- Mark as no-show
  PATCH  /api/v1/jobs/{job_id}/no-show              -- Amend a no-show
  POST   /api/v1/jobs/{job_id}/no-show/revert       -- Revert a no-show
  GET    /api/v1/jobs/{job_id}/profit               -- Live profit breakdown
"""

from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Query, Response, status

from ryde.api.deps import Costs, DBSession, UserId
from ryde.api.errors import to_http
from ryde.api.schemas.job import (
    BackfillResponse,
    EligibilityOut,
    JobCancelRequest,
    JobCreateRequest,
    JobListResponse,
    JobOut,
    JobStatusUpdateRequest,
    JobUpdateRequest,
    JobWriteResponse,
    NoShowRequestIn,
    OverlapCheckRequest,
    OverlapCheckResponse,
    OverlappingJobOut,
    PaginationMeta,
    PaymentStatusUpdateRequest,
)
from ryde.api.schemas.profit import ProfitBreakdownOut
from ryde.core.config import settings
from ryde.models.job import JobStatus, PaymentStatus
from ryde.services import jobService
from ryde.services.errors import RydeError
from ryde.services.profitEngine import ExpensePolicy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def _write_response(result: jobService.JobWriteResult) -> JobWriteResponse:
    return JobWriteResponse(
        job=JobOut.model_validate(result.job),
        overlapping_jobs=[OverlappingJobOut.from_record(r) for r in result.overlapping],
        warnings=result.warnings,
    )


# ---------------------------------------------------------------------------
# POST /api/v1/jobs -- Create a job
# ---------------------------------------------------------------------------

@router.post(
    "",
    response_model=JobWriteResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a job",
    description=(
        "Creates a job with a RYDE<DDMMYYYY>-<N> reference. Overlapping active "
        "jobs are reported as warnings; the job is saved regardless. Unpaid "
        "jobs for an operator with a payment cycle start as payment-scheduled."
    ),
)
async def create_job(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    body: JobCreateRequest,
) -> JobWriteResponse:
    try:
        result = await jobService.create_job(
            db,
            user_id=user_id,
            data=body.model_dump(exclude_none=True),
            costs=costs,
        )
    except RydeError as exc:
        raise to_http(exc)
    return _write_response(result)


# ---------------------------------------------------------------------------
# GET /api/v1/jobs -- List jobs
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=JobListResponse,
    summary="List jobs",
    description="Scheduled jobs are ordered soonest first; other views newest first.",
)
async def list_jobs(
    db: DBSession,
    user_id: UserId,
    status_filter: Optional[JobStatus] = Query(default=None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=settings.default_page_size, ge=1, le=settings.max_page_size),
) -> JobListResponse:
    result = await jobService.list_jobs(
        db,
        user_id,
        status_filter=status_filter,
        payment_status=payment_status,
        page=page,
        page_size=page_size,
    )
    return JobListResponse(
        data=[JobOut.model_validate(job) for job in result.items],
        meta=PaginationMeta(
            page=result.page,
            page_size=result.page_size,
            total_items=result.total_items,
            total_pages=result.total_pages,
        ),
    )


# ---------------------------------------------------------------------------
# POST /api/v1/jobs/overlap-check
# ---------------------------------------------------------------------------

@router.post(
    "/overlap-check",
    response_model=OverlapCheckResponse,
    summary="Check a slot against the driver's active jobs",
)
async def check_overlap(
    db: DBSession,
    user_id: UserId,
    body: OverlapCheckRequest,
) -> OverlapCheckResponse:
    result = await jobService.check_overlap(
        db,
        user_id,
        booking_date=body.booking_date,
        booking_time=body.booking_time,
        duration=body.duration,
        exclude_job_id=body.exclude_job_id,
    )
    return OverlapCheckResponse(
        overlapping=result.overlapping,
        jobs=[OverlappingJobOut.from_record(r) for r in result.jobs],
    )


# ---------------------------------------------------------------------------
# POST /api/v1/jobs/backfill-refs
# ---------------------------------------------------------------------------

@router.post(
    "/backfill-refs",
    response_model=BackfillResponse,
    summary="Assign references to jobs that have none",
)
async def backfill_job_refs(db: DBSession, user_id: UserId) -> BackfillResponse:
    try:
        assigned = await jobService.backfill_job_refs(db, user_id=user_id)
    except RydeError as exc:
        raise to_http(exc)
    return BackfillResponse(updated=len(assigned), job_refs=assigned)


# ---------------------------------------------------------------------------
# /api/v1/jobs/{job_id}
# ---------------------------------------------------------------------------

@router.get("/{job_id}", response_model=JobOut, summary="Get job detail")
async def get_job(db: DBSession, user_id: UserId, job_id: uuid.UUID) -> JobOut:
    try:
        job = await jobService.get_job(db, user_id, job_id)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


@router.patch(
    "/{job_id}",
    response_model=JobWriteResponse,
    summary="Edit a job",
    description=(
        "Partial edit. Profit is recomputed; changing the date, time or "
        "duration re-runs the overlap check. The job reference cannot change."
    ),
)
async def update_job(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    job_id: uuid.UUID,
    body: JobUpdateRequest,
) -> JobWriteResponse:
    try:
        result = await jobService.update_job(
            db,
            user_id,
            job_id,
            body.model_dump(exclude_unset=True),
            costs=costs,
        )
    except RydeError as exc:
        raise to_http(exc)
    return _write_response(result)


@router.delete(
    "/{job_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete a job",
)
async def delete_job(db: DBSession, user_id: UserId, job_id: uuid.UUID) -> Response:
    try:
        await jobService.delete_job(db, user_id, job_id)
    except RydeError as exc:
        raise to_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@router.patch(
    "/{job_id}/status",
    response_model=JobOut,
    summary="Change the job's lifecycle status",
    description="Archived jobs can only move back to 'scheduled'.",
)
async def update_job_status(
    db: DBSession,
    user_id: UserId,
    job_id: uuid.UUID,
    body: JobStatusUpdateRequest,
) -> JobOut:
    try:
        job = await jobService.update_job_status(db, user_id, job_id, body.new_status)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


@router.post("/{job_id}/cancel", response_model=JobOut, summary="Cancel a job")
async def cancel_job(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    job_id: uuid.UUID,
    body: JobCancelRequest,
) -> JobOut:
    try:
        job = await jobService.cancel_job(db, user_id, job_id, reason=body.reason, costs=costs)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


@router.post("/{job_id}/archive", response_model=JobOut, summary="Archive a job")
async def archive_job(db: DBSession, user_id: UserId, job_id: uuid.UUID) -> JobOut:
    try:
        job = await jobService.archive_job(db, user_id, job_id)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


@router.post("/{job_id}/restore", response_model=JobOut, summary="Restore an archived job")
async def restore_job(db: DBSession, user_id: UserId, job_id: uuid.UUID) -> JobOut:
    try:
        job = await jobService.restore_job(db, user_id, job_id)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

@router.post(
    "/{job_id}/payment-status",
    response_model=JobOut,
    summary="Change the job's payment status",
    description=(
        "Any payment status may follow any other. 'payment-scheduled' needs a "
        "due date, either in the body or from the operator's payment cycle."
    ),
)
async def update_payment_status(
    db: DBSession,
    user_id: UserId,
    job_id: uuid.UUID,
    body: PaymentStatusUpdateRequest,
) -> JobOut:
    try:
        job = await jobService.update_payment_status(
            db,
            user_id,
            job_id,
            body.status,
            due_date=body.due_date,
            note=body.note,
        )
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


# ---------------------------------------------------------------------------
# No-show
# ---------------------------------------------------------------------------

@router.get(
    "/{job_id}/no-show/eligibility",
    response_model=EligibilityOut,
    summary="Can the job be marked as a no-show now?",
)
async def no_show_eligibility(db: DBSession, user_id: UserId, job_id: uuid.UUID) -> EligibilityOut:
    try:
        result = await jobService.check_no_show_eligibility(db, user_id, job_id)
    except RydeError as exc:
        raise to_http(exc)
    return EligibilityOut(allowed=result.allowed, reason=result.reason)


@router.post("/{job_id}/no-show", response_model=JobOut, summary="Mark as no-show")
async def mark_no_show(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    job_id: uuid.UUID,
    body: NoShowRequestIn,
) -> JobOut:
    try:
        job = await jobService.mark_no_show(db, user_id, job_id, body.to_domain(), costs=costs)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


@router.patch("/{job_id}/no-show", response_model=JobOut, summary="Amend a no-show")
async def amend_no_show(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    job_id: uuid.UUID,
    body: NoShowRequestIn,
) -> JobOut:
    try:
        job = await jobService.amend_no_show(db, user_id, job_id, body.to_domain(), costs=costs)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


@router.post("/{job_id}/no-show/revert", response_model=JobOut, summary="Revert a no-show")
async def revert_no_show(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    job_id: uuid.UUID,
) -> JobOut:
    try:
        job = await jobService.revert_no_show(db, user_id, job_id, costs=costs)
    except RydeError as exc:
        raise to_http(exc)
    return JobOut.model_validate(job)


# ---------------------------------------------------------------------------
# Profit
# ---------------------------------------------------------------------------

@router.get(
    "/{job_id}/profit",
    response_model=ProfitBreakdownOut,
    summary="Live profitability breakdown",
    description="Returns 422 when the job has no fare.",
)
async def get_profit(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    job_id: uuid.UUID,
    expense_policy: Optional[ExpensePolicy] = Query(default=None),
) -> ProfitBreakdownOut:
    try:
        breakdown = await jobService.get_profit_breakdown(
            db, user_id, job_id, costs=costs, expense_policy=expense_policy
        )
    except RydeError as exc:
        raise to_http(exc)
    return ProfitBreakdownOut.model_validate(breakdown)
