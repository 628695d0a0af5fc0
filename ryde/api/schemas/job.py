"""
Pydantic v2 schemas for the Job API
===================================

Request bodies accept booking dates as ``DD/MM/YYYY`` or ISO strings and
trip figures as the free text the trip lookup returns (``"12.4 mi"``,
``"1 hr 15 mins"``); the service layer parses them.  Money is ``Decimal``
throughout.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ryde.models.job import JobStatus, PaymentStatus, TimeOfDay
from ryde.services.jobRecord import Expense, ExpenseType, JobRecord, RefundStatus
from ryde.services.noShowWorkflow import NoShowRequest, PaymentRule


# ---------------------------------------------------------------------------
# Shared pagination
# ---------------------------------------------------------------------------

class PaginationMeta(BaseModel):
    """Pagination metadata included in every paginated response."""

    page: int = Field(ge=1, description="Current page number (1-indexed)")
    page_size: int = Field(ge=1, description="Number of items per page")
    total_items: int = Field(ge=0, description="Total number of matching items")
    total_pages: int = Field(ge=0, description="Total number of pages")


# ---------------------------------------------------------------------------
# Expenses & payment history
# ---------------------------------------------------------------------------

class ExpenseIn(BaseModel):
    type: ExpenseType = ExpenseType.PARKING
    amount: Decimal = Field(ge=0)
    paid_by_driver: bool = True
    refund_status: RefundStatus = RefundStatus.PENDING
    description: Optional[str] = Field(default=None, max_length=500)

    def to_domain(self) -> Expense:
        return Expense(
            amount=self.amount,
            type=self.type,
            paid_by_driver=self.paid_by_driver,
            refund_status=self.refund_status,
            description=self.description,
        )


class ExpenseOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    type: ExpenseType
    amount: Decimal
    paid_by_driver: bool
    refund_status: RefundStatus
    description: Optional[str] = None


class PaymentHistoryEntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: PaymentStatus
    timestamp: datetime
    note: Optional[str] = None


# ---------------------------------------------------------------------------
# Job creation / edit
# ---------------------------------------------------------------------------

class JobFields(BaseModel):
    """Fields shared by create and edit requests."""

    pickup: Optional[str] = Field(default=None, max_length=1000)
    dropoff: Optional[str] = Field(default=None, max_length=1000)
    vehicle: Optional[str] = Field(default=None, max_length=100)
    customer_name: Optional[str] = Field(default=None, max_length=200)
    customer_phone: Optional[str] = Field(default=None, max_length=50)
    flight_number: Optional[str] = Field(default=None, max_length=20)

    distance: Optional[str] = Field(default=None, max_length=50, description='e.g. "6.9 mi"')
    duration: Optional[str] = Field(default=None, max_length=50, description='e.g. "1 hr 15 mins"')
    booking_date: Optional[str] = Field(default=None, description="DD/MM/YYYY or YYYY-MM-DD")
    booking_time: Optional[str] = Field(default=None, description="HH:MM")

    fare: Optional[Decimal] = Field(default=None, ge=0)
    operator: Optional[str] = Field(default=None, max_length=200)
    operator_fee: Optional[Decimal] = Field(
        default=None, ge=0, le=100, description="Commission % for this job"
    )
    include_airport_fee: Optional[bool] = None
    airport_fee: Optional[Decimal] = Field(default=None, ge=0)
    expenses: Optional[list[ExpenseIn]] = None
    notes: Optional[str] = None


class JobCreateRequest(JobFields):
    """Request body for creating a job."""

    # Legacy imports send the fare as a currency string
    price: Optional[str] = Field(default=None, max_length=50, description='e.g. "£60.00"')
    status: JobStatus = JobStatus.SCHEDULED
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_due_date: Optional[date] = None


class JobUpdateRequest(JobFields):
    """Partial edit; only the fields that are sent are changed."""

    job_ref: Optional[str] = None


# ---------------------------------------------------------------------------
# Job output
# ---------------------------------------------------------------------------

class JobOut(BaseModel):
    """Full job representation returned by detail and list endpoints."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    job_ref: Optional[str] = None
    user_id: uuid.UUID

    pickup: Optional[str] = None
    dropoff: Optional[str] = None
    vehicle: Optional[str] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    flight_number: Optional[str] = None
    distance: Optional[str] = None
    duration: Optional[str] = None

    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    time_of_day: Optional[TimeOfDay] = None

    fare: Decimal
    operator: Optional[str] = None
    operator_fee: Optional[Decimal] = None
    include_airport_fee: bool
    airport_fee: Optional[Decimal] = None
    expenses: list[ExpenseOut] = Field(default_factory=list)
    profit: Optional[Decimal] = None

    status: JobStatus
    payment_status: PaymentStatus
    payment_due_date: Optional[date] = None
    payment_history: list[PaymentHistoryEntryOut] = Field(default_factory=list)

    no_show_at: Optional[datetime] = None
    no_show_wait_time: Optional[int] = None
    original_fare: Optional[Decimal] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class OverlappingJobOut(BaseModel):
    """Compact view of a job that clashes with a requested slot."""

    id: Optional[uuid.UUID] = None
    job_ref: Optional[str] = None
    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    duration: str = ""
    duration_minutes: int = 0

    @classmethod
    def from_record(cls, record: JobRecord) -> "OverlappingJobOut":
        return cls(
            id=record.id,
            job_ref=record.job_ref,
            booking_date=record.booking_date,
            booking_time=record.booking_time,
            duration=record.duration_text,
            duration_minutes=record.duration_minutes,
        )


class JobWriteResponse(BaseModel):
    """A created or edited job with scheduling warnings."""

    job: JobOut
    overlapping_jobs: list[OverlappingJobOut] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class JobListResponse(BaseModel):
    """Paginated list of jobs."""

    data: list[JobOut]
    meta: PaginationMeta


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

class JobStatusUpdateRequest(BaseModel):
    new_status: JobStatus


class JobCancelRequest(BaseModel):
    reason: Optional[str] = Field(
        default=None,
        max_length=500,
        description="e.g. 'Customer Cancelled', 'Operator Cancelled', 'Vehicle Breakdown'",
    )


# ---------------------------------------------------------------------------
# Overlap check
# ---------------------------------------------------------------------------

class OverlapCheckRequest(BaseModel):
    booking_date: str
    booking_time: Optional[str] = None
    duration: Optional[str] = None
    exclude_job_id: Optional[uuid.UUID] = None


class OverlapCheckResponse(BaseModel):
    overlapping: bool
    jobs: list[OverlappingJobOut] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Payment
# ---------------------------------------------------------------------------

class PaymentStatusUpdateRequest(BaseModel):
    status: PaymentStatus
    due_date: Optional[date] = Field(
        default=None,
        description="Required for 'payment-scheduled' unless the operator has a payment cycle",
    )
    note: Optional[str] = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# No-show
# ---------------------------------------------------------------------------

class NoShowRequestIn(BaseModel):
    wait_time: Optional[int] = Field(default=None, ge=0, description="Minutes waited")
    notes: Optional[str] = Field(default=None, description="Evidence (calls, messages, photos)")
    payment_rule: PaymentRule = PaymentRule.FULL
    custom_fare: Optional[Decimal] = Field(default=None, ge=0)
    expenses: Optional[list[ExpenseIn]] = None

    def to_domain(self) -> NoShowRequest:
        return NoShowRequest(
            wait_time=self.wait_time,
            notes=self.notes,
            payment_rule=self.payment_rule,
            custom_fare=self.custom_fare,
            expenses=(
                tuple(expense.to_domain() for expense in self.expenses)
                if self.expenses is not None
                else None
            ),
        )


class EligibilityOut(BaseModel):
    allowed: bool
    reason: Optional[str] = None


# ---------------------------------------------------------------------------
# Backfill
# ---------------------------------------------------------------------------

class BackfillResponse(BaseModel):
    updated: int
    job_refs: dict[uuid.UUID, str] = Field(default_factory=dict)
