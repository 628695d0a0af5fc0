"""
SQLAlchemy model for a driver's transport jobs.

Expenses and the payment audit trail are stored as JSON lists; the service
layer converts them to the immutable in-memory types in
``ryde.services.jobRecord`` before any engine code sees them.
"""

import enum
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class JobStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    PAID = "paid"
    PAYMENT_SCHEDULED = "payment-scheduled"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class TimeOfDay(str, enum.Enum):
    MIDNIGHT = "midnight"
    DAY = "day"
    EVENING = "evening"


# Only these lifecycle statuses can block a schedule slot
ACTIVE_STATUSES: frozenset[JobStatus] = frozenset({
    JobStatus.SCHEDULED,
    JobStatus.IN_PROGRESS,
})


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


class Job(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "jobs"
    __table_args__ = (
        Index("ix_jobs_user_booking_date", "user_id", "booking_date"),
    )

    # Human-readable reference, RYDE<DDMMYYYY>-<N>
    job_ref: Mapped[Optional[str]] = mapped_column(
        String(32), unique=True, nullable=True
    )

    # Owning driver
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True
    )

    # Trip
    pickup: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    dropoff: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    vehicle: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    customer_phone: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    flight_number: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    distance: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    duration: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    # Scheduling
    booking_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    booking_time: Mapped[Optional[time]] = mapped_column(Time, nullable=True)
    time_of_day: Mapped[Optional[TimeOfDay]] = mapped_column(
        Enum(
            TimeOfDay,
            name="time_of_day",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=True,
        index=True,
    )

    # Financials
    fare: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    operator: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    operator_fee: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    include_airport_fee: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    airport_fee: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    expenses: Mapped[Any] = mapped_column(JSON, nullable=False, default=list)
    profit: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    # Lifecycle
    status: Mapped[JobStatus] = mapped_column(
        Enum(
            JobStatus,
            name="job_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=JobStatus.SCHEDULED,
    )

    # Payment
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(
            PaymentStatus,
            name="payment_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PaymentStatus.UNPAID,
        index=True,
    )
    payment_due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_history: Mapped[Any] = mapped_column(JSON, nullable=False, default=list)

    # No-show / cancellation
    no_show_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    no_show_wait_time: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    original_fare: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Job(id={self.id}, ref={self.job_ref}, "
            f"status={self.status}, payment={self.payment_status})>"
        )
