"""
Canonical in-memory job types and the boundary adapter.

Jobs reach the backend in several shapes: API payloads, rows from the
``jobs`` table, and legacy imports where the fare is sometimes a number,
sometimes a currency string and sometimes stored under ``parsedPrice`` or
``price``.  Everything is normalised *here*, once, into a frozen
``JobRecord``; the profit engine, overlap detector, payment state machine and
no-show workflow only ever see ``JobRecord`` values.

``PaymentHistory`` is an immutable sequence: ``append`` returns a new history
and there is no way to rewrite or drop an entry.
"""

from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable, Iterator, Mapping, Optional

from ryde.models.job import JobStatus, PaymentStatus
from ryde.services.parsing import (
    ZERO,
    parse_booking_date,
    parse_booking_time,
    parse_distance,
    parse_duration_minutes,
    parse_money,
    to_decimal,
)


# ---------------------------------------------------------------------------
# Expenses
# ---------------------------------------------------------------------------

class ExpenseType(str, enum.Enum):
    PARKING = "Parking"
    OTHER = "Other"


class RefundStatus(str, enum.Enum):
    PENDING = "Pending"
    REFUNDED_BY_OPERATOR = "Refunded by Operator"
    REFUNDED_BY_VIP = "Refunded by VIP"
    NON_REFUNDABLE = "Non-refundable"


_REFUNDED: frozenset[RefundStatus] = frozenset({
    RefundStatus.REFUNDED_BY_OPERATOR,
    RefundStatus.REFUNDED_BY_VIP,
})


@dataclass(frozen=True)
class Expense:
    """A reimbursable expense recorded against a job."""
    amount: Decimal
    type: ExpenseType = ExpenseType.PARKING
    paid_by_driver: bool = True
    refund_status: RefundStatus = RefundStatus.PENDING
    description: Optional[str] = None

    @property
    def is_refunded(self) -> bool:
        return self.refund_status in _REFUNDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "amount": str(self.amount),
            "paid_by_driver": self.paid_by_driver,
            "refund_status": self.refund_status.value,
            "description": self.description,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Expense":
        paid_by_driver = _first(data, "paid_by_driver", "paidByDriver")
        refund_status = _first(data, "refund_status", "refundStatus")
        return cls(
            amount=parse_money(data.get("amount")),
            type=ExpenseType(data.get("type") or ExpenseType.PARKING.value),
            paid_by_driver=True if paid_by_driver is None else bool(paid_by_driver),
            refund_status=RefundStatus(refund_status or RefundStatus.PENDING.value),
            description=data.get("description"),
        )


# ---------------------------------------------------------------------------
# Payment audit trail
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PaymentHistoryEntry:
    status: PaymentStatus
    timestamp: datetime
    note: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "note": self.note,
        }

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PaymentHistoryEntry":
        # Older records used "date" / "notes"
        stamp = _first(data, "timestamp", "date")
        if isinstance(stamp, str):
            stamp = datetime.fromisoformat(stamp.replace("Z", "+00:00"))
        return cls(
            status=PaymentStatus(data["status"]),
            timestamp=stamp,
            note=_first(data, "note", "notes"),
        )


@dataclass(frozen=True)
class PaymentHistory:
    """Append-only log of payment status changes."""
    entries: tuple[PaymentHistoryEntry, ...] = ()

    def append(self, entry: PaymentHistoryEntry) -> "PaymentHistory":
        return PaymentHistory(entries=self.entries + (entry,))

    @property
    def last(self) -> Optional[PaymentHistoryEntry]:
        return self.entries[-1] if self.entries else None

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[PaymentHistoryEntry]:
        return iter(self.entries)

    def __getitem__(self, index: int) -> PaymentHistoryEntry:
        return self.entries[index]

    def to_list(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.entries]

    @classmethod
    def from_list(cls, items: Optional[Iterable[Mapping[str, Any]]]) -> "PaymentHistory":
        return cls(entries=tuple(
            PaymentHistoryEntry.from_mapping(item) for item in (items or [])
        ))


# ---------------------------------------------------------------------------
# Cost assumptions and operator policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CostSettings:
    """Driver cost assumptions used by the profit engine."""
    fuel_price: Decimal          # per litre
    fuel_efficiency: Decimal     # miles per gallon
    maintenance_cost: Decimal    # per mile
    operator_fee: Decimal        # default commission percentage
    airport_fee: Decimal         # default fixed fee
    target_profit: Decimal       # profit per mile that makes a job worth it

    def __post_init__(self) -> None:
        if self.fuel_efficiency <= 0:
            raise ValueError("fuel_efficiency must be greater than zero.")


@dataclass(frozen=True)
class OperatorPolicy:
    """Commission and payment-cycle policy of a booking operator."""
    name: str
    charges_commission: bool = False
    commission_rate: Optional[Decimal] = None
    payment_cycle: Optional[str] = None

    @classmethod
    def from_model(cls, operator: Any) -> "OperatorPolicy":
        return cls(
            name=operator.name,
            charges_commission=bool(operator.charges_commission),
            commission_rate=to_decimal(operator.commission_rate),
            payment_cycle=operator.payment_cycle or None,
        )


# ---------------------------------------------------------------------------
# Job record
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class JobRecord:
    """The canonical job shape consumed by the engine."""
    id: Optional[uuid.UUID] = None
    user_id: Optional[uuid.UUID] = None
    job_ref: Optional[str] = None

    booking_date: Optional[date] = None
    booking_time: Optional[time] = None
    duration_minutes: int = 0
    duration_text: str = ""

    distance: Decimal = ZERO
    distance_text: str = ""

    fare: Decimal = ZERO
    operator: Optional[str] = None
    operator_fee: Optional[Decimal] = None
    include_airport_fee: bool = False
    airport_fee: Optional[Decimal] = None
    expenses: tuple[Expense, ...] = ()

    status: JobStatus = JobStatus.SCHEDULED
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_due_date: Optional[date] = None
    payment_history: PaymentHistory = field(default_factory=PaymentHistory)

    no_show_at: Optional[datetime] = None
    no_show_wait_time: Optional[int] = None
    original_fare: Optional[Decimal] = None
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None

    notes: Optional[str] = None
    profit: Optional[Decimal] = None
    created_at: Optional[datetime] = None

    @property
    def is_no_show(self) -> bool:
        return self.no_show_at is not None

    def evolve(self, **changes: Any) -> "JobRecord":
        return replace(self, **changes)


# Fields written back to the ORM row after an engine operation
_MUTABLE_FIELDS: tuple[str, ...] = (
    "fare",
    "operator_fee",
    "include_airport_fee",
    "airport_fee",
    "status",
    "payment_status",
    "payment_due_date",
    "no_show_at",
    "no_show_wait_time",
    "original_fare",
    "cancellation_reason",
    "cancelled_at",
    "notes",
    "profit",
)


def _first(data: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def resolve_fare(data: Mapping[str, Any]) -> Decimal:
    """Pick the fare from a loosely-shaped job mapping.

    Priority: numeric ``fare`` -> numeric ``parsed_price`` / ``parsedPrice``
    -> numeric ``price`` -> currency-formatted ``price`` string.  Zero values
    fall through to the next candidate.
    """
    for key in ("fare", "parsed_price", "parsedPrice", "price"):
        number = to_decimal(data.get(key))
        if number is not None and number != 0:
            return number
    price = data.get("price")
    if isinstance(price, str):
        return parse_money(price)
    return ZERO


def job_from_mapping(data: Mapping[str, Any]) -> JobRecord:
    """Normalise a snake_case or camelCase job mapping into a ``JobRecord``."""
    distance_text = _first(data, "distance") or ""
    duration_text = _first(data, "duration") or ""
    raw_status = _first(data, "status")
    raw_payment = _first(data, "payment_status", "paymentStatus")

    return JobRecord(
        id=_first(data, "id", "_id"),
        user_id=_first(data, "user_id", "userId"),
        job_ref=_first(data, "job_ref", "jobRef"),
        booking_date=parse_booking_date(_first(data, "booking_date", "bookingDate")),
        booking_time=parse_booking_time(_first(data, "booking_time", "bookingTime")),
        duration_minutes=parse_duration_minutes(duration_text),
        duration_text=str(duration_text),
        distance=parse_distance(distance_text),
        distance_text=str(distance_text),
        fare=resolve_fare(data),
        operator=_first(data, "operator"),
        operator_fee=to_decimal(_first(data, "operator_fee", "operatorFee")),
        include_airport_fee=bool(_first(data, "include_airport_fee", "includeAirportFee")),
        airport_fee=to_decimal(_first(data, "airport_fee", "airportFee")),
        expenses=tuple(
            item if isinstance(item, Expense) else Expense.from_mapping(item)
            for item in (_first(data, "expenses") or [])
        ),
        status=JobStatus(raw_status) if raw_status else JobStatus.SCHEDULED,
        payment_status=PaymentStatus(raw_payment) if raw_payment else PaymentStatus.UNPAID,
        payment_due_date=parse_booking_date(_first(data, "payment_due_date", "paymentDueDate")),
        payment_history=PaymentHistory.from_list(
            _first(data, "payment_history", "paymentHistory")
        ),
        no_show_at=_first(data, "no_show_at", "noShowAt"),
        no_show_wait_time=_first(data, "no_show_wait_time", "noShowWaitTime"),
        original_fare=to_decimal(_first(data, "original_fare", "originalFare")),
        cancellation_reason=_first(data, "cancellation_reason", "cancellationReason"),
        cancelled_at=_first(data, "cancelled_at", "cancelledAt"),
        notes=_first(data, "notes"),
        profit=to_decimal(_first(data, "profit")),
        created_at=_first(data, "created_at", "createdAt"),
    )


def job_from_model(job: Any) -> JobRecord:
    """Build a ``JobRecord`` from a ``ryde.models.Job`` row."""
    return JobRecord(
        id=job.id,
        user_id=job.user_id,
        job_ref=job.job_ref,
        booking_date=job.booking_date,
        booking_time=job.booking_time,
        duration_minutes=parse_duration_minutes(job.duration),
        duration_text=job.duration or "",
        distance=parse_distance(job.distance),
        distance_text=job.distance or "",
        fare=to_decimal(job.fare) or ZERO,
        operator=job.operator,
        operator_fee=to_decimal(job.operator_fee),
        include_airport_fee=bool(job.include_airport_fee),
        airport_fee=to_decimal(job.airport_fee),
        expenses=tuple(Expense.from_mapping(item) for item in (job.expenses or [])),
        status=job.status,
        payment_status=job.payment_status,
        payment_due_date=job.payment_due_date,
        payment_history=PaymentHistory.from_list(job.payment_history),
        no_show_at=job.no_show_at,
        no_show_wait_time=job.no_show_wait_time,
        original_fare=to_decimal(job.original_fare),
        cancellation_reason=job.cancellation_reason,
        cancelled_at=job.cancelled_at,
        notes=job.notes,
        profit=to_decimal(job.profit),
        created_at=job.created_at,
    )


def apply_record_to_model(record: JobRecord, job: Any) -> None:
    """Copy the engine-owned fields of *record* onto an ORM row.

    Expenses and payment history are written as fresh lists so SQLAlchemy
    picks up the change on the JSON columns.
    """
    for name in _MUTABLE_FIELDS:
        setattr(job, name, getattr(record, name))
    job.expenses = [expense.to_dict() for expense in record.expenses]
    job.payment_history = record.payment_history.to_list()
