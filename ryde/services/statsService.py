"""
Earnings statistics for the driver dashboard.

Figures cover completed jobs only.  Revenue is the sum of fares; profit uses
each job's cached ``profit`` (jobs with no cached profit count as zero).

  - get_stats_summary     -- month-to-date totals and revenue trend
  - get_operator_stats    -- totals per operator
  - get_earnings_history  -- revenue/profit series for the earnings chart
  - get_export_rows       -- completed jobs in a booking-date range for reports
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass
from datetime import date, time, timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ryde.core.config import settings
from ryde.models.job import Job, JobStatus, PaymentStatus
from ryde.services import operatorService
from ryde.services.jobRecord import CostSettings, OperatorPolicy, job_from_model
from ryde.services.parsing import (
    ZERO,
    local_today,
    parse_distance,
    parse_duration_minutes,
    round_money,
)
from ryde.services.profitEngine import resolve_airport_fee, resolve_commission_rate

logger = logging.getLogger(__name__)


class EarningsRange(str, enum.Enum):
    WEEK = "7d"
    MONTH = "30d"
    YEAR = "12m"


_RANGE_DAYS = {
    EarningsRange.WEEK: 7,
    EarningsRange.MONTH: 30,
}


@dataclass(frozen=True)
class StatsSummary:
    revenue: Decimal
    revenue_trend: Decimal        # % change vs last month, 0 without history
    profit: Decimal
    jobs: int
    distance: Decimal
    hourly_rate: Decimal
    period_start: date


@dataclass(frozen=True)
class OperatorStats:
    operator: Optional[str]
    jobs: int
    revenue: Decimal
    profit: Decimal
    outstanding: Decimal          # fares not yet marked paid


@dataclass(frozen=True)
class EarningsPoint:
    label: str                    # "dd/mm" per day, "Mon" per month
    period_start: date
    revenue: Decimal
    profit: Decimal


@dataclass(frozen=True)
class ExportRow:
    booking_date: date
    booking_time: Optional[time]
    job_ref: Optional[str]
    vehicle: Optional[str]
    operator: Optional[str]
    pickup: Optional[str]
    dropoff: Optional[str]
    price: Decimal
    operator_fee: Decimal         # amount, not the percentage
    airport_fee: Decimal
    profit: Decimal
    payment_status: PaymentStatus


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _add_months(day: date, months: int) -> date:
    index = day.year * 12 + (day.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


async def get_stats_summary(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    today: Optional[date] = None,
) -> StatsSummary:
    """Month-to-date earnings with a revenue trend against last month."""
    today = today or local_today(settings.timezone)
    month_start = _month_start(today)
    last_month_start = _add_months(month_start, -1)

    stmt = select(Job).where(
        Job.user_id == user_id,
        Job.status == JobStatus.COMPLETED,
        Job.booking_date >= last_month_start,
    )
    jobs = (await db.execute(stmt)).scalars().all()

    revenue = ZERO
    profit = ZERO
    count = 0
    distance = ZERO
    minutes = 0
    last_month_revenue = ZERO

    for job in jobs:
        fare = job.fare or ZERO
        if job.booking_date >= month_start:
            revenue += fare
            profit += job.profit or ZERO
            count += 1
            distance += parse_distance(job.distance)
            minutes += parse_duration_minutes(job.duration)
        else:
            last_month_revenue += fare

    hourly_rate = revenue / (Decimal(minutes) / 60) if minutes > 0 else ZERO
    if last_month_revenue > 0:
        trend = (revenue - last_month_revenue) / last_month_revenue * 100
    else:
        trend = ZERO

    return StatsSummary(
        revenue=round_money(revenue),
        revenue_trend=round_money(trend),
        profit=round_money(profit),
        jobs=count,
        distance=distance,
        hourly_rate=round_money(hourly_rate),
        period_start=month_start,
    )


async def get_operator_stats(db: AsyncSession, user_id: uuid.UUID) -> list[OperatorStats]:
    """Completed-job totals per operator, highest revenue first."""
    outstanding = func.sum(
        case((Job.payment_status != PaymentStatus.PAID, Job.fare), else_=0)
    )
    stmt = (
        select(
            Job.operator,
            func.count(Job.id),
            func.sum(Job.fare),
            func.sum(Job.profit),
            outstanding,
        )
        .where(Job.user_id == user_id, Job.status == JobStatus.COMPLETED)
        .group_by(Job.operator)
        .order_by(func.sum(Job.fare).desc())
    )
    rows = (await db.execute(stmt)).all()

    return [
        OperatorStats(
            operator=operator,
            jobs=jobs,
            revenue=round_money(Decimal(str(revenue or 0))),
            profit=round_money(Decimal(str(profit or 0))),
            outstanding=round_money(Decimal(str(unpaid or 0))),
        )
        for operator, jobs, revenue, profit, unpaid in rows
    ]


async def get_earnings_history(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    period: EarningsRange = EarningsRange.MONTH,
    today: Optional[date] = None,
) -> list[EarningsPoint]:
    """Revenue and profit of completed jobs bucketed for the earnings chart.

    ``7d`` and ``30d`` give one point per day from *today* minus the range up
    to *today*; ``12m`` gives one point per calendar month for the last
    twelve months including the current one.  Empty buckets are kept so the
    series has no gaps.
    """
    today = today or local_today(settings.timezone)

    if period == EarningsRange.YEAR:
        first = _add_months(_month_start(today), -11)
        starts = [_add_months(first, offset) for offset in range(12)]
        label_format = "%b"
    else:
        first = today - timedelta(days=_RANGE_DAYS[period])
        starts = [first + timedelta(days=offset) for offset in range((today - first).days + 1)]
        label_format = "%d/%m"

    buckets: dict[date, list[Decimal]] = {start: [ZERO, ZERO] for start in starts}

    stmt = select(Job.booking_date, Job.fare, Job.profit).where(
        Job.user_id == user_id,
        Job.status == JobStatus.COMPLETED,
        Job.booking_date >= first,
        Job.booking_date <= today,
    )
    for booking_date, fare, profit in (await db.execute(stmt)).all():
        key = _month_start(booking_date) if period == EarningsRange.YEAR else booking_date
        totals = buckets[key]
        totals[0] += fare or ZERO
        totals[1] += profit or ZERO

    return [
        EarningsPoint(
            label=start.strftime(label_format),
            period_start=start,
            revenue=round_money(revenue),
            profit=round_money(profit),
        )
        for start, (revenue, profit) in buckets.items()
    ]


async def get_export_rows(
    db: AsyncSession,
    user_id: uuid.UUID,
    *,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    costs: Optional[CostSettings] = None,
) -> list[ExportRow]:
    """Completed jobs booked between *date_from* and *date_to* (inclusive),
    newest first, with the fee amounts a report needs.

    Jobs without a booking date are left out.
    """
    costs = costs or settings.cost_settings()

    filters = [
        Job.user_id == user_id,
        Job.status == JobStatus.COMPLETED,
        Job.booking_date.is_not(None),
    ]
    if date_from is not None:
        filters.append(Job.booking_date >= date_from)
    if date_to is not None:
        filters.append(Job.booking_date <= date_to)

    stmt = (
        select(Job)
        .where(*filters)
        .order_by(Job.booking_date.desc(), Job.booking_time.desc())
    )
    jobs = (await db.execute(stmt)).scalars().all()

    policies: dict[str, OperatorPolicy] = {
        operator.name: OperatorPolicy.from_model(operator)
        for operator in await operatorService.list_operators(db, user_id)
    }

    rows: list[ExportRow] = []
    for job in jobs:
        record = job_from_model(job)
        operator = policies.get(job.operator) if job.operator else None
        rate = resolve_commission_rate(record, costs, operator)
        operator_fee = round_money(record.fare * rate / 100)
        airport_fee = round_money(resolve_airport_fee(record, costs))
        profit = record.profit
        if profit is None:
            profit = record.fare - operator_fee - airport_fee

        rows.append(
            ExportRow(
                booking_date=job.booking_date,
                booking_time=job.booking_time,
                job_ref=job.job_ref,
                vehicle=job.vehicle,
                operator=job.operator,
                pickup=job.pickup,
                dropoff=job.dropoff,
                price=round_money(record.fare),
                operator_fee=operator_fee,
                airport_fee=airport_fee,
                profit=round_money(profit),
                payment_status=job.payment_status,
            )
        )

    logger.info("Export for %s: %d completed jobs (%s to %s)", user_id, len(rows), date_from, date_to)
    return rows
