"""
Profit Engine
=============

Works out whether a job is worth taking once every cost is netted out:

- Fuel: settings price is per litre, efficiency is miles per gallon, so the
  per-gallon price is ``fuel_price * LITRE_PER_GALLON``
- Maintenance: flat rate per mile
- Operator commission: job override -> operator policy -> driver default
- Airport fee: only when the job opts in
- Reimbursable expenses: summed according to an explicit ``ExpensePolicy``

Profitability is undefined without a fare, so a zero fare returns ``None``
("insufficient data") instead of a misleading negative figure.  A zero or
unparsable distance is replaced by ``MINIMUM_DISTANCE`` so per-mile ratios
stay finite; the breakdown carries an advisory when that happens.

All arithmetic is ``Decimal``; nothing here reads module-level settings.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

from ryde.services.jobRecord import CostSettings, Expense, JobRecord, OperatorPolicy
from ryde.services.parsing import (
    ZERO,
    parse_distance,
    parse_duration_minutes,
    round_money,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Imperial gallon
LITRE_PER_GALLON = Decimal("4.546")

# Stand-in distance for zero / unparsable trips
MINIMUM_DISTANCE = Decimal("0.1")

MINIMUM_DISTANCE_ADVISORY = (
    "Distance missing or zero: costs use a minimum of 0.1 miles and are "
    "an approximation."
)


class ExpensePolicy(str, enum.Enum):
    """Which recorded expenses reduce profit."""
    ALL = "all"
    EXCLUDE_REFUNDED = "exclude_refunded"
    DRIVER_PAID_UNREFUNDED = "driver_paid_unrefunded"


# ---------------------------------------------------------------------------
# Result DTO
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ProfitBreakdown:
    """Full profitability breakdown for one job."""
    fare: Decimal
    distance: Decimal
    effective_distance: Decimal
    duration_minutes: int

    commission_rate: Decimal
    fuel_cost: Decimal
    maintenance_cost: Decimal
    operator_fee_amount: Decimal
    airport_fee: Decimal
    total_expenses: Decimal
    total_trip_cost: Decimal

    total_profit: Decimal
    profit_per_mile: Decimal
    hourly_rate: Decimal
    minute_rate: Decimal
    mile_rate: Decimal
    worth_it: bool

    used_minimum_distance: bool = False
    advisories: tuple[str, ...] = field(default_factory=tuple)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def resolve_commission_rate(
    job: JobRecord,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
) -> Decimal:
    """Effective commission percentage for *job*.

    Priority: the job's own ``operator_fee`` -> the operator's
    ``commission_rate`` when it charges commission -> the driver default.
    """
    if job.operator_fee is not None:
        return job.operator_fee
    if operator is not None and operator.charges_commission:
        return operator.commission_rate if operator.commission_rate is not None else ZERO
    return settings.operator_fee


def resolve_airport_fee(job: JobRecord, settings: CostSettings) -> Decimal:
    if not job.include_airport_fee:
        return ZERO
    if job.airport_fee is not None:
        return job.airport_fee
    return settings.airport_fee


def total_expenses(
    expenses: tuple[Expense, ...],
    policy: ExpensePolicy = ExpensePolicy.ALL,
) -> Decimal:
    """Sum the expenses that count as a cost under *policy*."""
    if policy == ExpensePolicy.EXCLUDE_REFUNDED:
        counted = [e for e in expenses if not e.is_refunded]
    elif policy == ExpensePolicy.DRIVER_PAID_UNREFUNDED:
        counted = [e for e in expenses if e.paid_by_driver and not e.is_refunded]
    else:
        counted = list(expenses)
    return sum((e.amount for e in counted), ZERO)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def calculate_job_profit(
    job: JobRecord,
    distance: Any,
    duration: Any,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
    *,
    expense_policy: ExpensePolicy = ExpensePolicy.ALL,
) -> Optional[ProfitBreakdown]:
    """Calculate the profitability breakdown for a job.

    Args:
        job: Canonical job snapshot (fare, commission, airport fee, expenses).
        distance: Trip distance, either text from the trip lookup
            (``"6.9 mi"``) or a number.
        duration: Trip duration, either text (``"1 hr 15 mins"``) or minutes.
        settings: Driver cost assumptions.
        operator: Policy of the job's operator, if known.
        expense_policy: Which expenses reduce profit.

    Returns:
        A ``ProfitBreakdown``, or ``None`` when the fare is zero.
    """
    fare = job.fare
    if fare == 0:
        return None

    raw_distance = parse_distance(distance)
    duration_minutes = parse_duration_minutes(duration)

    advisories: list[str] = []
    used_minimum = raw_distance <= 0
    effective_distance = MINIMUM_DISTANCE if used_minimum else raw_distance
    if used_minimum:
        advisories.append(MINIMUM_DISTANCE_ADVISORY)

    commission_rate = resolve_commission_rate(job, settings, operator)
    operator_fee_amount = fare * (commission_rate / Decimal("100"))

    fuel_price_per_gallon = settings.fuel_price * LITRE_PER_GALLON
    fuel_cost = (effective_distance / settings.fuel_efficiency) * fuel_price_per_gallon
    maintenance_cost = effective_distance * settings.maintenance_cost

    airport_fee = resolve_airport_fee(job, settings)
    expenses = total_expenses(job.expenses, expense_policy)

    total_trip_cost = fuel_cost + maintenance_cost + operator_fee_amount + airport_fee + expenses
    total_profit = fare - total_trip_cost

    profit_per_mile = total_profit / effective_distance
    if duration_minutes > 0:
        minute_rate = total_profit / Decimal(duration_minutes)
        hourly_rate = minute_rate * 60
    else:
        minute_rate = ZERO
        hourly_rate = ZERO
    mile_rate = fare / raw_distance if raw_distance > 0 else ZERO

    return ProfitBreakdown(
        fare=fare,
        distance=raw_distance,
        effective_distance=effective_distance,
        duration_minutes=duration_minutes,
        commission_rate=commission_rate,
        fuel_cost=fuel_cost,
        maintenance_cost=maintenance_cost,
        operator_fee_amount=operator_fee_amount,
        airport_fee=airport_fee,
        total_expenses=expenses,
        total_trip_cost=total_trip_cost,
        total_profit=total_profit,
        profit_per_mile=profit_per_mile,
        hourly_rate=hourly_rate,
        minute_rate=minute_rate,
        mile_rate=mile_rate,
        worth_it=profit_per_mile >= settings.target_profit,
        used_minimum_distance=used_minimum,
        advisories=tuple(advisories),
    )


def calculate_for_record(
    job: JobRecord,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
    *,
    expense_policy: ExpensePolicy = ExpensePolicy.ALL,
) -> Optional[ProfitBreakdown]:
    """Same as :func:`calculate_job_profit` using the job's own trip figures."""
    return calculate_job_profit(
        job,
        job.distance,
        job.duration_minutes,
        settings,
        operator,
        expense_policy=expense_policy,
    )


def recompute_profit(
    job: JobRecord,
    settings: CostSettings,
    operator: Optional[OperatorPolicy] = None,
    *,
    expense_policy: ExpensePolicy = ExpensePolicy.ALL,
) -> Optional[Decimal]:
    """Return the value to cache in ``job.profit`` (rounded to pence), or
    ``None`` when profitability is undefined."""
    breakdown = calculate_for_record(
        job, settings, operator, expense_policy=expense_policy
    )
    if breakdown is None:
        logger.debug("Profit not computed for job %s: fare is zero", job.id)
        return None
    return round_money(breakdown.total_profit)
