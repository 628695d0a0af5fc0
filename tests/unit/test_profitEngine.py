"""
Unit tests for the Profit Engine.

Covers the cost formula, commission priority, airport fee opt-in, the
expense policy flag, the minimum-distance floor and the worked example of a
£60 / 6.9 mile trip.
"""

from dataclasses import replace
from decimal import Decimal

import pytest

from ryde.services.jobRecord import Expense, OperatorPolicy, RefundStatus
from ryde.services.profitEngine import (
    LITRE_PER_GALLON,
    MINIMUM_DISTANCE,
    ExpensePolicy,
    calculate_for_record,
    calculate_job_profit,
    recompute_profit,
    resolve_commission_rate,
    total_expenses,
)


# ---------------------------------------------------------------------------
# Worked example
# ---------------------------------------------------------------------------


class TestWorkedExample:
    """£60 fare, 6.9 mi, 24 mins, 10% commission, £1.50/L, 45 mpg, £0.15/mi."""

    def test_breakdown_figures(self, job, cost_settings):
        result = calculate_job_profit(job, "6.9 mi", "24 mins", cost_settings)

        assert result is not None
        assert abs(result.fuel_cost - Decimal("1.043")) < Decimal("0.005")
        assert result.maintenance_cost == Decimal("1.035")
        assert result.operator_fee_amount == Decimal("6.00")
        assert result.airport_fee == Decimal("0")
        assert result.total_expenses == Decimal("0")
        assert abs(result.total_trip_cost - Decimal("8.08")) < Decimal("0.005")
        assert abs(result.total_profit - Decimal("51.92")) < Decimal("0.005")

    def test_fuel_uses_imperial_gallon(self, job, cost_settings):
        result = calculate_job_profit(job, "6.9 mi", "24 mins", cost_settings)
        expected = (Decimal("6.9") / Decimal("45")) * (Decimal("1.50") * LITRE_PER_GALLON)
        assert result.fuel_cost == expected

    def test_rates(self, job, cost_settings):
        result = calculate_job_profit(job, "6.9 mi", "24 mins", cost_settings)

        assert result.duration_minutes == 24
        assert result.minute_rate == result.total_profit / 24
        assert result.hourly_rate == result.minute_rate * 60
        assert result.profit_per_mile == result.total_profit / Decimal("6.9")
        assert result.mile_rate == Decimal("60") / Decimal("6.9")
        assert result.worth_it is True

    def test_recompute_rounds_to_pence(self, job, cost_settings):
        assert recompute_profit(job, cost_settings) == Decimal("51.92")


# ---------------------------------------------------------------------------
# Formula properties
# ---------------------------------------------------------------------------


class TestFormula:

    def test_zero_fare_returns_none(self, job_factory, cost_settings):
        job = job_factory(fare=Decimal("0"))
        assert calculate_job_profit(job, "6.9 mi", "24 mins", cost_settings) is None
        assert recompute_profit(job, cost_settings) is None

    @pytest.mark.parametrize("distance", ["6.9 mi", "120 mi", "1,204 mi", "0.5"])
    def test_profit_is_fare_minus_total_cost(self, job_factory, cost_settings, distance):
        job = job_factory(
            include_airport_fee=True,
            airport_fee=Decimal("4.50"),
            expenses=(Expense(amount=Decimal("3.20")), Expense(amount=Decimal("1.10"))),
        )
        result = calculate_job_profit(job, distance, "1 hr 10 mins", cost_settings)

        expected_cost = (
            result.fuel_cost
            + result.maintenance_cost
            + result.operator_fee_amount
            + result.airport_fee
            + result.total_expenses
        )
        assert result.total_trip_cost == expected_cost
        assert result.total_profit == job.fare - expected_cost

    def test_thousands_separator_in_distance(self, job, cost_settings):
        result = calculate_job_profit(job, "1,204 mi", "24 mins", cost_settings)
        assert result.distance == Decimal("1204")

    def test_no_duration_gives_zero_time_rates(self, job, cost_settings):
        result = calculate_job_profit(job, "6.9 mi", "", cost_settings)
        assert result.duration_minutes == 0
        assert result.hourly_rate == Decimal("0")
        assert result.minute_rate == Decimal("0")

    def test_below_target_is_not_worth_it(self, job_factory, cost_settings):
        job = job_factory(fare=Decimal("5"))
        result = calculate_job_profit(job, "20 mi", "40 mins", cost_settings)
        assert result.total_profit < 0
        assert result.worth_it is False


# ---------------------------------------------------------------------------
# Minimum distance
# ---------------------------------------------------------------------------


class TestMinimumDistance:

    def test_zero_and_empty_distance_give_identical_costs(self, job, cost_settings):
        zero = calculate_job_profit(job, "0 mi", "24 mins", cost_settings)
        empty = calculate_job_profit(job, "", "24 mins", cost_settings)

        assert zero.effective_distance == MINIMUM_DISTANCE
        assert empty.effective_distance == MINIMUM_DISTANCE
        assert zero.fuel_cost == empty.fuel_cost
        assert zero.maintenance_cost == empty.maintenance_cost
        assert zero.total_trip_cost == empty.total_trip_cost
        assert zero.total_profit == empty.total_profit

    def test_floor_is_flagged(self, job, cost_settings):
        result = calculate_job_profit(job, "unknown", "24 mins", cost_settings)
        assert result.used_minimum_distance is True
        assert len(result.advisories) == 1
        assert result.mile_rate == Decimal("0")

    def test_real_distance_is_not_flagged(self, job, cost_settings):
        result = calculate_job_profit(job, "6.9 mi", "24 mins", cost_settings)
        assert result.used_minimum_distance is False
        assert result.advisories == ()


# ---------------------------------------------------------------------------
# Commission & airport fee
# ---------------------------------------------------------------------------


class TestCommission:

    def test_job_fee_wins_over_operator(self, job, cost_settings, commission_operator):
        assert resolve_commission_rate(job, cost_settings, commission_operator) == Decimal("10")

    def test_operator_rate_when_job_has_none(self, job_factory, cost_settings, commission_operator):
        job = job_factory(operator_fee=None)
        result = calculate_for_record(job, cost_settings, commission_operator)
        assert result.commission_rate == Decimal("15")
        assert result.operator_fee_amount == Decimal("9.00")

    def test_operator_without_commission_falls_back_to_default(self, job_factory, cost_settings):
        job = job_factory(operator_fee=None)
        operator = OperatorPolicy(name="Direct", charges_commission=False, commission_rate=Decimal("20"))
        settings = replace(cost_settings, operator_fee=Decimal("5"))

        assert resolve_commission_rate(job, settings, operator) == Decimal("5")

    def test_airport_fee_only_when_opted_in(self, job_factory, cost_settings):
        without = calculate_for_record(job_factory(airport_fee=Decimal("7")), cost_settings)
        with_fee = calculate_for_record(
            job_factory(include_airport_fee=True, airport_fee=Decimal("7")), cost_settings
        )
        assert without.airport_fee == Decimal("0")
        assert with_fee.airport_fee == Decimal("7")
        assert (without.total_profit - with_fee.total_profit).quantize(Decimal("0.01")) == Decimal("7.00")

    def test_airport_fee_falls_back_to_setting(self, job_factory, cost_settings):
        settings = replace(cost_settings, airport_fee=Decimal("3"))
        result = calculate_for_record(job_factory(include_airport_fee=True), settings)
        assert result.airport_fee == Decimal("3")


# ---------------------------------------------------------------------------
# Expense policy
# ---------------------------------------------------------------------------


class TestExpensePolicy:

    EXPENSES = (
        Expense(amount=Decimal("5.00")),
        Expense(amount=Decimal("2.50"), refund_status=RefundStatus.REFUNDED_BY_OPERATOR),
        Expense(amount=Decimal("1.25"), paid_by_driver=False),
        Expense(amount=Decimal("4.00"), refund_status=RefundStatus.REFUNDED_BY_VIP),
    )

    def test_all_sums_everything(self):
        assert total_expenses(self.EXPENSES, ExpensePolicy.ALL) == Decimal("12.75")

    def test_exclude_refunded(self):
        assert total_expenses(self.EXPENSES, ExpensePolicy.EXCLUDE_REFUNDED) == Decimal("6.25")

    def test_driver_paid_unrefunded(self):
        assert total_expenses(self.EXPENSES, ExpensePolicy.DRIVER_PAID_UNREFUNDED) == Decimal("5.00")

    def test_policy_changes_profit(self, job_factory, cost_settings):
        job = job_factory(expenses=self.EXPENSES)
        everything = calculate_for_record(job, cost_settings)
        unrefunded = calculate_for_record(
            job, cost_settings, expense_policy=ExpensePolicy.EXCLUDE_REFUNDED
        )
        assert (unrefunded.total_profit - everything.total_profit).quantize(Decimal("0.01")) == Decimal("6.50")
