"""
Unit tests for application settings.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from ryde.core.config import Settings
from ryde.services.profitEngine import ExpensePolicy


class TestExpensePolicySetting:

    @pytest.mark.parametrize("policy", [p.value for p in ExpensePolicy])
    def test_every_policy_accepted(self, policy):
        assert ExpensePolicy(Settings(expense_policy=policy).expense_policy) == ExpensePolicy(policy)

    def test_unknown_policy_rejected_at_startup(self):
        with pytest.raises(ValidationError):
            Settings(expense_policy="refunded_only")


class TestCostSettings:

    def test_defaults(self):
        costs = Settings().cost_settings()
        assert costs.fuel_price == Decimal("1.50")
        assert costs.fuel_efficiency == Decimal("45")

    def test_overrides_skip_none(self):
        costs = Settings().cost_settings(fuel_price=Decimal("1.80"), maintenance_cost=None)
        assert costs.fuel_price == Decimal("1.80")
        assert costs.maintenance_cost == Decimal("0.15")
