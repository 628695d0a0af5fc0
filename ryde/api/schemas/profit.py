"""
Pydantic v2 schemas for profitability figures.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ryde.api.schemas.job import ExpenseIn
from ryde.services.profitEngine import ExpensePolicy


class ProfitPreviewRequest(BaseModel):
    """A job that has not been saved yet (e.g. while filling in the form)."""

    fare: Optional[Decimal] = Field(default=None, ge=0)
    price: Optional[str] = Field(default=None, description='Currency string, e.g. "£60.00"')
    distance: Optional[str] = Field(default=None, description='e.g. "6.9 mi"')
    duration: Optional[str] = Field(default=None, description='e.g. "24 mins"')
    operator: Optional[str] = None
    operator_fee: Optional[Decimal] = Field(default=None, ge=0, le=100)
    include_airport_fee: bool = False
    airport_fee: Optional[Decimal] = Field(default=None, ge=0)
    expenses: list[ExpenseIn] = Field(default_factory=list)
    expense_policy: Optional[ExpensePolicy] = None


class ProfitBreakdownOut(BaseModel):
    """All figures are exact; clients round for display."""

    model_config = ConfigDict(from_attributes=True)

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
    advisories: list[str] = Field(default_factory=list)
