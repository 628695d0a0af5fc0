"""
Pydantic v2 schemas for the earnings dashboard.
"""

from __future__ import annotations

from datetime import date, time
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ryde.models.job import PaymentStatus


class StatsSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    revenue: Decimal
    revenue_trend: Decimal
    profit: Decimal
    jobs: int
    distance: Decimal
    hourly_rate: Decimal
    period_start: date


class OperatorStatsOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    operator: Optional[str] = None
    jobs: int
    revenue: Decimal
    profit: Decimal
    outstanding: Decimal


class EarningsPointOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    label: str
    period_start: date
    revenue: Decimal
    profit: Decimal


class ExportRowOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_date: date
    booking_time: Optional[time] = None
    job_ref: Optional[str] = None
    vehicle: Optional[str] = None
    operator: Optional[str] = None
    pickup: Optional[str] = None
    dropoff: Optional[str] = None
    price: Decimal
    operator_fee: Decimal
    airport_fee: Decimal
    profit: Decimal
    payment_status: PaymentStatus
