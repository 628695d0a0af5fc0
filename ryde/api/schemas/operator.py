"""
Pydantic v2 schemas for booking operators.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OperatorCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    charges_commission: bool = False
    commission_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    payment_cycle: Optional[str] = Field(
        default=None, max_length=100, description='e.g. "weekly", "monthly"'
    )


class OperatorUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    charges_commission: Optional[bool] = None
    commission_rate: Optional[Decimal] = Field(default=None, ge=0, le=100)
    payment_cycle: Optional[str] = Field(default=None, max_length=100)


class OperatorOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: uuid.UUID
    name: str
    charges_commission: bool
    commission_rate: Optional[Decimal] = None
    payment_cycle: Optional[str] = None
    created_at: datetime
