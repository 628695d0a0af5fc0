"""
SQLAlchemy model for booking operators (dispatch companies / platforms).
"""

import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Operator(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "operators"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_operators_user_name"),
    )

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    charges_commission: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    # Percentage, only used when the job has no operator_fee of its own
    commission_rate: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(5, 2), nullable=True
    )
    # Free text such as "weekly" or "monthly"
    payment_cycle: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    def __repr__(self) -> str:
        return f"<Operator(id={self.id}, name={self.name!r})>"
