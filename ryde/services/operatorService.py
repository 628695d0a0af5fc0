"""
Operator Service
================

CRUD for the booking operators a driver works with.  An operator's
commission settings and payment cycle feed the profit engine and the due
date calculation through ``OperatorPolicy``.
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ryde.models.operator import Operator
from ryde.services.errors import OperatorNotFoundError, PreconditionError
from ryde.services.jobRecord import OperatorPolicy

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = frozenset({"name", "charges_commission", "commission_rate", "payment_cycle"})


async def list_operators(db: AsyncSession, user_id: uuid.UUID) -> Sequence[Operator]:
    stmt = select(Operator).where(Operator.user_id == user_id).order_by(Operator.name)
    return (await db.execute(stmt)).scalars().all()


async def get_operator(db: AsyncSession, user_id: uuid.UUID, operator_id: uuid.UUID) -> Operator:
    """Fetch one of the driver's operators.

    Raises:
        OperatorNotFoundError: If the operator does not exist for this driver.
    """
    stmt = select(Operator).where(Operator.id == operator_id, Operator.user_id == user_id)
    operator = (await db.execute(stmt)).scalar_one_or_none()
    if operator is None:
        raise OperatorNotFoundError(operator_id)
    return operator


async def get_operator_by_name(
    db: AsyncSession,
    user_id: uuid.UUID,
    name: Optional[str],
) -> Optional[Operator]:
    if not name:
        return None
    stmt = select(Operator).where(Operator.user_id == user_id, Operator.name == name)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_operator_policy(
    db: AsyncSession,
    user_id: uuid.UUID,
    name: Optional[str],
) -> Optional[OperatorPolicy]:
    """Policy for the operator named on a job, or ``None`` if unknown."""
    operator = await get_operator_by_name(db, user_id, name)
    if operator is None:
        return None
    return OperatorPolicy.from_model(operator)


async def create_operator(
    db: AsyncSession,
    *,
    user_id: uuid.UUID,
    name: str,
    charges_commission: bool = False,
    commission_rate: Optional[Decimal] = None,
    payment_cycle: Optional[str] = None,
) -> Operator:
    """Create an operator for the driver.

    Raises:
        PreconditionError: The driver already has an operator with this name.
    """
    if await get_operator_by_name(db, user_id, name) is not None:
        raise PreconditionError(f"Operator '{name}' already exists.")

    operator = Operator(
        user_id=user_id,
        name=name,
        charges_commission=charges_commission,
        commission_rate=commission_rate,
        payment_cycle=payment_cycle,
    )
    db.add(operator)
    await db.flush()

    logger.info("Operator created: %s (%s) for user %s", operator.id, name, user_id)
    return operator


async def update_operator(
    db: AsyncSession,
    user_id: uuid.UUID,
    operator_id: uuid.UUID,
    changes: dict[str, Any],
) -> Operator:
    """Apply a partial update.  Unknown keys are ignored."""
    operator = await get_operator(db, user_id, operator_id)

    new_name = changes.get("name")
    if new_name and new_name != operator.name:
        if await get_operator_by_name(db, user_id, new_name) is not None:
            raise PreconditionError(f"Operator '{new_name}' already exists.")

    for key, value in changes.items():
        if key in _UPDATABLE_FIELDS:
            setattr(operator, key, value)
    await db.flush()

    logger.info("Operator updated: %s (%s)", operator.id, ", ".join(sorted(changes)))
    return operator


async def delete_operator(db: AsyncSession, user_id: uuid.UUID, operator_id: uuid.UUID) -> None:
    operator = await get_operator(db, user_id, operator_id)
    await db.delete(operator)
    await db.flush()
    logger.info("Operator deleted: %s", operator_id)
