"""
Shared FastAPI dependencies for the Ryde backend.

Provides the async database session dependency used by all route handlers,
the owning driver's id and the per-request cost assumptions.
"""

from __future__ import annotations

import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal
from typing import Annotated, Optional

from fastapi import Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ryde.core.config import settings
from ryde.services.jobRecord import CostSettings

# ---------------------------------------------------------------------------
# Async engine & session factory
# ---------------------------------------------------------------------------
# The engine is created once at module import time.  The session factory
# produces lightweight ``AsyncSession`` instances that are scoped to a single
# request via the ``get_db`` dependency below.
# ---------------------------------------------------------------------------

engine = create_async_engine(
    settings.database_url,
    echo=settings.sql_echo,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session that is committed when the request
    succeeds and rolled back when it raises.

    Usage in a route::

        @router.get("/items")
        async def list_items(db: DBSession):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


DBSession = Annotated[AsyncSession, Depends(get_db)]


# ---------------------------------------------------------------------------
# Owning driver
# ---------------------------------------------------------------------------

def get_user_id(
    user_id: uuid.UUID = Query(description="Owning driver's user id"),
) -> uuid.UUID:
    return user_id


UserId = Annotated[uuid.UUID, Depends(get_user_id)]


# ---------------------------------------------------------------------------
# Cost assumptions
# ---------------------------------------------------------------------------

def get_cost_settings(
    fuel_price: Optional[Decimal] = Query(default=None, gt=0, description="Fuel price per litre"),
    fuel_efficiency: Optional[Decimal] = Query(default=None, gt=0, description="Miles per gallon"),
    maintenance_cost: Optional[Decimal] = Query(default=None, ge=0, description="Maintenance per mile"),
    operator_fee: Optional[Decimal] = Query(default=None, ge=0, le=100, description="Default commission %"),
    airport_fee: Optional[Decimal] = Query(default=None, ge=0, description="Default airport fee"),
    target_profit: Optional[Decimal] = Query(default=None, description="Target profit per mile"),
) -> CostSettings:
    """Configured cost defaults with any per-request overrides applied."""
    try:
        return settings.cost_settings(
            fuel_price=fuel_price,
            fuel_efficiency=fuel_efficiency,
            maintenance_cost=maintenance_cost,
            operator_fee=operator_fee,
            airport_fee=airport_fee,
            target_profit=target_profit,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        )


Costs = Annotated[CostSettings, Depends(get_cost_settings)]
