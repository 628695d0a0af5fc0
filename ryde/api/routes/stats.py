"""
Earnings dashboard routes.

Routes:
  GET /api/v1/stats/summary    -- Month-to-date earnings
  GET /api/v1/stats/operators  -- Totals per operator
  GET /api/v1/stats/earnings   -- Revenue/profit series (7d, 30d, 12m)
  GET /api/v1/stats/export     -- Completed jobs for a report
"""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from ryde.api.deps import Costs, DBSession, UserId
from ryde.api.schemas.stats import (
    EarningsPointOut,
    ExportRowOut,
    OperatorStatsOut,
    StatsSummaryOut,
)
from ryde.services import statsService
from ryde.services.statsService import EarningsRange

router = APIRouter(prefix="/stats", tags=["Stats"])


@router.get("/summary", response_model=StatsSummaryOut, summary="Month-to-date earnings")
async def get_stats_summary(db: DBSession, user_id: UserId) -> StatsSummaryOut:
    summary = await statsService.get_stats_summary(db, user_id)
    return StatsSummaryOut.model_validate(summary)


@router.get(
    "/operators",
    response_model=list[OperatorStatsOut],
    summary="Completed-job totals per operator",
)
async def get_operator_stats(db: DBSession, user_id: UserId) -> list[OperatorStatsOut]:
    rows = await statsService.get_operator_stats(db, user_id)
    return [OperatorStatsOut.model_validate(row) for row in rows]


@router.get(
    "/earnings",
    response_model=list[EarningsPointOut],
    summary="Revenue and profit history",
)
async def get_earnings_history(
    db: DBSession,
    user_id: UserId,
    period: EarningsRange = Query(default=EarningsRange.MONTH),
) -> list[EarningsPointOut]:
    points = await statsService.get_earnings_history(db, user_id, period=period)
    return [EarningsPointOut.model_validate(point) for point in points]


@router.get(
    "/export",
    response_model=list[ExportRowOut],
    summary="Completed jobs in a booking-date range",
)
async def get_export_rows(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    date_from: Optional[date] = Query(default=None),
    date_to: Optional[date] = Query(default=None),
) -> list[ExportRowOut]:
    if date_from is not None and date_to is not None and date_from > date_to:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="date_from must not be after date_to.",
        )
    rows = await statsService.get_export_rows(
        db, user_id, date_from=date_from, date_to=date_to, costs=costs
    )
    return [ExportRowOut.model_validate(row) for row in rows]
