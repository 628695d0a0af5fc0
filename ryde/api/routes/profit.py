"""
Profit preview route.

Lets the client show live figures while a job is being entered, before it
is saved.

Routes:
  POST /api/v1/profit/preview -- Profit breakdown for an unsaved job
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, status

from ryde.api.deps import Costs, DBSession, UserId
from ryde.api.schemas.profit import ProfitBreakdownOut, ProfitPreviewRequest
from ryde.core.config import settings
from ryde.services import operatorService
from ryde.services.jobRecord import job_from_mapping
from ryde.services.profitEngine import ExpensePolicy, calculate_for_record

router = APIRouter(prefix="/profit", tags=["Profit"])


@router.post(
    "/preview",
    response_model=ProfitBreakdownOut,
    summary="Profit breakdown for an unsaved job",
    description=(
        "Applies the same rules as a saved job. The named operator's "
        "commission policy is used when the job has no fee of its own. "
        "Returns 422 when no fare is given."
    ),
)
async def preview_profit(
    db: DBSession,
    user_id: UserId,
    costs: Costs,
    body: ProfitPreviewRequest,
) -> ProfitBreakdownOut:
    record = job_from_mapping(body.model_dump(exclude_none=True, exclude={"expense_policy"}))
    operator = await operatorService.get_operator_policy(db, user_id, body.operator)
    policy = body.expense_policy or ExpensePolicy(settings.expense_policy)

    breakdown = calculate_for_record(record, costs, operator, expense_policy=policy)
    if breakdown is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="Insufficient data: fare is zero or missing.",
        )
    return ProfitBreakdownOut.model_validate(breakdown)
