"""
Operator API Routes
===================

Routes:
  GET    /api/v1/operators                -- List the driver's operators
  POST   /api/v1/operators                -- Create an operator
  PATCH  /api/v1/operators/{operator_id}  -- Edit an operator
  DELETE /api/v1/operators/{operator_id}  -- Delete an operator
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Response, status

from ryde.api.deps import DBSession, UserId
from ryde.api.errors import to_http
from ryde.api.schemas.operator import OperatorCreateRequest, OperatorOut, OperatorUpdateRequest
from ryde.services import operatorService
from ryde.services.errors import RydeError

router = APIRouter(prefix="/operators", tags=["Operators"])


@router.get("", response_model=list[OperatorOut], summary="List operators")
async def list_operators(db: DBSession, user_id: UserId) -> list[OperatorOut]:
    operators = await operatorService.list_operators(db, user_id)
    return [OperatorOut.model_validate(op) for op in operators]


@router.post(
    "",
    response_model=OperatorOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an operator",
)
async def create_operator(
    db: DBSession,
    user_id: UserId,
    body: OperatorCreateRequest,
) -> OperatorOut:
    try:
        operator = await operatorService.create_operator(db, user_id=user_id, **body.model_dump())
    except RydeError as exc:
        raise to_http(exc)
    return OperatorOut.model_validate(operator)


@router.patch("/{operator_id}", response_model=OperatorOut, summary="Edit an operator")
async def update_operator(
    db: DBSession,
    user_id: UserId,
    operator_id: uuid.UUID,
    body: OperatorUpdateRequest,
) -> OperatorOut:
    try:
        operator = await operatorService.update_operator(
            db, user_id, operator_id, body.model_dump(exclude_unset=True)
        )
    except RydeError as exc:
        raise to_http(exc)
    return OperatorOut.model_validate(operator)


@router.delete(
    "/{operator_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete an operator",
)
async def delete_operator(db: DBSession, user_id: UserId, operator_id: uuid.UUID) -> Response:
    try:
        await operatorService.delete_operator(db, user_id, operator_id)
    except RydeError as exc:
        raise to_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
