"""
Translation of domain errors into HTTP responses.
"""

from __future__ import annotations

from fastapi import HTTPException, status

from ryde.services.errors import (
    InsufficientDataError,
    JobNotFoundError,
    JobRefAllocationError,
    MissingDueDateError,
    OperatorNotFoundError,
    PreconditionError,
    RydeError,
)


def to_http(exc: RydeError) -> HTTPException:
    """Map a domain error onto the matching ``HTTPException``.

    - 404: job / operator not found
    - 422: missing data (no fare, no due date)
    - 409: any other refused precondition or ref allocation failure
    """
    if isinstance(exc, (JobNotFoundError, OperatorNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, (InsufficientDataError, MissingDueDateError)):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.reason,
        )
    if isinstance(exc, PreconditionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.reason)
    if isinstance(exc, JobRefAllocationError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
