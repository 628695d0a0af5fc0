"""
Domain exceptions shared by the engine and the service layer.

The pure engine raises only the precondition errors; lookups and allocation
failures come from the async service layer.  API routes translate these into
HTTP responses.
"""

from __future__ import annotations

import uuid


class RydeError(Exception):
    """Base class for all domain errors."""


# ---------------------------------------------------------------------------
# Insufficient data
# ---------------------------------------------------------------------------

class InsufficientDataError(RydeError):
    """Raised when a figure is required but the engine declined to compute it
    (fare is zero or unparsable)."""

    def __init__(self, reason: str = "Insufficient data: fare is zero or missing.") -> None:
        self.reason = reason
        super().__init__(reason)


# ---------------------------------------------------------------------------
# Precondition violations
# ---------------------------------------------------------------------------

class PreconditionError(RydeError):
    """An action was refused because its preconditions do not hold."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class NoShowNotAllowedError(PreconditionError):
    """Raised when a job cannot (yet) be marked as a no-show."""


class NoShowRevertError(PreconditionError):
    """Raised when a no-show revert is requested without a captured fare."""


class MissingDueDateError(PreconditionError):
    """Raised when entering ``payment-scheduled`` without a due date."""

    def __init__(self, reason: str = "A due date is required for a scheduled payment.") -> None:
        super().__init__(reason)


class InvalidTransitionError(PreconditionError):
    """Raised when a lifecycle status transition is not allowed."""


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

class JobNotFoundError(RydeError):
    """Raised when a job cannot be found by ID."""

    def __init__(self, job_id: uuid.UUID) -> None:
        self.job_id = job_id
        super().__init__(f"Job with id '{job_id}' not found.")


class OperatorNotFoundError(RydeError):
    """Raised when an operator cannot be found by ID."""

    def __init__(self, operator_id: uuid.UUID) -> None:
        self.operator_id = operator_id
        super().__init__(f"Operator with id '{operator_id}' not found.")


class JobRefAllocationError(RydeError):
    """Raised when no free job reference could be claimed."""

    def __init__(self, prefix: str, attempts: int) -> None:
        self.prefix = prefix
        self.attempts = attempts
        super().__init__(
            f"Could not allocate a unique job reference for {prefix} "
            f"after {attempts} attempts."
        )
