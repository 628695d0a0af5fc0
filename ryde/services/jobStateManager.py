"""
Job State Manager
=================

Lifecycle transitions for a driver's job.  Every lifecycle status change
MUST go through ``validate_transition`` before being persisted.

State machine overview::

    scheduled <--> in-progress <--> completed <--> cancelled
        (any non-archived status may move to any other status)

    (any non-archived) --> archived
    archived --> scheduled   (restore; the only way out)

Payment status is tracked separately (see ``paymentStateMachine``).
"""

from __future__ import annotations

from ryde.models.job import JobStatus
from ryde.services.paymentStateMachine import TransitionResult


# ---------------------------------------------------------------------------
# Transition definitions
# ---------------------------------------------------------------------------

_OPEN_STATUSES: frozenset[JobStatus] = frozenset(
    status for status in JobStatus if status != JobStatus.ARCHIVED
)

VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    **{
        status: {target for target in JobStatus if target != status}
        for status in _OPEN_STATUSES
    },
    # Archived jobs can only be restored
    JobStatus.ARCHIVED: {JobStatus.SCHEDULED},
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_transition(
    current_status: JobStatus,
    new_status: JobStatus,
) -> TransitionResult:
    """Validate whether a lifecycle status transition is allowed.

    Returns a ``TransitionResult`` with ``allowed=True`` if the transition
    is permitted, or ``allowed=False`` with a human-readable ``reason``.
    """
    if current_status == new_status:
        return TransitionResult(
            allowed=False,
            reason=f"Job is already '{current_status.value}'.",
        )

    allowed_targets = get_valid_transitions(current_status)
    if new_status not in allowed_targets:
        return TransitionResult(
            allowed=False,
            reason=(
                f"Invalid transition: '{current_status.value}' -> '{new_status.value}'. "
                f"Allowed transitions from '{current_status.value}': "
                f"{', '.join(s.value for s in allowed_targets) or 'none'}."
            ),
        )
    return TransitionResult(allowed=True)


def get_valid_transitions(current_status: JobStatus) -> list[JobStatus]:
    """Statuses reachable from *current_status*, sorted by value."""
    return sorted(VALID_TRANSITIONS.get(current_status, set()), key=lambda s: s.value)
