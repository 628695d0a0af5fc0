"""
Unit tests for the Job State Manager.

Tests the lifecycle transitions: any open status can move to any other,
and archived jobs can only be restored to scheduled.
"""

import pytest

from ryde.models.job import JobStatus
from ryde.services.jobStateManager import (
    VALID_TRANSITIONS,
    get_valid_transitions,
    validate_transition,
)

OPEN_STATUSES = [s for s in JobStatus if s != JobStatus.ARCHIVED]


# ---------------------------------------------------------------------------
# Open statuses
# ---------------------------------------------------------------------------


class TestOpenTransitions:

    @pytest.mark.parametrize("current", OPEN_STATUSES)
    @pytest.mark.parametrize("new", list(JobStatus))
    def test_any_other_status_allowed(self, current, new):
        result = validate_transition(current, new)
        assert result.allowed is (current != new)

    def test_completed_back_to_scheduled(self):
        """Drivers correct mistakes, so a completed job can be reopened."""
        assert validate_transition(JobStatus.COMPLETED, JobStatus.SCHEDULED).allowed is True

    def test_same_status_reason(self):
        result = validate_transition(JobStatus.SCHEDULED, JobStatus.SCHEDULED)
        assert result.allowed is False
        assert result.reason == "Job is already 'scheduled'."


# ---------------------------------------------------------------------------
# Archived
# ---------------------------------------------------------------------------


class TestArchivedTransitions:

    def test_restore_to_scheduled(self):
        assert validate_transition(JobStatus.ARCHIVED, JobStatus.SCHEDULED).allowed is True

    @pytest.mark.parametrize(
        "new",
        [JobStatus.IN_PROGRESS, JobStatus.COMPLETED, JobStatus.CANCELLED],
    )
    def test_other_targets_refused(self, new):
        result = validate_transition(JobStatus.ARCHIVED, new)
        assert result.allowed is False
        assert "Allowed transitions from 'archived': scheduled." in result.reason


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestGetValidTransitions:

    def test_archived(self):
        assert get_valid_transitions(JobStatus.ARCHIVED) == [JobStatus.SCHEDULED]

    def test_scheduled_sorted_by_value(self):
        assert get_valid_transitions(JobStatus.SCHEDULED) == [
            JobStatus.ARCHIVED,
            JobStatus.CANCELLED,
            JobStatus.COMPLETED,
            JobStatus.IN_PROGRESS,
        ]

    def test_every_status_has_an_entry(self):
        assert set(VALID_TRANSITIONS) == set(JobStatus)
