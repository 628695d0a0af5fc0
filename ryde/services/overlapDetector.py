"""
Overlap Detector
================

Guards the driver's schedule against double-booking.  Each job occupies the
half-open window ``[start, start + duration)`` in minutes since local
midnight, so a job ending at 09:30 does not clash with one starting at 09:30.

Only active jobs (``scheduled`` / ``in-progress``) on the same booking date
can block a slot.  Jobs without a booking time or a positive duration cannot
conflict and are skipped.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, time
from typing import Iterable, Optional

from ryde.models.job import ACTIVE_STATUSES
from ryde.services.jobRecord import JobRecord
from ryde.services.parsing import minutes_since_midnight


@dataclass(frozen=True)
class TimeWindow:
    start: int
    end: int

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and self.end > other.start


@dataclass(frozen=True)
class OverlapResult:
    """Outcome of an overlap check."""
    overlapping: bool
    jobs: list[JobRecord] = field(default_factory=list)


def time_window(booking_time: Optional[time], duration_minutes: int) -> Optional[TimeWindow]:
    """Return the job's window, or ``None`` when it cannot conflict."""
    if booking_time is None or duration_minutes <= 0:
        return None
    start = minutes_since_midnight(booking_time)
    return TimeWindow(start=start, end=start + duration_minutes)


def find_overlapping_jobs(
    booking_date: Optional[date],
    booking_time: Optional[time],
    duration_minutes: int,
    others: Iterable[JobRecord],
    *,
    exclude_job_id: Optional[uuid.UUID] = None,
) -> OverlapResult:
    """Find the jobs whose window intersects the candidate slot.

    Args:
        booking_date: Candidate booking date.
        booking_time: Candidate start time.
        duration_minutes: Candidate duration.
        others: Jobs to compare against, normally already narrowed by the
            caller to the same date and active statuses.
        exclude_job_id: The candidate's own id when editing an existing job.

    Returns:
        An ``OverlapResult`` listing the conflicting jobs in input order.
    """
    if booking_date is None:
        return OverlapResult(overlapping=False)

    candidate = time_window(booking_time, duration_minutes)
    if candidate is None:
        return OverlapResult(overlapping=False)

    conflicts: list[JobRecord] = []
    for other in others:
        if exclude_job_id is not None and other.id == exclude_job_id:
            continue
        if other.status not in ACTIVE_STATUSES:
            continue
        if other.booking_date != booking_date:
            continue
        window = time_window(other.booking_time, other.duration_minutes)
        if window is None:
            continue
        if candidate.overlaps(window):
            conflicts.append(other)

    return OverlapResult(overlapping=bool(conflicts), jobs=conflicts)


def find_overlaps_for_job(
    job: JobRecord,
    others: Iterable[JobRecord],
) -> OverlapResult:
    """Convenience wrapper for an existing job (excludes the job itself)."""
    return find_overlapping_jobs(
        job.booking_date,
        job.booking_time,
        job.duration_minutes,
        others,
        exclude_job_id=job.id,
    )
