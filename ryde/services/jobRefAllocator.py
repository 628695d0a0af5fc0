"""
Job Reference Allocator
=======================

Human-readable job references have the form ``RYDE<DDMMYYYY>-<N>`` where
``N`` is a 1-based sequence per booking date.  The next index is one more
than the highest index already allocated for that date, compared
numerically (``-10`` sorts after ``-9``) and scanned across every user's
references so a prefix can never collide.

Uniqueness under concurrency is the caller's job: the service layer claims a
reference against the unique index on ``jobs.job_ref`` and retries with the
next index when it loses a race.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional, Protocol, Sequence

from ryde.services.parsing import parse_booking_date

logger = logging.getLogger(__name__)

REF_PREFIX = "RYDE"


class JobRefLookup(Protocol):
    """Collaborator returning every reference that starts with a prefix."""

    def refs_with_prefix(self, prefix: str) -> Iterable[str]:
        ...


@dataclass(frozen=True)
class BackfillCandidate:
    """A job that still needs a reference."""
    job_id: uuid.UUID
    booking_date: Any
    created_at: Optional[datetime] = None


def job_ref_prefix(booking_date: Any) -> str:
    """Return ``RYDE<DDMMYYYY>`` for a date or a date string.

    Raises:
        ValueError: If the booking date cannot be parsed.
    """
    parsed = parse_booking_date(booking_date)
    if parsed is None:
        raise ValueError(f"Unrecognised booking date: {booking_date!r}")
    return f"{REF_PREFIX}{parsed:%d%m%Y}"


def _ref_pattern(prefix: str) -> re.Pattern[str]:
    return re.compile(rf"^{re.escape(prefix)}-(\d+)$")


def max_ref_index(prefix: str, existing_refs: Iterable[Optional[str]]) -> int:
    """Highest index among *existing_refs* sharing *prefix*, or 0."""
    pattern = _ref_pattern(prefix)
    highest = 0
    for ref in existing_refs:
        if not ref:
            continue
        match = pattern.match(ref)
        if match:
            highest = max(highest, int(match.group(1)))
    return highest


def format_job_ref(prefix: str, index: int) -> str:
    return f"{prefix}-{index}"


def next_job_ref(booking_date: Any, existing_refs: Iterable[Optional[str]]) -> str:
    """Allocate the next reference for *booking_date*.

    >>> next_job_ref(date(2025, 1, 1), ["RYDE01012025-1", "RYDE01012025-2"])
    'RYDE01012025-3'
    """
    prefix = job_ref_prefix(booking_date)
    return format_job_ref(prefix, max_ref_index(prefix, existing_refs) + 1)


def next_job_ref_from_lookup(booking_date: Any, lookup: JobRefLookup) -> str:
    prefix = job_ref_prefix(booking_date)
    return format_job_ref(prefix, max_ref_index(prefix, lookup.refs_with_prefix(prefix)) + 1)


def _created_sort_key(value: Optional[datetime]) -> tuple[int, float]:
    if value is None:
        return (1, 0.0)
    # SQLite hands back naive datetimes; they are stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (0, value.timestamp())


def allocate_job_refs(
    jobs: Sequence[BackfillCandidate],
    existing_refs: Iterable[Optional[str]],
) -> dict[uuid.UUID, str]:
    """Assign references to many historical jobs at once.

    Jobs are grouped by normalised booking date; dates are processed in
    ascending order and jobs within a date by creation time (input order
    breaks ties).  The starting index is computed once per date group, so
    the indices within a group are contiguous.  Jobs whose booking date
    cannot be parsed are skipped.

    Returns:
        Mapping of job id to the allocated reference.
    """
    known = [ref for ref in existing_refs if ref]

    groups: dict[date, list[tuple[int, BackfillCandidate]]] = defaultdict(list)
    for position, job in enumerate(jobs):
        parsed = parse_booking_date(job.booking_date)
        if parsed is None:
            logger.warning(
                "Skipping job %s during ref backfill: unparsable booking date %r",
                job.job_id,
                job.booking_date,
            )
            continue
        groups[parsed].append((position, job))

    allocated: dict[uuid.UUID, str] = {}
    for booking_date in sorted(groups):
        prefix = job_ref_prefix(booking_date)
        start = max_ref_index(prefix, known) + 1
        ordered = sorted(
            groups[booking_date],
            key=lambda item: (_created_sort_key(item[1].created_at), item[0]),
        )
        for offset, (_, job) in enumerate(ordered):
            allocated[job.job_id] = format_job_ref(prefix, start + offset)

    logger.info(
        "Allocated %d job refs across %d booking dates", len(allocated), len(groups)
    )
    return allocated
