"""
Shared pytest fixtures for Ryde unit tests.

Provides cost settings, operator policies and ``JobRecord`` builders so the
pure engine can be exercised without a database.
"""

import uuid
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Any

import pytest

from ryde.models.job import JobStatus, PaymentStatus
from ryde.services.jobRecord import (
    CostSettings,
    JobRecord,
    OperatorPolicy,
    PaymentHistory,
    PaymentHistoryEntry,
)
from ryde.services.parsing import parse_distance, parse_duration_minutes


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------

# 10:00 London time (BST) on the day of the sample booking
FIXED_NOW = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return FIXED_NOW


# ---------------------------------------------------------------------------
# Cost settings & operators
# ---------------------------------------------------------------------------


@pytest.fixture
def cost_settings() -> CostSettings:
    """£1.50/L, 45 mpg, £0.15/mi, no default commission or airport fee."""
    return CostSettings(
        fuel_price=Decimal("1.50"),
        fuel_efficiency=Decimal("45"),
        maintenance_cost=Decimal("0.15"),
        operator_fee=Decimal("0"),
        airport_fee=Decimal("0"),
        target_profit=Decimal("1.0"),
    )


@pytest.fixture
def commission_operator() -> OperatorPolicy:
    return OperatorPolicy(
        name="City Cars",
        charges_commission=True,
        commission_rate=Decimal("15"),
        payment_cycle="Weekly",
    )


# ---------------------------------------------------------------------------
# Job builder
# ---------------------------------------------------------------------------


def make_job(**overrides: Any) -> JobRecord:
    """Build a ``JobRecord`` for the sample 6.9 mile, 24 minute £60 trip.

    ``distance`` and ``duration`` overrides may be given as text and are
    parsed the same way the boundary adapter does.
    """
    distance_text = overrides.pop("distance", "6.9 mi")
    duration_text = overrides.pop("duration", "24 mins")
    values: dict[str, Any] = {
        "id": uuid.uuid4(),
        "user_id": uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa"),
        "job_ref": "RYDE01062025-1",
        "booking_date": date(2025, 6, 1),
        "booking_time": time(9, 0),
        "distance": parse_distance(distance_text),
        "distance_text": distance_text,
        "duration_minutes": parse_duration_minutes(duration_text),
        "duration_text": duration_text,
        "fare": Decimal("60"),
        "operator_fee": Decimal("10"),
        "status": JobStatus.SCHEDULED,
        "payment_status": PaymentStatus.UNPAID,
        "payment_history": PaymentHistory().append(
            PaymentHistoryEntry(
                status=PaymentStatus.UNPAID,
                timestamp=datetime(2025, 5, 30, 12, 0, tzinfo=timezone.utc),
                note="Job created.",
            )
        ),
    }
    values.update(overrides)
    return JobRecord(**values)


@pytest.fixture
def job() -> JobRecord:
    return make_job()


@pytest.fixture
def job_factory():
    """Return the ``make_job`` builder for tests that need several jobs."""
    return make_job
