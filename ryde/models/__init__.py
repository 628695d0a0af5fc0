"""
Ryde SQLAlchemy Models
======================

Central import point for all ORM models. Import ``Base`` from here for the
``create_all`` convenience in tests.

Usage::

    from ryde.models import Base, Job, Operator
"""

# -- Base & Mixins --
from .base import Base, TimestampMixin, UUIDPrimaryKeyMixin

# -- Jobs --
from .job import ACTIVE_STATUSES, Job, JobStatus, PaymentStatus, TimeOfDay

# -- Operators --
from .operator import Operator

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "ACTIVE_STATUSES",
    "Job",
    "JobStatus",
    "PaymentStatus",
    "TimeOfDay",
    "Operator",
]
