"""
Boundary parsers for the free-text fields a job arrives with.

Trip lookups and message parsing hand us strings such as ``"12.4 mi"``,
``"1 hr 15 mins"``, ``"£1,250.00"``, ``"27/12/2025"`` and ``"08:30"``.  These
helpers turn them into numbers, dates and times exactly once, so the engine
only ever sees numeric values.
"""

from __future__ import annotations

import re
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Optional
from zoneinfo import ZoneInfo

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?|\.\d+")
_DAYS_RE = re.compile(r"(\d+)\s*d(?:ay)?", re.IGNORECASE)
_HOURS_RE = re.compile(r"(\d+(?:\.\d+)?)\s*h", re.IGNORECASE)
_MINUTES_RE = re.compile(r"(\d+)\s*m", re.IGNORECASE)
_BARE_INT_RE = re.compile(r"^\d+$")
_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

# Accepted booking date formats, most common first
DATE_FORMATS: tuple[str, ...] = ("%d/%m/%Y", "%Y-%m-%d", "%d %b %Y", "%d %B %Y")

ZERO = Decimal("0")
CENT = Decimal("0.01")


def _leading_number(text: str) -> Decimal:
    """Return the first numeric magnitude in *text* (thousands separators
    removed), or zero."""
    match = _NUMBER_RE.search(text.replace(",", ""))
    if match is None:
        return ZERO
    try:
        return Decimal(match.group(0))
    except InvalidOperation:
        return ZERO


def to_decimal(value: Any) -> Optional[Decimal]:
    """Convert a numeric value to ``Decimal`` without float noise.

    Returns ``None`` for ``None`` and for non-numeric values.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    return None


def parse_money(value: Any) -> Decimal:
    """Parse a price that may be numeric or currency formatted (``"£1,250.00"``)."""
    if value is None or value == "":
        return ZERO
    number = to_decimal(value)
    if number is not None:
        return number
    return _leading_number(str(value))


def parse_distance(value: Any) -> Decimal:
    """Parse ``"12.4 mi"`` / ``"1,204 mi"`` / ``12.4`` into a magnitude.

    The unit is not converted; the caller's cost settings are expressed in the
    same unit as the trip lookup.
    """
    if value is None or value == "":
        return ZERO
    number = to_decimal(value)
    if number is not None:
        return number
    return _leading_number(str(value))


def parse_duration_minutes(value: Any) -> int:
    """Parse trip duration text into whole minutes.

    Understands ``"24 mins"``, ``"1 hr 15 mins"``, ``"2 hours"``,
    ``"1.5 hours"``, ``"1 day 3 hours"`` and a bare integer (minutes).
    Unrecognised text yields 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float, Decimal)):
        return max(int(value), 0)

    text = str(value).strip()
    if not text:
        return 0
    if _BARE_INT_RE.match(text):
        return int(text)

    total = ZERO
    matched = False
    days = _DAYS_RE.search(text)
    if days:
        total += Decimal(days.group(1)) * 1440
        matched = True
    hours = _HOURS_RE.search(text)
    if hours:
        total += Decimal(hours.group(1)) * 60
        matched = True
    minutes = _MINUTES_RE.search(text)
    if minutes:
        total += Decimal(minutes.group(1))
        matched = True

    if not matched:
        return 0
    return int(total.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def parse_booking_date(value: Any) -> Optional[date]:
    """Parse a booking date in any of :data:`DATE_FORMATS`."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_booking_time(value: Any) -> Optional[time]:
    """Parse ``"HH:MM"`` (optionally ``":SS"``) into a minute-precision time."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.time().replace(second=0, microsecond=0)
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    match = _TIME_RE.match(str(value).strip())
    if match is None:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        return None
    return time(hours, minutes)


def minutes_since_midnight(value: time) -> int:
    return value.hour * 60 + value.minute


def categorize_time_of_day(value: Optional[time]) -> str:
    """Bucket a booking time.

    - midnight: 00:00 - 05:59
    - day:      06:00 - 17:59
    - evening:  18:00 - 23:59

    Missing times default to ``day``.
    """
    if value is None:
        return "day"
    if value.hour < 6:
        return "midnight"
    if value.hour < 18:
        return "day"
    return "evening"


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def local_today(tz: str) -> date:
    """Today's date on the driver's wall clock."""
    return datetime.now(ZoneInfo(tz)).date()
