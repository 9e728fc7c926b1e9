"""Human-friendly time references for the CLI.

Accepts ISO dates ("2026-01-15", "2026-01-15T14:30:00"), relative
references ("3 days ago", "2 weeks ago") and a few names ("today",
"yesterday", "last week", "last month").
"""

import re
from datetime import datetime, timedelta, timezone

from dateutil import parser as dateparser
from dateutil.relativedelta import relativedelta

from .constants import (
    SECONDS_PER_DAY,
    SECONDS_PER_HOUR,
    SECONDS_PER_MINUTE,
    SECONDS_PER_MONTH,
    SECONDS_PER_WEEK,
    SECONDS_PER_YEAR,
)
from .models import as_utc

_AGO_PATTERN = re.compile(r"(\d+)\s*(minute|hour|day|week|month|year)s?\s*ago")

_UNIT_DELTAS = {
    "minute": lambda n: timedelta(minutes=n),
    "hour": lambda n: timedelta(hours=n),
    "day": lambda n: timedelta(days=n),
    "week": lambda n: timedelta(weeks=n),
    "month": lambda n: relativedelta(months=n),
    "year": lambda n: relativedelta(years=n),
}

_RELATIVE_UNITS = [
    (SECONDS_PER_YEAR, "year"),
    (SECONDS_PER_MONTH, "month"),
    (SECONDS_PER_WEEK, "week"),
    (SECONDS_PER_DAY, "day"),
    (SECONDS_PER_HOUR, "hour"),
    (SECONDS_PER_MINUTE, "minute"),
]


def _start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def parse_time_reference(ref: str, now: datetime | None = None) -> datetime:
    """Parse a time reference into a timezone-aware UTC datetime.

    Raises:
        ValueError: If the reference cannot be parsed

    Examples:
        >>> parse_time_reference("2026-01-15")
        datetime(2026, 1, 15, 0, 0, tzinfo=timezone.utc)
        >>> parse_time_reference("3 days ago")  # relative to now
    """
    now = now or datetime.now(timezone.utc)
    raw = ref.strip()
    ref = raw.lower()

    named = {
        "now": lambda: now,
        "today": lambda: _start_of_day(now),
        "yesterday": lambda: _start_of_day(now - timedelta(days=1)),
        "last week": lambda: now - timedelta(weeks=1),
        "last month": lambda: now - relativedelta(months=1),
    }
    if ref in named:
        return named[ref]()

    ago = _AGO_PATTERN.fullmatch(ref)
    if ago:
        return now - _UNIT_DELTAS[ago.group(2)](int(ago.group(1)))

    try:
        parsed = dateparser.parse(raw)
    except (ValueError, OverflowError) as e:
        raise ValueError(f"Cannot parse time reference: {raw}") from e
    if parsed is None:
        raise ValueError(f"Cannot parse time reference: {raw}")
    return as_utc(parsed)


def format_relative_time(dt: datetime, now: datetime | None = None) -> str:
    """Format a datetime as "3 days ago", "just now" or "in the future"."""
    now = now or datetime.now(timezone.utc)
    seconds = int((now - dt).total_seconds())

    if seconds < 0:
        return "in the future"
    for size, unit in _RELATIVE_UNITS:
        if seconds >= size:
            amount = seconds // size
            return f"{amount} {unit}{'s' if amount != 1 else ''} ago"
    return "just now"
