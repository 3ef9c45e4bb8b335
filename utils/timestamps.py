"""Timestamp conversion utilities.

Every stored time is an integer count of nanoseconds since the Unix epoch
(UTC).  Calendar dates travel through the API and the import/export files as
text, so this module owns the conversions in both directions:

    ns -> ms          ns // 1_000_000
    ms -> ns          ms * 1_000_000
    ns -> day index   ns // 86_400_000_000_000

Day indexes are what "due today", "due tomorrow" and custom-date matching
compare, so two timestamps on the same UTC calendar day always match.
"""

import time
from datetime import date, datetime, timezone
from typing import Optional

NANOS_PER_MILLI = 1_000_000
NANOS_PER_SECOND = 1_000_000_000
NANOS_PER_DAY = 86_400 * NANOS_PER_SECOND

# Accepted text formats, tried in order after ISO parsing.
_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")


def now_nanos() -> int:
    """Return the current time as nanoseconds since the epoch."""
    return time.time_ns()


def millis_to_nanos(ms: int) -> int:
    return int(ms) * NANOS_PER_MILLI


def nanos_to_millis(ns: int) -> int:
    return int(ns) // NANOS_PER_MILLI


def nanos_to_datetime(ns: int) -> datetime:
    """Convert a nanosecond timestamp to an aware UTC datetime (ms precision)."""
    ms = nanos_to_millis(ns)
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def datetime_to_nanos(dt: datetime) -> int:
    """Convert a datetime to nanoseconds.  Naive datetimes are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = dt - datetime(1970, 1, 1, tzinfo=timezone.utc)
    ms = (delta.days * 86_400 + delta.seconds) * 1000 + delta.microseconds // 1000
    return millis_to_nanos(ms)


def date_to_nanos(d: date) -> int:
    """Return midnight UTC of calendar date *d* in nanoseconds."""
    return datetime_to_nanos(datetime(d.year, d.month, d.day, tzinfo=timezone.utc))


def nanos_to_date(ns: int) -> date:
    return nanos_to_datetime(ns).date()


def parse_date_to_nanos(text: Optional[str]) -> Optional[int]:
    """Parse a date or datetime string into nanoseconds.

    Accepts ISO dates (``2026-03-31``, taken as midnight UTC), ISO
    datetimes, and the ``dd/mm/yyyy`` export format.

    Returns:
        Nanosecond timestamp, or ``None`` for empty input.

    Raises:
        ValueError: If the text is not a recognisable date.
    """
    if text is None:
        return None
    s = str(text).strip()
    if not s:
        return None
    try:
        if len(s) == 10 and s[4] == "-":
            return date_to_nanos(date.fromisoformat(s))
        return datetime_to_nanos(datetime.fromisoformat(s.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return date_to_nanos(datetime.strptime(s, fmt).date())
        except ValueError:
            continue
    raise ValueError(f"Unrecognised date: '{s}'")


def day_number(ns: int) -> int:
    """Return the UTC day index for a nanosecond timestamp."""
    return int(ns) // NANOS_PER_DAY


def today_day_number(now_ns: Optional[int] = None) -> int:
    return day_number(now_ns if now_ns is not None else now_nanos())
