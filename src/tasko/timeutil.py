# src/tasko/timeutil.py

"""
Clock / calendar helpers.

Conventions used across the app:
- clock times are "HH:MM" (24h); normalized strings sort in clock order
- days of week are 0..6 with Sunday = 0
- timestamps are naive local datetimes stored as "YYYY-MM-DDTHH:MM:SS"
"""

from __future__ import annotations

import re
from datetime import date, datetime, time, timedelta
from typing import Any

from dateutil import parser as dateparser

from .errors import ValidationError

WEEK = timedelta(days=7)

_CLOCK_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_clock(raw: Any, *, field: str = "time") -> str:
    """Validate and normalize a clock time to zero-padded HH:MM."""
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be a string in HH:MM format")
    m = _CLOCK_RE.match(raw.strip())
    if not m:
        raise ValidationError(f"Invalid {field} format. Use HH:MM format")
    return f"{int(m.group(1)):02d}:{m.group(2)}"


def clock_to_time(clock: str) -> time:
    hh, mm = clock.split(":")
    return time(int(hh), int(mm))


def clock_of(dt: datetime) -> str:
    return f"{dt.hour:02d}:{dt.minute:02d}"


def day_of_week(d: date) -> int:
    """Sunday=0 .. Saturday=6."""
    return d.isoweekday() % 7


def week_start(d: date) -> date:
    """The Sunday that starts the week containing d."""
    return d - timedelta(days=day_of_week(d))


def to_iso(dt: datetime) -> str:
    return dt.replace(microsecond=0).isoformat(timespec="seconds")


def now_iso() -> str:
    return to_iso(datetime.now())


def from_iso(raw: str) -> datetime:
    return datetime.fromisoformat(raw)


def parse_datetime(raw: Any, *, field: str = "date") -> datetime:
    """
    Parse an incoming timestamp (ISO or anything dateutil understands).

    Timezone-aware input is converted to local time and made naive so it
    compares correctly with stored values.
    """
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, str) and raw.strip():
        try:
            dt = dateparser.parse(raw.strip())
        except (ValueError, OverflowError) as e:
            raise ValidationError(f"{field} is not a valid date/time") from e
    else:
        raise ValidationError(f"{field} is not a valid date/time")

    if dt.tzinfo is not None:
        dt = dt.astimezone().replace(tzinfo=None)
    return dt.replace(microsecond=0)


def parse_date(raw: Any, *, field: str = "date") -> date:
    if isinstance(raw, date) and not isinstance(raw, datetime):
        return raw
    return parse_datetime(raw, field=field).date()


def daterange(start: date, end: date):
    """Yield each calendar day from start to end, inclusive."""
    d = start
    while d <= end:
        yield d
        d += timedelta(days=1)
