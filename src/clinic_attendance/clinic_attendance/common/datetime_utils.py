from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional

from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_hhmm(value: Optional[str]) -> Optional[time]:
    """Parse 'HH:MM' or 'HH:MM:SS' into a time; empty values become None."""
    v = (value or "").strip()
    if not v:
        return None
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(v, fmt).time()
        except ValueError:
            continue
    raise ValidationError(f"Invalid time (HH:MM): {value!r}")


def format_hhmm(value: Optional[time]) -> Optional[str]:
    return value.strftime("%H:%M") if value else None


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp into clinic-local naive time."""
    v = (value or "").strip()
    if not v:
        return None
    if v.endswith("Z"):
        v = v[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(v)
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}")
    return to_local_naive(parsed)


def to_local_naive(value: datetime) -> datetime:
    """Aware datetimes are converted to server-local time and made naive."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def now_local() -> datetime:
    """Current local time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    return datetime.now()


def start_of_day(value: datetime) -> datetime:
    return datetime.combine(value.date(), time.min)


def day_of_week(value: date) -> int:
    """0=Sunday ... 6=Saturday (Python's weekday() is 0=Monday)."""
    return (value.weekday() + 1) % 7


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, floored; negative spans give 0."""
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def at_time(work_date: date, value: time) -> datetime:
    return datetime.combine(work_date, value)


def end_of_window(next_start: datetime) -> datetime:
    """Inclusive end of a window that stops right before next_start."""
    return next_start - timedelta(microseconds=1)
