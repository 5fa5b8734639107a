from __future__ import annotations

from datetime import date, datetime, timedelta, timezone, tzinfo


def parse_date_ymd(s: str) -> date:
    """Parse strict YYYY-MM-DD string into a date. Raises ValueError."""
    return datetime.strptime(s, "%Y-%m-%d").date()


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with offset (consistent with models.py default_factory)."""
    return datetime.now(timezone.utc).isoformat()


def to_local_iso(value: str, tz: tzinfo) -> str:
    """Re-render a stored ISO-8601 timestamp in ``tz``, to the second."""
    return datetime.fromisoformat(value).astimezone(tz).isoformat(timespec="seconds")


def trip_length_days(date_start: date, date_end: date) -> int:
    """Inclusive number of calendar days between two dates."""
    return (date_end - date_start).days + 1


def iter_trip_dates(date_start: date, date_end: date) -> list[date]:
    return [date_start + timedelta(days=offset) for offset in range(trip_length_days(date_start, date_end))]


def format_hours(minutes: int) -> str:
    """Minutes as hours rounded to one decimal, without a trailing '.0'."""
    hours = round(minutes / 60, 1)
    return f"{hours:g}"
