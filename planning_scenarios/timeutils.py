from __future__ import annotations

"""UTC timestamp helpers.

All timestamps crossing the storage boundary are ISO-8601 UTC strings with
microsecond precision and a trailing `Z`. Expiry checks compare parsed
datetimes, never strings.
"""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return `value` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_iso(value: datetime) -> str:
    """Format an aware (or naive, assumed UTC) datetime as `YYYY-MM-DDTHH:MM:SS.ffffffZ`."""
    value = as_utc(value)
    return value.replace(tzinfo=None).isoformat(timespec="microseconds") + "Z"


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts a trailing `Z` as well as explicit offsets. Naive values are
    treated as UTC.
    """
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def add_days(value: datetime, days: float) -> datetime:
    return value + timedelta(days=days)


def parse_calendar_date(value: object) -> Optional[date]:
    """Return the calendar date of an ISO date/datetime string, or None."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def shift_calendar_value(value: object, days: float) -> object:
    """Shift an ISO date or datetime string by a number of days, keeping its shape.

    Date-only strings stay date-only; full timestamps keep their time part.
    Values that are not dates are returned unchanged.
    """
    if not isinstance(value, str) or not value.strip():
        return value
    text = value.strip()
    if len(text) == 10:
        parsed_date = parse_calendar_date(text)
        if parsed_date is None:
            return value
        return (parsed_date + timedelta(days=days)).isoformat()
    try:
        return to_iso(parse_iso(text) + timedelta(days=days))
    except ValueError:
        return value
