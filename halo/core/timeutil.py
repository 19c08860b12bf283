"""HALO — Time helpers.

All pipeline timestamps are UTC. SQLite hands datetimes back without
tzinfo, so anything read from the database goes through ``as_utc``
before it is compared with ``utcnow()``.
"""

from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utcnow().date()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to a naive datetime, convert an aware one."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 string/date/datetime into an aware UTC datetime.

    Raises ValueError for anything that is not a recognisable timestamp.
    """
    if isinstance(value, datetime):
        return as_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"Not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return as_utc(datetime.fromisoformat(text))


def parse_date(value: Any) -> date:
    """UTC calendar date of a timestamp-like value."""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    return parse_timestamp(value).date()
