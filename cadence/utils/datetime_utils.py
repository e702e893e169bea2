"""
Date and datetime utilities.

The engine works on calendar dates; timestamps are kept in UTC.
"""

from datetime import date, datetime, timezone
from typing import Optional, Union

# UTC timezone constant
UTC = timezone.utc


def now_utc() -> datetime:
    """
    Get current UTC datetime (timezone-aware).

    Returns:
        datetime: Current UTC time with tzinfo set to UTC
    """
    return datetime.now(UTC)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Ensure datetime is timezone-aware and in UTC.

    Args:
        dt: datetime to convert (can be None, naive, or timezone-aware)

    Returns:
        Optional[datetime]: UTC timezone-aware datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def to_storage_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Naive UTC datetime, the form SQLite DATETIME columns hold."""
    dt = ensure_utc(dt)
    return dt.replace(tzinfo=None) if dt else None


def to_date(value: Union[date, datetime, str]) -> date:
    """
    Reduce a date-like value to its calendar date.

    Accepts date objects, datetimes (time of day is dropped) and ISO-8601
    strings, either plain dates ("2024-01-03") or datetimes.

    Raises:
        ValueError: If a string cannot be parsed
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()


def format_iso_date(value: date) -> str:
    """Canonical calendar date representation (YYYY-MM-DD)."""
    return value.isoformat()
