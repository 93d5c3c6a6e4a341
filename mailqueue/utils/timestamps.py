"""Timestamp utilities.

Every timestamp the queue stores is a timezone-aware UTC datetime. Callers
may hand in naive datetimes (e.g. ``schedule_email(msg, datetime(...))``);
those are normalised here and treated as UTC.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Example:
        >>> utc_now().tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: str) -> Optional[datetime]:
    """Parse an ISO 8601 string (``Z`` suffix allowed) to a UTC datetime.

    Returns:
        Timezone-aware datetime in UTC, or None if the string is empty or
        cannot be parsed
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        return None


def coerce_timestamp(value: Union[datetime, str, None]) -> Optional[datetime]:
    """Accept a datetime or ISO 8601 string and return a UTC datetime.

    Raises:
        TypeError: If value is neither a datetime nor a string
        ValueError: If a string value cannot be parsed
    """
    if value is None or isinstance(value, datetime):
        return ensure_utc(value)

    if not isinstance(value, str):
        raise TypeError(
            f"Timestamp must be a datetime or ISO 8601 string, got {type(value).__name__}"
        )

    parsed = parse_iso_datetime(value)
    if parsed is None:
        raise ValueError(f"Invalid timestamp: {value!r}")
    return parsed


def hours_before(reference: datetime, hours: float) -> datetime:
    """Return the instant ``hours`` hours before ``reference``."""
    return ensure_utc(reference) - timedelta(hours=hours)


def format_timestamp(dt: Optional[datetime], include_microseconds: bool = False) -> str:
    """Format a datetime as ISO 8601 in UTC with a 'Z' suffix.

    Example:
        >>> format_timestamp(datetime(2025, 11, 4, 12, 0, 0, tzinfo=timezone.utc))
        '2025-11-04T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    if include_microseconds:
        return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def from_epoch_millis(value: float) -> datetime:
    """Convert milliseconds since the Unix epoch (as JavaScript clients send) to UTC.

    Raises:
        ValueError: If the value is outside the supported datetime range
    """
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError) as e:
        raise ValueError(f"Epoch timestamp out of range: {value!r}") from e
