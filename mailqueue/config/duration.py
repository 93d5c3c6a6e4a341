"""Duration parsing utilities for configuration.

Queue intervals are written either human-readable ("30s", "1h30m") or as
ISO-8601 durations ("PT30S", "PT1H").
"""

import re


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


_ISO_PATTERN = re.compile(
    r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
)
_HUMAN_PATTERN = re.compile(r"(\d+)\s*([smhd])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(duration_str: str) -> int:
    """
    Parse a duration string to seconds.

    Args:
        duration_str: Duration string to parse

    Returns:
        Duration in seconds

    Raises:
        DurationParseError: If the duration string is invalid or zero

    Examples:
        >>> parse_duration("30s")
        30
        >>> parse_duration("PT1H")
        3600
        >>> parse_duration("1h30m")
        5400
    """
    if not isinstance(duration_str, str):
        raise DurationParseError(f"Duration must be a string, got {type(duration_str).__name__}")

    duration_str = duration_str.strip()
    if not duration_str:
        raise DurationParseError("Duration string cannot be empty")

    if duration_str.upper().startswith("P"):
        total_seconds = _parse_iso8601_duration(duration_str)
    else:
        total_seconds = _parse_human_readable_duration(duration_str)

    if total_seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total_seconds


def _parse_iso8601_duration(duration_str: str) -> int:
    match = _ISO_PATTERN.match(duration_str.upper())
    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{duration_str}'. "
            "Expected format like 'P1D', 'PT1H30M', 'PT30S'"
        )

    days, hours, minutes, seconds = match.groups()
    return (
        int(days or 0) * _UNIT_SECONDS["d"]
        + int(hours or 0) * _UNIT_SECONDS["h"]
        + int(minutes or 0) * _UNIT_SECONDS["m"]
        + int(float(seconds or 0))
    )


def _parse_human_readable_duration(duration_str: str) -> int:
    lowered = duration_str.lower()
    matches = _HUMAN_PATTERN.findall(lowered)

    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{duration_str}'. "
            "Expected format like '30s', '15m', '1h', '1d', or combinations like '1h30m'"
        )

    # Reject leftovers such as "10x" or "5m garbage"
    parsed_str = "".join(f"{num}{unit}" for num, unit in matches)
    if parsed_str != re.sub(r"\s+", "", lowered):
        raise DurationParseError(
            f"Invalid characters in duration: '{duration_str}'. "
            "Use only digits and units: s (seconds), m (minutes), h (hours), d (days)"
        )

    return sum(int(num) * _UNIT_SECONDS[unit] for num, unit in matches)


def validate_duration_range(
    duration_seconds: int,
    min_seconds: int,
    max_seconds: int,
    label: str = "Interval",
) -> None:
    """
    Validate that a duration lies within [min_seconds, max_seconds].

    Raises:
        DurationParseError: If duration is outside the valid range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {seconds_to_human_readable(duration_seconds)}. "
            f"Minimum is {seconds_to_human_readable(min_seconds)}."
        )

    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {seconds_to_human_readable(duration_seconds)}. "
            f"Maximum is {seconds_to_human_readable(max_seconds)}."
        )


def seconds_to_human_readable(seconds: int) -> str:
    """
    Convert seconds to a coarse human-readable string.

    Examples:
        >>> seconds_to_human_readable(30)
        '30 seconds'
        >>> seconds_to_human_readable(3600)
        '1 hour'
    """
    for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''}"
    return f"{seconds} second{'s' if seconds != 1 else ''}"
