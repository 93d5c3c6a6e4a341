"""Utility functions for time handling."""

from .timestamps import (
    coerce_timestamp,
    ensure_utc,
    format_timestamp,
    from_epoch_millis,
    hours_before,
    parse_iso_datetime,
    utc_now,
)

__all__ = [
    "utc_now",
    "ensure_utc",
    "coerce_timestamp",
    "hours_before",
    "parse_iso_datetime",
    "format_timestamp",
    "from_epoch_millis",
]
