"""Additional validation utilities for configuration."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """
    Check a raw configuration for legal but risky settings.

    Args:
        config_dict: Raw configuration dictionary

    Returns:
        List of warning messages
    """
    warning_messages: List[str] = []

    queue = config_dict.get("queue") or {}
    if not isinstance(queue, dict):
        return warning_messages

    poll_interval = queue.get("poll_interval")
    if isinstance(poll_interval, str):
        try:
            if parse_duration(poll_interval) < 5:
                warning_messages.append(
                    f"Short poll_interval ({poll_interval}) keeps the SMTP server busy; "
                    "most ticks will find nothing to send"
                )
        except DurationParseError:
            # Reported by model validation
            pass

    batch_size = queue.get("batch_size")
    if isinstance(batch_size, int) and batch_size > 50:
        warning_messages.append(
            f"Large batch_size ({batch_size}) may trip provider rate limits"
        )

    retention = queue.get("failed_retention_hours")
    if isinstance(retention, (int, float)) and retention < 1:
        warning_messages.append(
            f"failed_retention_hours={retention} leaves operators little time to retry failed emails"
        )

    max_retries = queue.get("max_retries")
    if max_retries == 1:
        warning_messages.append("max_retries=1 disables retries: the first failure is final")

    return warning_messages


def emit_warnings(warning_messages: List[str]) -> None:
    """Emit warning messages using Python's warnings module."""
    for message in warning_messages:
        warnings.warn(message, UserWarning, stacklevel=2)
