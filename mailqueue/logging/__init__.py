"""Structured logging helpers for the mail delivery queue."""

import logging
from typing import Optional


class ComponentLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges its component field with per-call extras."""

    def process(self, msg, kwargs):
        # Per-call extra wins over the adapter's defaults
        kwargs["extra"] = {**self.extra, **kwargs.get("extra", {})}
        return msg, kwargs


def get_logger(name: str, component: Optional[str] = None):
    """Get a logger, optionally tagging every record with a component.

    Args:
        name: Logger name (typically __name__)
        component: Component identifier injected into all records
            ("queue", "transport", "scheduler", "cli", ...)

    Returns:
        Logger or ComponentLoggerAdapter instance

    Example:
        >>> logger = get_logger(__name__, component="queue")
        >>> logger.info("Email added to queue", extra={"event": "queue.enqueued"})
    """
    logger = logging.getLogger(name)

    if component:
        return ComponentLoggerAdapter(logger, {"component": component})

    return logger


__all__ = ["ComponentLoggerAdapter", "get_logger"]
