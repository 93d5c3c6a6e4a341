"""Prioritised, retrying in-memory delivery queue."""

from .engine import DeliveryQueue
from .models import (
    Message,
    Priority,
    QueueItem,
    QueueStatus,
    QueueStatusSummary,
    TickResult,
)

__all__ = [
    "DeliveryQueue",
    "Message",
    "Priority",
    "QueueItem",
    "QueueStatus",
    "QueueStatusSummary",
    "TickResult",
]
