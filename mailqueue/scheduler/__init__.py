"""Periodic triggers for the delivery queue."""

from .service import CLEANUP_JOB_ID, DRAIN_JOB_ID, SchedulerService

__all__ = [
    "SchedulerService",
    "DRAIN_JOB_ID",
    "CLEANUP_JOB_ID",
]
