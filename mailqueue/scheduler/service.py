"""Scheduler service that drives the delivery queue."""

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from mailqueue.logging import get_logger

logger = get_logger(__name__, component="scheduler")

DRAIN_JOB_ID = "queue-drain"
CLEANUP_JOB_ID = "queue-cleanup"


class SchedulerService:
    """
    Wraps APScheduler to call the queue's drain and cleanup jobs.

    Uses BackgroundScheduler so jobs run on worker threads while the main
    thread handles signals and coordinates shutdown. Each job runs with
    max_instances=1, and the queue's own tick guard covers manual triggers.
    """

    def __init__(
        self,
        tick_callable: Callable[[], object],
        cleanup_callable: Callable[[], object],
        poll_interval_seconds: int,
        cleanup_interval_seconds: int,
        shutdown_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the scheduler service.

        Args:
            tick_callable: Drain pass (e.g. DeliveryQueue.tick)
            cleanup_callable: Retention pass removing old terminal items
            poll_interval_seconds: Seconds between drain passes
            cleanup_interval_seconds: Seconds between cleanup passes
            shutdown_event: Optional event set on shutdown for coordination
        """
        self.tick_callable = tick_callable
        self.cleanup_callable = cleanup_callable
        self.poll_interval_seconds = poll_interval_seconds
        self.cleanup_interval_seconds = cleanup_interval_seconds
        self.shutdown_event = shutdown_event

        self.job_defaults = {
            "max_instances": 1,  # Prevent overlapping runs of the same job
            "coalesce": True,  # Collapse missed runs into one
            "misfire_grace_time": poll_interval_seconds,
        }
        self.scheduler = BackgroundScheduler(job_defaults=self.job_defaults, timezone=timezone.utc)

    def start(self) -> None:
        """
        Register both jobs and start the scheduler.

        The first drain runs immediately; the first cleanup runs one
        cleanup interval after startup.
        """
        if self.scheduler.running:
            logger.warning("Scheduler already running", extra={"event": "scheduler.already_running"})
            return

        now = datetime.now(timezone.utc)

        self.scheduler.add_job(
            func=self.tick_callable,
            trigger=IntervalTrigger(seconds=self.poll_interval_seconds, timezone=timezone.utc),
            id=DRAIN_JOB_ID,
            name="Delivery queue drain",
            replace_existing=True,
            next_run_time=now,
        )
        self.scheduler.add_job(
            func=self.cleanup_callable,
            trigger=IntervalTrigger(seconds=self.cleanup_interval_seconds, timezone=timezone.utc),
            id=CLEANUP_JOB_ID,
            name="Delivery queue cleanup",
            replace_existing=True,
            next_run_time=now + timedelta(seconds=self.cleanup_interval_seconds),
        )

        self.scheduler.start()

        logger.info(
            f"Scheduler started: drain every {self.poll_interval_seconds}s, "
            f"cleanup every {self.cleanup_interval_seconds}s",
            extra={
                "event": "scheduler.started",
                "poll_interval_seconds": self.poll_interval_seconds,
                "cleanup_interval_seconds": self.cleanup_interval_seconds,
            },
        )

    def shutdown(self, wait: bool = False) -> None:
        """
        Shutdown the scheduler.

        Args:
            wait: If True, wait for running jobs to complete before returning
        """
        logger.info(
            "Shutting down scheduler",
            extra={"event": "scheduler.stopping", "wait_for_jobs": wait},
        )

        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)

        if self.shutdown_event:
            self.shutdown_event.set()

        logger.info("Scheduler shutdown complete", extra={"event": "scheduler.stopped"})

    def trigger_now(self) -> object:
        """Run a drain pass synchronously in the current thread."""
        logger.info("Triggering immediate queue drain", extra={"event": "scheduler.trigger_now"})
        return self.tick_callable()

    def is_running(self) -> bool:
        return self.scheduler.running

    def get_next_run_time(self, job_id: str = DRAIN_JOB_ID) -> Optional[datetime]:
        """Next run time of a job, or None if it is not scheduled."""
        job = self.scheduler.get_job(job_id)
        return job.next_run_time if job else None
