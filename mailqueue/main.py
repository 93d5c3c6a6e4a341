"""Main entry point for the mail delivery queue service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import os
import signal
import sys
import threading
import time
from pathlib import Path
from typing import List, Optional, Tuple

from mailqueue.config.environment import EnvironmentConfig
from mailqueue.config.exceptions import ConfigurationError
from mailqueue.config.loader import load_config
from mailqueue.config.models import AppConfig, QueueConfig
from mailqueue.logging import get_logger
from mailqueue.logging.config import configure_logging
from mailqueue.notifications.dispatch import TemplateDispatcher
from mailqueue.notifications.models import NotificationError, OutboundMessage
from mailqueue.notifications.transport import SMTPTransport
from mailqueue.queue import DeliveryQueue, QueueStatus
from mailqueue.scheduler import SchedulerService

logger = get_logger(__name__, component="cli")


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """
    Load configuration and settle the effective log level.

    Log level priority: CLI > LOG_LEVEL environment variable > config file.

    Raises:
        ConfigurationError: If configuration is invalid
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level

    return app_config, env_config


def build_queue(app_config: AppConfig, env_config: EnvironmentConfig) -> DeliveryQueue:
    """Wire the SMTP transport and template dispatcher into a queue."""
    transport = SMTPTransport(env_config, app_config.email)
    dispatcher = TemplateDispatcher(
        frontend_url=env_config.frontend_url,
        app_name=env_config.app_name,
    )
    return DeliveryQueue(transport=transport, dispatcher=dispatcher, config=app_config.queue)


def cleanup_expired(queue: DeliveryQueue, queue_config: QueueConfig) -> int:
    """Retention pass run by the scheduler's cleanup job."""
    removed = queue.cleanup_failed_emails(queue_config.failed_retention_hours)
    removed += queue.cleanup_sent_emails(queue_config.sent_retention_hours)
    return removed


def run_connection_check(queue: DeliveryQueue) -> int:
    """Verify SMTP connectivity. Returns a process exit code."""
    try:
        queue.transport.check_connection()
    except NotificationError as e:
        logger.error(
            f"SMTP connection check failed: {e}",
            extra={"event": "service.check.failed", "error_type": type(e).__name__},
        )
        return 1

    logger.info("SMTP connection check passed", extra={"event": "service.check.passed"})
    return 0


def run_send_test(queue: DeliveryQueue, recipient: str, app_name: str) -> int:
    """Queue one test message, drain once, and report the outcome."""
    item_id = queue.enqueue(
        OutboundMessage(
            to=recipient,
            subject=f"{app_name} test email",
            text=f"This is a test email from the {app_name} delivery queue.",
        ),
        max_retries=1,
    )
    queue.tick()

    item = queue.get_item(item_id)
    if item is not None and item.status == QueueStatus.SENT:
        logger.info(
            f"Test email sent to {recipient}",
            extra={"event": "service.send_test.sent", "transport_id": item.transport_id},
        )
        return 0

    logger.error(
        f"Test email to {recipient} failed: {item.last_error if item else 'item missing'}",
        extra={"event": "service.send_test.failed"},
    )
    return 1


def run_daemon(queue: DeliveryQueue, queue_config: QueueConfig, start_time: float) -> int:
    """Drive the queue on a schedule until SIGINT/SIGTERM."""
    shutdown_event = threading.Event()

    scheduler_service = SchedulerService(
        tick_callable=queue.tick,
        cleanup_callable=lambda: cleanup_expired(queue, queue_config),
        poll_interval_seconds=queue_config.poll_interval_seconds,
        cleanup_interval_seconds=queue_config.cleanup_interval_seconds,
        shutdown_event=shutdown_event,
    )

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    scheduler_service.start()
    logger.info(
        "Delivery queue running. Press Ctrl+C to stop",
        extra={"event": "service.daemon_mode.started"},
    )

    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        scheduler_service.shutdown(wait=False)

    status = queue.get_queue_status()
    if status.pending:
        # Memory-resident queue: anything still pending is lost on exit
        logger.warning(
            f"Stopping with {status.pending} pending email(s) in queue",
            extra={"event": "service.pending_dropped", "pending": status.pending},
        )

    logger.info(
        "Mail delivery queue stopped",
        extra={
            "event": "service.stopping",
            "uptime_seconds": round(time.time() - start_time, 2),
            **status.to_dict(),
        },
    )
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the mail delivery queue.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    start_time = time.time()
    parser = argparse.ArgumentParser(
        description="Mail delivery queue - prioritised, retrying notification delivery"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml if present)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--check",
        action="store_true",
        help="Validate configuration and SMTP connectivity, then exit",
    )
    mode.add_argument(
        "--send-test",
        metavar="ADDRESS",
        default=None,
        help="Queue and deliver one test email to ADDRESS, then exit",
    )

    args = parser.parse_args(argv)

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)

        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=os.environ.get("ENVIRONMENT", "local"),
        )

        logger.info(
            "Mail delivery queue starting",
            extra={
                "event": "service.starting",
                "config_path": str(args.config) if args.config else None,
                "batch_size": app_config.queue.batch_size,
                "max_retries": app_config.queue.max_retries,
                "poll_interval_seconds": app_config.queue.poll_interval_seconds,
            },
        )

        queue = build_queue(app_config, env_config)

        if args.check:
            return run_connection_check(queue)

        if args.send_test:
            return run_send_test(queue, args.send_test, env_config.app_name)

        return run_daemon(queue, app_config.queue, start_time)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={
                "event": "service.startup.failed",
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        return 1


if __name__ == "__main__":
    sys.exit(main())
