"""In-memory delivery queue with prioritised, batch-limited, retrying drains.

The queue owns every QueueItem for the life of the process. Producers call
``enqueue`` / ``schedule_email`` / ``send_priority_email``; a scheduler calls
``tick()`` on a fixed interval and the cleanup methods on a longer one.

Thread model: public operations may be called from any thread. The item list
is guarded by ``_lock``; transport I/O happens outside it. ``tick()`` is not
reentrant: a tick that starts while another is running does nothing.
"""

import copy
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union
from uuid import uuid4

from mailqueue.config.models import QueueConfig
from mailqueue.logging import get_logger
from mailqueue.logging.context import log_context
from mailqueue.notifications.dispatch import TemplateDispatcher
from mailqueue.notifications.models import (
    DeliveryResult,
    OutboundMessage,
    TemplateReference,
    TransientDeliveryError,
)
from mailqueue.notifications.transport import NotificationTransport
from mailqueue.utils.timestamps import coerce_timestamp, hours_before, utc_now

from .models import (
    Message,
    Priority,
    QueueItem,
    QueueStatus,
    QueueStatusSummary,
    TickResult,
)

logger = get_logger(__name__, component="queue")

# Metadata keys that identify the user an item belongs to
SUBJECT_KEYS = ("userId", "user_id")


def _describe_error(error: BaseException) -> str:
    message = str(error)
    return message if message else type(error).__name__


class DeliveryQueue:
    """Prioritised in-memory queue of outbound notifications."""

    def __init__(
        self,
        transport: NotificationTransport,
        dispatcher: Optional[TemplateDispatcher] = None,
        config: Optional[QueueConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
        logger_instance: Optional[logging.Logger] = None,
    ):
        """Initialize the queue.

        Args:
            transport: Transport that delivers rendered messages
            dispatcher: Template dispatcher (creates default if None)
            config: Batch size, retry and retention settings (defaults if None)
            clock: Returns the current UTC time (utc_now if None)
            logger_instance: Logger instance (uses module logger if None)
        """
        self.transport = transport
        self.dispatcher = dispatcher or TemplateDispatcher()
        self.config = config or QueueConfig()
        self.clock = clock or utc_now
        self.logger = logger_instance or logger

        self._items: List[QueueItem] = []
        self._lock = threading.RLock()
        self._tick_guard = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def batch_size(self) -> int:
        return self.config.batch_size

    @property
    def is_processing(self) -> bool:
        return self._tick_guard.locked()

    def enqueue(
        self,
        message: Message,
        priority: Union[Priority, str] = Priority.NORMAL,
        scheduled_at: Union[datetime, str, None] = None,
        max_retries: Optional[int] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """Add a message to the queue without attempting delivery.

        Args:
            message: OutboundMessage or TemplateReference
            priority: HIGH inserts at the head, NORMAL at the tail
            scheduled_at: Earliest delivery time (default: now)
            max_retries: Attempt ceiling (default: config.max_retries)
            metadata: Tags for get_recent_emails()

        Returns:
            The new item's id

        Raises:
            TypeError: If message or scheduled_at has an unsupported type
            ValueError: If priority, scheduled_at or max_retries is invalid
        """
        self._validate_message(message)
        priority = Priority(priority)

        if max_retries is None:
            max_retries = self.config.max_retries
        if isinstance(max_retries, bool) or not isinstance(max_retries, int) or max_retries < 1:
            raise ValueError(f"max_retries must be a positive integer, got {max_retries!r}")

        now = self.clock()
        item = QueueItem(
            id=uuid4().hex,
            message=message,
            priority=priority,
            max_retries=max_retries,
            created_at=now,
            scheduled_at=coerce_timestamp(scheduled_at) or now,
            metadata=dict(metadata or {}),
        )

        with self._lock:
            if priority == Priority.HIGH:
                self._items.insert(0, item)
            else:
                self._items.append(item)
            queue_size = len(self._items)

        self.logger.info(
            f"Email added to queue ({item.label})",
            extra={
                "event": "queue.enqueued",
                "queue_item_id": item.id,
                "recipient": item.recipient,
                "priority": priority.value,
                "scheduled_at": item.scheduled_at,
                "queue_size": queue_size,
            },
        )
        return item.id

    def schedule_email(self, message: Message, scheduled_at: Union[datetime, str]) -> str:
        """Enqueue a message that must not be sent before ``scheduled_at``."""
        if scheduled_at is None:
            raise ValueError("scheduled_at is required")
        return self.enqueue(message, scheduled_at=scheduled_at)

    def send_priority_email(self, message: Message) -> DeliveryResult:
        """Deliver immediately, bypassing the queue.

        On failure the message is enqueued with HIGH priority so the normal
        drain retries it, and the original error is re-raised.

        Returns:
            DeliveryResult for the immediate delivery
        """
        self._validate_message(message)
        self.logger.info(
            "Sending priority email",
            extra={"event": "queue.priority.attempt", "recipient": message.to},
        )

        try:
            result = self._deliver(message)
        except Exception as e:
            item_id = self.enqueue(message, priority=Priority.HIGH)
            self.logger.error(
                f"Failed to send priority email, queued for retry: {_describe_error(e)}",
                extra={
                    "event": "queue.priority.fallback",
                    "queue_item_id": item_id,
                    "error_type": type(e).__name__,
                },
            )
            raise

        self.logger.info(
            "Priority email sent",
            extra={"event": "queue.priority.sent", "transport_id": result.transport_id},
        )
        return result

    def tick(self) -> TickResult:
        """Attempt up to ``batch_size`` due items, in queue order.

        Per-item failures are recorded on the item and never abort the batch.
        Returns immediately (``skipped=True``) if another tick is running.
        """
        tick_id = uuid4().hex[:12]

        if not self._tick_guard.acquire(blocking=False):
            self.logger.info(
                "Queue tick already in progress, skipping",
                extra={"event": "queue.tick.skipped", "tick_id": tick_id},
            )
            return TickResult(tick_id=tick_id, skipped=True)

        result = TickResult(tick_id=tick_id)
        batch: List[QueueItem] = []
        try:
            with log_context(tick_id=tick_id):
                batch = self._select_batch(self.clock())
                result.selected = len(batch)
                if not batch:
                    self.logger.debug("No queue items due", extra={"event": "queue.tick.idle"})
                    return result

                self.logger.info(
                    f"Processing email queue: {len(batch)} item(s) due",
                    extra={"event": "queue.tick.started", "batch_size": len(batch)},
                )

                for item in batch:
                    status = self._attempt(item)
                    if status is None:
                        continue
                    if status == QueueStatus.SENT:
                        result.sent += 1
                    elif status == QueueStatus.FAILED:
                        result.failed += 1
                    else:
                        result.retried += 1

                self.logger.info(
                    f"Queue tick complete: {result.sent} sent, {result.retried} to retry, "
                    f"{result.failed} failed",
                    extra={
                        "event": "queue.tick.completed",
                        "sent": result.sent,
                        "retried": result.retried,
                        "failed": result.failed,
                    },
                )
        except Exception as e:
            result.error = _describe_error(e)
            self._release_interrupted(batch)
            self.logger.error(
                f"Error processing email queue: {result.error}",
                exc_info=True,
                extra={"event": "queue.tick.error", "tick_id": tick_id},
            )
        finally:
            self._tick_guard.release()

        return result

    def _select_batch(self, now: datetime) -> List[QueueItem]:
        with self._lock:
            batch = []
            for item in self._items:
                if item.is_due(now):
                    batch.append(item)
                    if len(batch) >= self.batch_size:
                        break
            return batch

    def _attempt(self, item: QueueItem) -> Optional[QueueStatus]:
        """Deliver one batch item; None if it was removed or re-queued since selection."""
        with log_context(queue_item_id=item.id):
            with self._lock:
                if item.status != QueueStatus.PENDING or not any(
                    queued is item for queued in self._items
                ):
                    self.logger.debug(
                        "Queue item no longer pending, skipping",
                        extra={"event": "queue.item.skipped", "status": item.status.value},
                    )
                    return None
                item.status = QueueStatus.PROCESSING
                item.attempts += 1
                item.last_attempt_at = self.clock()

            self.logger.info(
                f"Processing email queue item ({item.label})",
                extra={
                    "event": "queue.item.attempt",
                    "recipient": item.recipient,
                    "attempt": item.attempts,
                    "max_retries": item.max_retries,
                },
            )

            try:
                result = self._deliver(item.message)
            except Exception as e:
                return self._record_failure(item, e)

            return self._record_success(item, result)

    def _release_interrupted(self, batch: List[QueueItem]) -> None:
        """Return items left mid-attempt by an aborted tick to PENDING."""
        with self._lock:
            for item in batch:
                if item.status == QueueStatus.PROCESSING:
                    item.status = QueueStatus.PENDING

    def _record_success(self, item: QueueItem, result: DeliveryResult) -> QueueStatus:
        with self._lock:
            item.status = QueueStatus.SENT
            item.sent_at = self.clock()
            item.transport_id = result.transport_id
            item.last_error = None

        self.logger.info(
            f"Email sent successfully to {result.recipient}",
            extra={
                "event": "queue.item.sent",
                "transport_id": result.transport_id,
                "attempt": item.attempts,
            },
        )
        return QueueStatus.SENT

    def _record_failure(self, item: QueueItem, error: Exception) -> QueueStatus:
        now = self.clock()
        error_text = _describe_error(error)
        retry_at = None

        with self._lock:
            item.last_error = error_text
            if item.has_attempts_left():
                item.status = QueueStatus.PENDING
                delay = self.config.retry_delay_for(item.attempts)
                if delay > 0:
                    retry_at = now + timedelta(seconds=delay)
                    item.scheduled_at = retry_at
            else:
                item.status = QueueStatus.FAILED
                item.failed_at = now

        extra = {
            "attempt": item.attempts,
            "max_retries": item.max_retries,
            "error_type": type(error).__name__,
            "transient": isinstance(error, TransientDeliveryError),
        }

        if item.status == QueueStatus.FAILED:
            self.logger.error(
                f"Email permanently failed after {item.attempts} attempt(s): {error_text}",
                exc_info=error,
                extra={"event": "queue.item.failed", "recipient": item.recipient, **extra},
            )
        else:
            self.logger.warning(
                f"Failed to send email from queue (attempt {item.attempts}/{item.max_retries}): "
                f"{error_text}",
                extra={"event": "queue.item.retry", "retry_at": retry_at, **extra},
            )

        return item.status

    def _deliver(self, message: Message) -> DeliveryResult:
        template = None
        if isinstance(message, TemplateReference):
            template = message.name
            message = self.dispatcher.resolve(message)

        transport_id = self.transport.send(
            message.to,
            message.subject,
            message.html,
            message.text,
            message.attachments or None,
        )
        return DeliveryResult(
            transport_id=transport_id,
            recipient=message.to,
            subject=message.subject,
            template=template,
        )

    @staticmethod
    def _validate_message(message: Any) -> None:
        if not isinstance(message, (OutboundMessage, TemplateReference)):
            raise TypeError(
                "message must be an OutboundMessage or TemplateReference, "
                f"got {type(message).__name__}"
            )

    def remove_from_queue(self, item_id: str) -> None:
        """Remove an item. Unknown ids are ignored."""
        with self._lock:
            for index, item in enumerate(self._items):
                if item.id == item_id:
                    del self._items[index]
                    break
            else:
                return

        self.logger.info(
            "Email removed from queue",
            extra={"event": "queue.removed", "queue_item_id": item_id},
        )

    def retry_failed_email(self, item_id: str) -> bool:
        """Reset a failed item to pending with a fresh attempt budget.

        Returns:
            True if the item existed and was failed, False otherwise
        """
        with self._lock:
            item = self._find(item_id)
            if item is None or item.status != QueueStatus.FAILED:
                return False

            item.status = QueueStatus.PENDING
            item.attempts = 0
            item.last_error = None
            item.failed_at = None
            item.scheduled_at = self.clock()

        self.logger.info(
            "Email marked for retry",
            extra={"event": "queue.item.retry_requested", "queue_item_id": item_id},
        )
        return True

    def get_item(self, item_id: str) -> Optional[QueueItem]:
        """Snapshot of one item, or None if it is not in the queue."""
        with self._lock:
            item = self._find(item_id)
            return copy.deepcopy(item) if item else None

    def get_queue_status(self) -> QueueStatusSummary:
        with self._lock:
            summary = QueueStatusSummary(total=len(self._items), is_processing=self.is_processing)
            for item in self._items:
                field_name = item.status.value
                setattr(summary, field_name, getattr(summary, field_name) + 1)
        return summary

    def get_failed_emails(self) -> List[QueueItem]:
        return self._snapshot(item for item in self._items if item.status == QueueStatus.FAILED)

    def get_recent_emails(
        self,
        subject_id: Optional[str],
        since: Union[datetime, str],
        metadata_filter: Optional[Mapping[str, Any]] = None,
    ) -> List[QueueItem]:
        """Items of any status created at or after ``since`` matching the filter.

        Every key in ``metadata_filter`` must equal the item's metadata value.
        User keys (``userId`` / ``user_id``) are compared against
        ``subject_id`` when one is given. The queue applies no dedup policy
        itself; callers use this to decide whether to enqueue again.
        """
        since = coerce_timestamp(since)
        criteria: Dict[str, Any] = dict(metadata_filter or {})
        if subject_id is not None:
            for key in SUBJECT_KEYS:
                if key in criteria:
                    criteria[key] = subject_id

        def matches(item: QueueItem) -> bool:
            if item.created_at < since:
                return False
            return all(
                key in item.metadata and item.metadata[key] == expected
                for key, expected in criteria.items()
            )

        return self._snapshot(item for item in self._items if matches(item))

    def cleanup_failed_emails(self, max_age_hours: float = 24) -> int:
        """Remove failed items whose ``failed_at`` is older than ``max_age_hours``."""
        return self._purge(QueueStatus.FAILED, "failed_at", max_age_hours)

    def cleanup_sent_emails(self, max_age_hours: float = 24) -> int:
        """Remove sent items whose ``sent_at`` is older than ``max_age_hours``."""
        return self._purge(QueueStatus.SENT, "sent_at", max_age_hours)

    def clear(self) -> None:
        """Drop every item."""
        with self._lock:
            self._items.clear()

    def _purge(self, status: QueueStatus, timestamp_field: str, max_age_hours: float) -> int:
        if max_age_hours < 0:
            raise ValueError(f"max_age_hours must not be negative, got {max_age_hours}")

        cutoff = hours_before(self.clock(), max_age_hours)

        def expired(item: QueueItem) -> bool:
            stamp = getattr(item, timestamp_field)
            return item.status == status and stamp is not None and stamp < cutoff

        with self._lock:
            kept = [item for item in self._items if not expired(item)]
            removed = len(self._items) - len(kept)
            self._items[:] = kept

        if removed:
            self.logger.info(
                f"Cleaned up {removed} {status.value} emails older than {max_age_hours} hours",
                extra={
                    "event": "queue.cleanup",
                    "status": status.value,
                    "removed": removed,
                    "max_age_hours": max_age_hours,
                },
            )
        return removed

    def _find(self, item_id: str) -> Optional[QueueItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _snapshot(self, items: Iterable[QueueItem]) -> List[QueueItem]:
        with self._lock:
            return [copy.deepcopy(item) for item in items]
