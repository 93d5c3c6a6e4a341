"""Queue item, lifecycle states and status summaries."""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Union

from mailqueue.notifications.models import OutboundMessage, TemplateReference

Message = Union[OutboundMessage, TemplateReference]


class Priority(str, Enum):
    """Insertion position: high goes to the head, normal to the tail."""

    HIGH = "high"
    NORMAL = "normal"


class QueueStatus(str, Enum):
    """Lifecycle state of a queue item.

    PROCESSING is only visible while a tick is attempting the item.
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SENT = "sent"
    FAILED = "failed"


@dataclass
class QueueItem:
    """One pending or historical delivery.

    Attributes:
        id: Unique identifier assigned at enqueue time
        message: Rendered payload or template reference
        priority: Insertion priority
        max_retries: Ceiling on delivery attempts
        created_at: Enqueue time
        scheduled_at: Earliest time the item may be attempted
        status: Lifecycle state
        attempts: Delivery attempts made so far (never above max_retries)
        last_attempt_at: Start of the most recent attempt
        sent_at: Time of successful delivery
        failed_at: Time the item ran out of attempts
        last_error: Cause of the most recent failure
        transport_id: Identifier returned by the transport on success
        metadata: Free-form tags used by get_recent_emails()
    """

    id: str
    message: Message
    priority: Priority
    max_retries: int
    created_at: datetime
    scheduled_at: datetime
    status: QueueStatus = QueueStatus.PENDING
    attempts: int = 0
    last_attempt_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    last_error: Optional[str] = None
    transport_id: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_template(self) -> bool:
        return isinstance(self.message, TemplateReference)

    @property
    def recipient(self) -> Optional[str]:
        return self.message.to

    @property
    def label(self) -> str:
        """Short description for log lines: template name or subject."""
        if self.is_template:
            return f"template:{self.message.name}"
        return self.message.subject

    def is_due(self, now: datetime) -> bool:
        """Whether a tick at ``now`` may attempt this item."""
        return (
            self.status == QueueStatus.PENDING
            and self.scheduled_at <= now
            and self.attempts < self.max_retries
        )

    def has_attempts_left(self) -> bool:
        return self.attempts < self.max_retries


@dataclass
class QueueStatusSummary:
    """Counts by status plus whether a tick is running."""

    total: int = 0
    pending: int = 0
    processing: int = 0
    failed: int = 0
    sent: int = 0
    is_processing: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class TickResult:
    """What one drain pass did."""

    tick_id: str
    selected: int = 0
    sent: int = 0
    retried: int = 0
    failed: int = 0
    skipped: bool = False
    error: Optional[str] = None

    @property
    def had_errors(self) -> bool:
        return self.error is not None or self.retried > 0 or self.failed > 0
