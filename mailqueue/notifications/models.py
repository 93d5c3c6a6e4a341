"""Message types and exceptions for the notification layer.

A queued message is either fully rendered (``OutboundMessage``) or a
``TemplateReference`` that the dispatcher resolves into an
``OutboundMessage`` at delivery time.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


class NotificationError(Exception):
    """Base exception for notification-related errors."""

    pass


class TransientDeliveryError(NotificationError):
    """Raised when the transport fails in a way that may succeed on retry."""

    pass


class SMTPDeliveryError(TransientDeliveryError):
    """Raised when SMTP delivery fails (network, auth, provider rejection)."""

    pass


class InvalidRecipientError(NotificationError, ValueError):
    """Raised when a message has no usable recipient address."""

    pass


class NotificationTemplateError(NotificationError):
    """Raised when template rendering fails due to configuration or missing variables."""

    pass


class TemplateNotFoundError(NotificationTemplateError):
    """Raised when a template file does not exist for the requested format."""

    pass


class UnknownTemplateError(NotificationTemplateError):
    """Raised when a template name has no registered handler."""

    def __init__(self, template_name: str):
        self.template_name = template_name
        super().__init__(f"Unknown template: {template_name}")


@dataclass
class Attachment:
    """File attached to an outgoing message."""

    filename: str
    content: bytes
    mime_type: str = "application/octet-stream"

    @property
    def maintype(self) -> str:
        return self.mime_type.split("/", 1)[0]

    @property
    def subtype(self) -> str:
        parts = self.mime_type.split("/", 1)
        return parts[1] if len(parts) == 2 else "octet-stream"


@dataclass
class OutboundMessage:
    """Fully rendered message ready for the transport.

    ``to`` may hold several comma-separated addresses. It is not validated
    until delivery.
    """

    to: str
    subject: str
    html: Optional[str] = None
    text: Optional[str] = None
    attachments: List[Attachment] = field(default_factory=list)


@dataclass
class TemplateReference:
    """Reference to a named template plus the data it is rendered with.

    ``to`` and ``subject`` are used by the generic template kinds; the
    first-class kinds derive both from ``data``.
    """

    name: str
    data: Dict[str, Any] = field(default_factory=dict)
    to: Optional[str] = None
    subject: Optional[str] = None


@dataclass
class DeliveryResult:
    """Outcome of a successful transport call."""

    transport_id: str
    recipient: str
    subject: str
    template: Optional[str] = None
