"""Notification delivery: templates, dispatch and transports.

- TemplateRenderer: Jinja2 rendering of named email templates
- TemplateDispatcher / TemplateKind: template reference resolution
- NotificationTransport / SMTPTransport: message delivery
- SMTPClient: smtplib wrapper with TLS/SSL support
"""

from .dispatch import TemplateDispatcher, TemplateKind
from .models import (
    Attachment,
    DeliveryResult,
    InvalidRecipientError,
    NotificationError,
    NotificationTemplateError,
    OutboundMessage,
    SMTPDeliveryError,
    TemplateNotFoundError,
    TemplateReference,
    TransientDeliveryError,
    UnknownTemplateError,
)
from .smtp_client import SMTPClient, build_sender_address, parse_recipients
from .templates import TemplateRenderer
from .transport import NotificationTransport, SMTPTransport, strip_html

__all__ = [
    # Messages and results
    "Attachment",
    "OutboundMessage",
    "TemplateReference",
    "DeliveryResult",
    # Exceptions
    "NotificationError",
    "TransientDeliveryError",
    "SMTPDeliveryError",
    "InvalidRecipientError",
    "NotificationTemplateError",
    "TemplateNotFoundError",
    "UnknownTemplateError",
    # Components
    "TemplateRenderer",
    "TemplateDispatcher",
    "TemplateKind",
    "NotificationTransport",
    "SMTPTransport",
    "SMTPClient",
    # Utilities
    "build_sender_address",
    "parse_recipients",
    "strip_html",
]
