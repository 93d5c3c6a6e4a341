"""Notification transports.

``NotificationTransport`` is the contract the delivery queue sends through.
``SMTPTransport`` implements it on top of ``SMTPClient``.
"""

import html as html_lib
import re
from abc import ABC, abstractmethod
from email.message import EmailMessage
from email.utils import make_msgid
from typing import Optional, Sequence

from mailqueue.config.environment import EnvironmentConfig
from mailqueue.config.models import EmailConfig
from mailqueue.logging import get_logger

from .models import Attachment
from .smtp_client import (
    SMTPClient,
    build_sender_address,
    parse_recipients,
    sender_email_for,
)

logger = get_logger(__name__, component="transport")

_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_END_RE = re.compile(r"</(p|div|h[1-6]|li|tr)>|<br\s*/?>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<(style|script)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)


class NotificationTransport(ABC):
    """Delivers a fully rendered message."""

    @abstractmethod
    def send(
        self,
        recipient: str,
        subject: str,
        html: Optional[str],
        text: Optional[str],
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> str:
        """Send one message.

        Returns:
            Transport identifier for the delivered message

        Raises:
            TransientDeliveryError: If delivery failed and may succeed later
            InvalidRecipientError: If the recipient is unusable
        """


def strip_html(markup: str) -> str:
    """Derive a plain-text body from HTML for clients without HTML support."""
    without_styles = _STYLE_RE.sub("", markup)
    with_breaks = _BLOCK_END_RE.sub("\n", without_styles)
    text = html_lib.unescape(_TAG_RE.sub("", with_breaks))
    lines = [line.strip() for line in text.splitlines()]
    return "\n".join(line for line in lines if line)


class SMTPTransport(NotificationTransport):
    """Sends messages as multipart (text + HTML) email over SMTP."""

    def __init__(
        self,
        env_config: EnvironmentConfig,
        email_config: Optional[EmailConfig] = None,
        smtp_client: Optional[SMTPClient] = None,
    ):
        self.env_config = env_config
        self.email_config = email_config or EmailConfig()
        self.smtp_client = smtp_client or SMTPClient()

    def build_message(
        self,
        recipient: str,
        subject: str,
        html: Optional[str],
        text: Optional[str],
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> EmailMessage:
        """Build the MIME message.

        Raises:
            InvalidRecipientError: If the recipient list is empty or invalid
            ValueError: If neither an HTML nor a text body is given
        """
        recipients = parse_recipients(recipient)

        if not html and not text:
            raise ValueError(f"Message '{subject}' has neither an HTML nor a text body")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = build_sender_address(self.env_config)
        message["To"] = ", ".join(recipients)
        message["Message-ID"] = make_msgid(domain=sender_email_for(self.env_config).split("@")[-1])

        message.set_content(text or strip_html(html))
        if html:
            message.add_alternative(html, subtype="html")

        for attachment in attachments or ():
            message.add_attachment(
                attachment.content,
                maintype=attachment.maintype,
                subtype=attachment.subtype,
                filename=attachment.filename,
            )

        return message

    def send(
        self,
        recipient: str,
        subject: str,
        html: Optional[str],
        text: Optional[str],
        attachments: Optional[Sequence[Attachment]] = None,
    ) -> str:
        message = self.build_message(recipient, subject, html, text, attachments)

        self.smtp_client.send(
            message,
            self.env_config,
            use_tls=self.email_config.use_tls,
            timeout=self.email_config.timeout,
        )

        message_id = message["Message-ID"]
        logger.info(
            f"Email sent to {message['To']}",
            extra={"event": "transport.sent", "message_id": message_id, "subject": subject},
        )
        return message_id

    def check_connection(self) -> None:
        """Raise SMTPDeliveryError if the SMTP server is unusable."""
        self.smtp_client.check_connection(
            self.env_config, use_tls=self.email_config.use_tls, timeout=self.email_config.timeout
        )
