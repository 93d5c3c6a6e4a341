"""SMTP client wrapper for email delivery.

Thin wrapper around Python's smtplib with support for STARTTLS / implicit
TLS, optional authentication, and proper connection lifecycle management.
"""

import logging
import smtplib
import ssl
from contextlib import contextmanager
from email.message import EmailMessage
from email.utils import formataddr
from typing import Callable, Iterator, List, Optional

from email_validator import EmailNotValidError, validate_email

from mailqueue.config.environment import EnvironmentConfig

from .models import InvalidRecipientError, SMTPDeliveryError

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


class SMTPClient:
    """Wrapper around smtplib for sending email messages.

    Factories are injectable so tests can substitute mocks for
    ``smtplib.SMTP`` / ``smtplib.SMTP_SSL``.
    """

    def __init__(
        self,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    @contextmanager
    def _connect(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool,
        timeout: float,
    ) -> Iterator[smtplib.SMTP]:
        """Open an authenticated connection and always close it afterwards."""
        smtp = None
        try:
            if env_config.smtp_port == IMPLICIT_TLS_PORT:
                logger.debug(
                    f"Connecting to {env_config.smtp_host}:{env_config.smtp_port} with implicit TLS"
                )
                smtp = self.smtp_ssl_factory(
                    env_config.smtp_host,
                    env_config.smtp_port,
                    timeout=timeout,
                    context=ssl.create_default_context(),
                )
            else:
                logger.debug(f"Connecting to {env_config.smtp_host}:{env_config.smtp_port}")
                smtp = self.smtp_factory(
                    env_config.smtp_host, env_config.smtp_port, timeout=timeout
                )
                if use_tls:
                    smtp.starttls(context=ssl.create_default_context())

            if env_config.has_credentials:
                logger.debug(f"Authenticating as {env_config.smtp_user}")
                smtp.login(env_config.smtp_user, env_config.smtp_pass)

            yield smtp

        except smtplib.SMTPException as e:
            raise SMTPDeliveryError(f"SMTP error during message delivery: {e}") from e
        except OSError as e:
            raise SMTPDeliveryError(f"Network error during SMTP connection: {e}") from e
        except Exception as e:
            raise SMTPDeliveryError(f"Unexpected error during SMTP delivery: {e}") from e
        finally:
            if smtp is not None:
                try:
                    smtp.quit()
                except Exception as e:
                    logger.warning(f"Error closing SMTP connection: {e}")

    def send(
        self,
        message: EmailMessage,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        """Send an email message via SMTP.

        Raises:
            SMTPDeliveryError: If connection, authentication or delivery fails
        """
        with self._connect(env_config, use_tls, timeout) as smtp:
            smtp.send_message(message)
            logger.debug(f"Message sent to {message['To']}")

    def check_connection(
        self,
        env_config: EnvironmentConfig,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        """Connect, negotiate TLS, authenticate and issue NOOP.

        Raises:
            SMTPDeliveryError: If the server cannot be reached or rejects us
        """
        with self._connect(env_config, use_tls, timeout) as smtp:
            smtp.noop()


def parse_recipients(recipient_string: Optional[str]) -> List[str]:
    """Parse and validate comma-separated email addresses.

    Args:
        recipient_string: Comma-separated email addresses

    Returns:
        List of normalized email addresses

    Raises:
        InvalidRecipientError: If any address is invalid or none is given
    """
    recipients = []

    for email in (recipient_string or "").split(","):
        email = email.strip()
        if not email:
            continue

        try:
            validated = validate_email(email, check_deliverability=False)
        except EmailNotValidError as e:
            raise InvalidRecipientError(f"Invalid recipient address '{email}': {e}") from e
        recipients.append(validated.normalized)

    if not recipients:
        raise InvalidRecipientError("Message has no recipient address")

    return recipients


def sender_email_for(env_config: EnvironmentConfig) -> str:
    """EMAIL_FROM, else SMTP_USER, else noreply@SMTP_HOST."""
    return env_config.email_from or env_config.smtp_user or f"noreply@{env_config.smtp_host}"


def build_sender_address(env_config: EnvironmentConfig) -> str:
    """Build the 'From' header (e.g. ``Notifications <noreply@example.com>``)."""
    return formataddr((env_config.email_from_name, sender_email_for(env_config)))
