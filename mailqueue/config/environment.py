"""Environment variable loading and validation."""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_SENDER_NAME = "Notifications"
DEFAULT_FRONTEND_URL = "http://localhost:4200"
DEFAULT_APP_NAME = "Personal Finance Dashboard"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Environment variable configuration holder (SMTP credentials, links)."""

    def __init__(
        self,
        smtp_host: str,
        smtp_port: int,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        email_from: Optional[str] = None,
        email_from_name: Optional[str] = None,
        frontend_url: Optional[str] = None,
        app_name: Optional[str] = None,
        log_level: Optional[str] = None,
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.email_from = email_from
        self.email_from_name = email_from_name or DEFAULT_SENDER_NAME
        self.frontend_url = (frontend_url or DEFAULT_FRONTEND_URL).rstrip("/")
        self.app_name = app_name or DEFAULT_APP_NAME
        self.log_level = log_level

    @property
    def has_credentials(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass)


def load_environment_config() -> EnvironmentConfig:
    """
    Load and validate environment variables.

    Required environment variables:
    - SMTP_HOST: SMTP server hostname
    - SMTP_PORT: SMTP server port (1-65535)

    Optional environment variables:
    - SMTP_USER / SMTP_PASS: SMTP credentials (both or neither)
    - EMAIL_FROM: Sender address (defaults to SMTP_USER, then noreply@SMTP_HOST)
    - EMAIL_FROM_NAME: Sender display name
    - FRONTEND_URL: Base URL used for links in templated emails
    - APP_NAME: Product name used in templated subjects and bodies
    - LOG_LEVEL: Override log level

    Returns:
        EnvironmentConfig object with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors: List[str] = []

    smtp_host = os.getenv("SMTP_HOST")
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_user = os.getenv("SMTP_USER") or None
    smtp_pass = os.getenv("SMTP_PASS") or None
    email_from = os.getenv("EMAIL_FROM") or None
    email_from_name = os.getenv("EMAIL_FROM_NAME") or None
    frontend_url = os.getenv("FRONTEND_URL") or None
    app_name = os.getenv("APP_NAME") or None
    log_level = os.getenv("LOG_LEVEL") or None

    if not smtp_host:
        errors.append("Missing required environment variable: SMTP_HOST")

    smtp_port = None
    if not smtp_port_str:
        errors.append("Missing required environment variable: SMTP_PORT")
    else:
        try:
            smtp_port = int(smtp_port_str)
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    if email_from:
        try:
            email_from = validate_email(email_from, check_deliverability=False).normalized
        except EmailNotValidError as e:
            errors.append(f"Invalid EMAIL_FROM address '{email_from}': {e}")

    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if smtp_user and not smtp_pass:
        errors.append("SMTP_USER is set but SMTP_PASS is not. Both must be set for authentication.")
    elif smtp_pass and not smtp_user:
        errors.append("SMTP_PASS is set but SMTP_USER is not. Both must be set for authentication.")

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your SMTP settings",
                "Verify SMTP_PORT is a number between 1 and 65535",
                "Check that EMAIL_FROM is a valid address",
            ],
        )

    return EnvironmentConfig(
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        email_from=email_from,
        email_from_name=email_from_name,
        frontend_url=frontend_url,
        app_name=app_name,
        log_level=log_level.upper() if log_level else None,
    )
