"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .duration import DurationParseError, parse_duration, validate_duration_range

# Bounds for the queue's periodic jobs (seconds)
POLL_INTERVAL_RANGE = (1, 3600)
CLEANUP_INTERVAL_RANGE = (60, 86400)


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output formats."""

    JSON = "json"
    KEY_VALUE = "key-value"


def _checked_duration(value: str, bounds, label: str) -> int:
    try:
        seconds = parse_duration(value)
        validate_duration_range(seconds, bounds[0], bounds[1], label=label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return seconds


class QueueConfig(BaseModel):
    """Delivery queue behaviour: batching, retries, scheduling and retention."""

    batch_size: int = Field(5, ge=1, le=100, description="Maximum items attempted per tick")
    max_retries: int = Field(
        3, ge=1, le=10, description="Default attempt ceiling for a queue item"
    )
    poll_interval: str = Field("30s", description="How often the drain loop runs")
    cleanup_interval: str = Field("1h", description="How often terminal items are purged")
    failed_retention_hours: float = Field(
        24, gt=0, description="Age after which failed items are removed"
    )
    sent_retention_hours: float = Field(
        24, gt=0, description="Age after which sent items are removed"
    )
    retry_initial_delay: float = Field(
        0, ge=0, le=3600,
        description="Delay before the first retry in seconds (0 = retry on the next tick)",
    )
    retry_backoff_multiplier: float = Field(
        2.0, ge=1.0, le=10.0, description="Exponential backoff multiplier between retries"
    )
    retry_max_delay: float = Field(
        3600, ge=1, description="Upper bound for a single backoff delay in seconds"
    )

    # Computed fields
    poll_interval_seconds: Optional[int] = None
    cleanup_interval_seconds: Optional[int] = None

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str) -> str:
        _checked_duration(v, POLL_INTERVAL_RANGE, "Poll interval")
        return v

    @field_validator("cleanup_interval")
    @classmethod
    def validate_cleanup_interval(cls, v: str) -> str:
        _checked_duration(v, CLEANUP_INTERVAL_RANGE, "Cleanup interval")
        return v

    @model_validator(mode="after")
    def compute_interval_seconds(self):
        self.poll_interval_seconds = parse_duration(self.poll_interval)
        self.cleanup_interval_seconds = parse_duration(self.cleanup_interval)

        if self.cleanup_interval_seconds < self.poll_interval_seconds:
            raise ValueError("cleanup_interval must not be shorter than poll_interval")

        return self

    def retry_delay_for(self, attempts: int) -> float:
        """Backoff delay (seconds) to apply after the given failed attempt number."""
        if self.retry_initial_delay <= 0 or attempts < 1:
            return 0.0
        try:
            delay = self.retry_initial_delay * (self.retry_backoff_multiplier ** (attempts - 1))
        except OverflowError:
            return self.retry_max_delay
        return min(delay, self.retry_max_delay)


class EmailConfig(BaseModel):
    """SMTP delivery settings."""

    use_tls: bool = Field(True, description="Use TLS/STARTTLS for secure connection")
    timeout: float = Field(
        30.0, gt=0, le=300, description="SMTP socket timeout in seconds"
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(
        LogFormat.KEY_VALUE, description="Log output format (json or key-value)"
    )

    model_config = {"use_enum_values": True}


class AppConfig(BaseModel):
    """Root configuration object for the mail delivery queue."""

    queue: QueueConfig = Field(default_factory=QueueConfig, description="Queue settings")
    email: EmailConfig = Field(default_factory=EmailConfig, description="Email settings")
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
