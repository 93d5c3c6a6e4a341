"""Configuration management for the mail delivery queue."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_app_config
from .models import (
    AppConfig,
    EmailConfig,
    LogFormat,
    LogLevel,
    LoggingConfig,
    QueueConfig,
)

__all__ = [
    # Loader functions
    "load_config",
    "parse_app_config",
    "load_environment_config",
    # Configuration models
    "AppConfig",
    "QueueConfig",
    "EmailConfig",
    "LoggingConfig",
    "EnvironmentConfig",
    # Enums
    "LogLevel",
    "LogFormat",
    # Exceptions
    "ConfigurationError",
]
