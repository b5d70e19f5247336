"""Logging Configuration.

Settings for structured logging, log levels, and output formats.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    """Log output format."""
    JSON = "json"
    CONSOLE = "console"


@dataclass
class LoggingConfig:
    """Structured logging configuration for the configuration engine.

    ``quiet_loggers`` are the backend client loggers (SQL engine, Redis)
    held at WARNING so per-query chatter does not drown resolution logs.
    """

    level: LogLevel = LogLevel.INFO
    format: LogFormat = LogFormat.JSON
    include_caller: bool = True
    slow_threshold_ms: float = 250.0
    service_name: str = "tierconf"
    quiet_loggers: Tuple[str, ...] = ("sqlalchemy.engine", "sqlalchemy.pool", "redis")

    @classmethod
    def from_names(cls, level: str, format: str, **kwargs) -> "LoggingConfig":
        """Build from the plain strings held in Settings.

        Raises ValueError naming the accepted values when either is unknown.
        """
        try:
            log_level = LogLevel(level.strip().upper())
        except ValueError:
            raise ValueError(
                f"unknown log level {level!r}; expected one of {[l.value for l in LogLevel]}"
            ) from None
        try:
            log_format = LogFormat(format.strip().lower())
        except ValueError:
            raise ValueError(
                f"unknown log format {format!r}; expected one of {[f.value for f in LogFormat]}"
            ) from None
        return cls(level=log_level, format=log_format, **kwargs)


DEFAULT_LOGGING_CONFIG = LoggingConfig()
