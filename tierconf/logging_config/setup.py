"""Logging Setup.

One-call configuration for structured logging. JSON output for deployed
services, colored console output for local work. Only the handler installed
here is replaced on reconfiguration; handlers owned by the host process are
left alone.
"""

import json
import logging
import os
import sys
from dataclasses import replace
from datetime import datetime, timezone
from typing import IO, Any, Dict, Optional

from tierconf.errors import ConfigServiceError
from tierconf.logging_config.config import DEFAULT_LOGGING_CONFIG, LogFormat, LoggingConfig, LogLevel
from tierconf.logging_config.context import get_context_dict

# Marks the root handler owned by configure_logging
_HANDLER_NAME = "tierconf"


def _exception_fields(exc_info) -> Dict[str, Any]:
    exc_type, exc, _ = exc_info
    fields: Dict[str, Any] = {"type": exc_type.__name__, "message": str(exc)}
    if isinstance(exc, ConfigServiceError):
        fields["code"] = exc.code
        if exc.details:
            fields["details"] = dict(exc.details)
    return fields


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter.

    One JSON object per line: timestamp, level, logger, message, the bound
    resolution context (trace id, config key, organization, project) and
    any of EXTRA_FIELDS passed via ``extra=``. Engine errors carry their
    ``code`` and ``details``.
    """

    EXTRA_FIELDS = ("duration_ms", "scope", "scope_id", "cache_key", "attempt", "extra_data")

    def __init__(self, service_name: str = "tierconf", include_caller: bool = True):
        super().__init__()
        self.service_name = service_name
        self.include_caller = include_caller

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service_name,
        }

        if self.include_caller:
            log_entry["module"] = record.module
            log_entry["function"] = record.funcName
            log_entry["line"] = record.lineno

        log_entry.update(get_context_dict())

        for key in self.EXTRA_FIELDS:
            if hasattr(record, key):
                log_entry[key] = getattr(record, key)

        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = _exception_fields(record.exc_info)
            log_entry["exception"]["traceback"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class ConsoleFormatter(logging.Formatter):
    """Colored console formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        timestamp = datetime.now(timezone.utc).strftime("%H:%M:%S.%f")[:-3]

        ctx = get_context_dict()
        ctx_str = f" [{', '.join(f'{k}={v}' for k, v in ctx.items())}]" if ctx else ""
        cache_key = getattr(record, "cache_key", None)
        if cache_key:
            ctx_str += f" <{cache_key}>"

        line = (
            f"{color}{timestamp} {record.levelname:8s}{self.RESET} "
            f"{record.name}: {record.getMessage()}{ctx_str}"
        )

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)

        return line


def configure_logging(
    config: Optional[LoggingConfig] = None,
    stream: Optional[IO[str]] = None,
) -> logging.Handler:
    """Install the tierconf handler on the root logger.

    Calling again replaces the previous tierconf handler. TIERCONF_LOG_LEVEL
    and TIERCONF_LOG_FORMAT override ``config`` when set to valid values.

    Returns the installed handler.
    """
    config = config or DEFAULT_LOGGING_CONFIG

    env_level = os.environ.get("TIERCONF_LOG_LEVEL", "").upper()
    if env_level in LogLevel.__members__:
        config = replace(config, level=LogLevel(env_level))

    env_format = os.environ.get("TIERCONF_LOG_FORMAT", "").lower()
    if env_format in [f.value for f in LogFormat]:
        config = replace(config, format=LogFormat(env_format))

    if config.format == LogFormat.JSON:
        formatter: logging.Formatter = StructuredFormatter(
            service_name=config.service_name,
            include_caller=config.include_caller,
        )
    else:
        formatter = ConsoleFormatter()

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(getattr(logging, config.level.value))

    for name in config.quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    return handler


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance.

    Plain stdlib logger; once configure_logging() has run, its records go
    through the tierconf formatter.
    """
    return logging.getLogger(name)
