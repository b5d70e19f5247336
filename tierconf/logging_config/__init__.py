"""Structured logging and resolution tracing.

Provides structured JSON logging, resolution context propagation
(config key, organization, project), and performance timing.
"""

from tierconf.logging_config.config import LogFormat, LoggingConfig, LogLevel
from tierconf.logging_config.context import ResolutionContext, generate_trace_id
from tierconf.logging_config.performance import PerformanceTimer, log_performance
from tierconf.logging_config.setup import configure_logging, get_logger

__all__ = [
    "LogFormat",
    "LogLevel",
    "LoggingConfig",
    "PerformanceTimer",
    "ResolutionContext",
    "configure_logging",
    "generate_trace_id",
    "get_logger",
    "log_performance",
]
