"""Operational logging.

Provides the system logger for operational events (startup checks, session
lifecycle, sanitized failures) and the formatters it writes with.
"""

from azure_logs_mcp.telemetry.formatters import ConsoleFormatter, ISO8601Formatter
from azure_logs_mcp.telemetry.system_logger import (
    configure_log_level,
    configure_system_logger_file,
    get_system_logger,
)

__all__ = [
    "ConsoleFormatter",
    "ISO8601Formatter",
    "configure_log_level",
    "configure_system_logger_file",
    "get_system_logger",
]
