"""System logger for operational events.

This module provides a singleton system logger for everything the server
reports about itself: startup checks, session lifecycle, rate-limit
rejections and the full detail of sanitized failures.

Logging strategy:
- Console (stderr): every record at or above the configured level.
  stdout is never used because the stdio transport owns it.
- File (optional JSONL): WARNING and above, via configure_system_logger_file().

Search terms are never passed to this logger. Callers log the REDACTED
placeholder in their place.
"""

from __future__ import annotations

__all__ = [
    "configure_log_level",
    "configure_system_logger_file",
    "get_system_logger",
]

import logging
import sys
from pathlib import Path

from azure_logs_mcp.constants import APP_NAME
from azure_logs_mcp.telemetry.formatters import ConsoleFormatter, ISO8601Formatter

_system_logger: logging.Logger | None = None
_file_handler: logging.FileHandler | None = None


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with a stderr handler only.

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "health_check_failed", "message": "..."})
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.INFO)
    _system_logger.propagate = False

    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG)
    stderr_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(stderr_handler)

    return _system_logger


def configure_log_level(level: int) -> None:
    """Set the threshold of the system logger.

    Args:
        level: A logging level constant (e.g. logging.DEBUG).
    """
    get_system_logger().setLevel(level)


def configure_system_logger_file(log_path: Path) -> None:
    """Attach a JSONL file handler to the system logger.

    The file receives WARNING and above. Calling again with the same path
    is a no-op; a different path replaces the previous handler.

    Args:
        log_path: Destination file. Parent directories are created.
    """
    global _file_handler

    logger = get_system_logger()

    if _file_handler is not None:
        if Path(_file_handler.baseFilename) == log_path.resolve():
            return
        logger.removeHandler(_file_handler)
        _file_handler.close()

    log_path.parent.mkdir(parents=True, exist_ok=True)

    _file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    _file_handler.setLevel(logging.WARNING)
    _file_handler.setFormatter(ISO8601Formatter())
    logger.addHandler(_file_handler)
