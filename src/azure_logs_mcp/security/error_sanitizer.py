"""Error sanitization at the caller boundary.

Every failure is logged in full to the system logger, then reduced to the
message the caller is allowed to see:

- Tagged errors (AzureLogsError) are classified by their ErrorKind.
  VALIDATION and CONFIGURATION messages pass through unchanged.
- Untagged errors pass through only when their text matches one of the
  input-complaint patterns in SAFE_MESSAGE_PATTERNS. This is a fallback
  for exceptions raised outside this package.
- Everything else becomes GENERIC_ERROR_MESSAGE.

Values listed in ``redact`` (the search term) are scrubbed from the logged
message and traceback, since downstream errors may echo the query text.
"""

from __future__ import annotations

__all__ = [
    "SAFE_MESSAGE_PATTERNS",
    "is_disclosure_safe",
    "sanitize_error",
]

import logging
import traceback
from collections.abc import Iterable
from datetime import datetime, timezone

from azure_logs_mcp.constants import GENERIC_ERROR_MESSAGE, REDACTED
from azure_logs_mcp.exceptions import AzureLogsError
from azure_logs_mcp.telemetry.system_logger import get_system_logger

# Substrings that mark an untagged error as an input complaint
SAFE_MESSAGE_PATTERNS: tuple[str, ...] = (
    "Invalid search term",
    "Search term",
    "validation",
)


def is_disclosure_safe(error: BaseException) -> bool:
    """Decide whether an error's message may reach the caller."""
    if isinstance(error, AzureLogsError):
        return error.disclosure_safe
    message = str(error)
    return any(pattern in message for pattern in SAFE_MESSAGE_PATTERNS)


def _scrub(text: str, secrets: tuple[str, ...]) -> str:
    for secret in secrets:
        text = text.replace(secret, REDACTED)
    return text


def sanitize_error(
    error: BaseException,
    context: str,
    *,
    logger: logging.Logger | None = None,
    redact: Iterable[str] = (),
) -> str:
    """Log an error in full and return the caller-facing message.

    The log record is emitted unconditionally, exactly once per call.

    Args:
        error: The exception to report.
        context: Short label for where it happened (e.g. "searchLogs").
        logger: Destination logger. Defaults to the system logger.
        redact: Strings to replace with REDACTED in the logged detail.

    Returns:
        The original message if disclosure-safe, else GENERIC_ERROR_MESSAGE.
    """
    logger = logger or get_system_logger()
    secrets = tuple(value for value in redact if value)

    kind = error.kind.value if isinstance(error, AzureLogsError) else None
    cause = error.cause if isinstance(error, AzureLogsError) else error.__cause__
    trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))

    detail = {
        "event": "request_failed",
        "message": f"{context} failed: {type(error).__name__}",
        "context": context,
        "error": _scrub(str(error), secrets),
        "error_type": type(error).__name__,
        "error_kind": kind,
        "traceback": _scrub(trace, secrets),
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
    }
    if cause is not None:
        detail["cause"] = _scrub(str(cause), secrets)
        detail["cause_type"] = type(cause).__name__

    logger.error(detail)

    if not is_disclosure_safe(error):
        return GENERIC_ERROR_MESSAGE
    if isinstance(error, AzureLogsError):
        return error.message
    return str(error)
