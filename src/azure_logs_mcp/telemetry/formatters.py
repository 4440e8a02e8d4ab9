"""Log record formatters.

ConsoleFormatter renders structured records as one readable line for stderr.
ISO8601Formatter renders them as JSONL with a UTC timestamp for file sinks.
"""

from __future__ import annotations

__all__ = ["ConsoleFormatter", "ISO8601Formatter"]

import json
import logging
from datetime import datetime, timezone


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Pulls the 'message' (or 'event') field out of dict records.
    """

    def format(self, record: logging.LogRecord) -> str:
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


class ISO8601Formatter(logging.Formatter):
    """JSONL formatter with ISO 8601 timestamps (UTC).

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as one JSON line.

        Args:
            record: The log record to format.

        Returns:
            str: JSON object with "time" and "level" first, then the record fields.
        """
        timestamp = (
            datetime.fromtimestamp(record.created, tz=timezone.utc)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z")
        )

        if isinstance(record.msg, dict):
            log_data = record.msg
        else:
            log_data = {"message": record.getMessage()}

        # default=str keeps non-JSON values (paths, enums) from breaking the sink
        return json.dumps({"time": timestamp, "level": record.levelname, **log_data}, default=str)
