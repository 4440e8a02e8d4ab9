"""Input validation for the searchLogs tool.

Validation runs before any credential or network work, so malformed input
never reaches the query engine. Every failure raises ValidationError with a
message that describes the rule, never the rejected value.
"""

from __future__ import annotations

__all__ = [
    "DURATION_FORMAT_MESSAGE",
    "SearchRequest",
    "parse_duration",
    "validate_search_request",
]

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from azure_logs_mcp.constants import (
    DEFAULT_DURATION,
    DEFAULT_LIMIT,
    MAX_LIMIT,
    MAX_SEARCH_TERM_LENGTH,
    MIN_LIMIT,
)
from azure_logs_mcp.exceptions import ValidationError

_SEARCH_TERM_PATTERN = re.compile(r"[A-Za-z0-9._-]+")

# Days, hours, or days and hours: P7D, PT24H, P1DT12H
_DURATION_PATTERN = re.compile(r"P(?:(?P<days>\d+)D)?(?:T(?P<hours>\d+)H)?")

DURATION_FORMAT_MESSAGE = "Duration must be in ISO 8601 format (e.g., P7D for 7 days, PT24H for 24 hours)"


@dataclass(frozen=True, slots=True)
class SearchRequest:
    """A fully validated searchLogs call.

    Attributes:
        search_term: Trimmed term, 1-100 chars of [A-Za-z0-9._-].
        limit: Maximum rows to return, 1-1000.
        duration: ISO 8601 lookback window, e.g. "P7D".
    """

    search_term: str
    limit: int = DEFAULT_LIMIT
    duration: str = DEFAULT_DURATION

    @property
    def timespan(self) -> timedelta:
        """The lookback window as a timedelta."""
        return parse_duration(self.duration)


def parse_duration(duration: str) -> timedelta:
    """Convert a days/hours ISO 8601 duration into a timedelta.

    Args:
        duration: "P<n>D", "PT<n>H" or "P<n>DT<n>H".

    Returns:
        The equivalent positive timedelta.

    Raises:
        ValidationError: If the format is unsupported or the span is zero.
    """
    match = _DURATION_PATTERN.fullmatch(duration)
    if match is None or (match["days"] is None and match["hours"] is None):
        raise ValidationError(DURATION_FORMAT_MESSAGE)

    span = timedelta(days=int(match["days"] or 0), hours=int(match["hours"] or 0))
    if span <= timedelta(0):
        raise ValidationError("Duration must be greater than zero")
    return span


def _validate_search_term(search_term: Any) -> str:
    if not isinstance(search_term, str):
        raise ValidationError("Search term is required and must be a string")

    term = search_term.strip()
    if not term:
        raise ValidationError("Search term cannot be empty")
    if len(term) > MAX_SEARCH_TERM_LENGTH:
        raise ValidationError(f"Search term too long (maximum {MAX_SEARCH_TERM_LENGTH} characters)")
    if not _SEARCH_TERM_PATTERN.fullmatch(term):
        raise ValidationError(
            "Invalid search term format. Only alphanumeric characters, hyphens, "
            "underscores, and dots are allowed."
        )
    return term


def _validate_limit(limit: Any) -> int:
    if limit is None:
        return DEFAULT_LIMIT

    # bool is an int subclass; True must not read as limit=1
    if isinstance(limit, bool):
        raise ValidationError("Limit must be an integer")
    if isinstance(limit, float):
        if not limit.is_integer():
            raise ValidationError("Limit must be an integer")
        limit = int(limit)
    if not isinstance(limit, int):
        raise ValidationError("Limit must be an integer")

    if limit < MIN_LIMIT:
        raise ValidationError(f"Limit must be at least {MIN_LIMIT}")
    if limit > MAX_LIMIT:
        raise ValidationError(f"Limit cannot exceed {MAX_LIMIT}")
    return limit


def _validate_duration(duration: Any) -> str:
    if duration is None:
        return DEFAULT_DURATION
    if not isinstance(duration, str):
        raise ValidationError(DURATION_FORMAT_MESSAGE)
    parse_duration(duration)
    return duration


def validate_search_request(
    search_term: Any,
    limit: Any = None,
    duration: Any = None,
) -> SearchRequest:
    """Validate raw tool arguments.

    All three fields are checked before anything is returned; the first
    failure aborts the whole request.

    Args:
        search_term: Required term. Surrounding whitespace is trimmed.
        limit: Optional row cap (default 50).
        duration: Optional ISO 8601 lookback (default "P7D").

    Returns:
        SearchRequest with defaults applied.

    Raises:
        ValidationError: On the first rule violated.
    """
    return SearchRequest(
        search_term=_validate_search_term(search_term),
        limit=_validate_limit(limit),
        duration=_validate_duration(duration),
    )
