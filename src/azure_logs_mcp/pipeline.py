"""Transport-agnostic handling of one searchLogs call.

Both transports hand calls to the same ToolInvocationPipeline, so admission,
validation and error disclosure behave identically over stdio and HTTP.

Per-call sequence (first failure wins):
    1. Rate-limit gate for the caller's identity
    2. Input validation
    3. Query the log workspace (bounded by a timeout)
    4. Success envelope, or a sanitized error envelope

The search term is never written to a log record. REDACTED stands in for it,
and it is scrubbed from logged exception text as well.
"""

from __future__ import annotations

__all__ = [
    "ResponseEnvelope",
    "ToolInvocationPipeline",
]

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from azure_logs_mcp.constants import (
    DEFAULT_QUERY_TIMEOUT_SECONDS,
    RATE_LIMIT_MESSAGE,
    REDACTED,
    TOOL_NAME,
)
from azure_logs_mcp.exceptions import QueryError, ShutdownInProgressError
from azure_logs_mcp.query import LogsQueryCapability, QueryResult, build_search_query, count_rows
from azure_logs_mcp.security.error_sanitizer import sanitize_error
from azure_logs_mcp.security.rate_limiter import RateLimiter
from azure_logs_mcp.telemetry.system_logger import get_system_logger
from azure_logs_mcp.validation import validate_search_request


@dataclass(frozen=True, slots=True)
class ResponseEnvelope:
    """Outcome of one tool call: exactly one of success or error.

    Attributes:
        is_error: True for the error shape.
        message: Summary line on success, caller-safe error text on failure.
        payload: Query result on success, None on failure.
    """

    is_error: bool
    message: str
    payload: QueryResult | None = None

    def __post_init__(self) -> None:
        if self.is_error and self.payload is not None:
            raise ValueError("error envelope cannot carry a payload")
        if not self.is_error and self.payload is None:
            raise ValueError("success envelope requires a payload")

    @classmethod
    def success(cls, summary: str, payload: QueryResult) -> ResponseEnvelope:
        return cls(is_error=False, message=summary, payload=payload)

    @classmethod
    def failure(cls, message: str) -> ResponseEnvelope:
        return cls(is_error=True, message=message)

    def content_texts(self) -> list[str]:
        """Text items for the tool result: [summary, json] or [message]."""
        if self.is_error:
            return [self.message]
        return [self.message, json.dumps(self.payload, indent=2, default=str)]

    def to_dict(self) -> dict[str, Any]:
        """Render as an MCP tool result."""
        return {
            "content": [{"type": "text", "text": text} for text in self.content_texts()],
            "isError": self.is_error,
        }


class ToolInvocationPipeline:
    """Runs searchLogs calls against a query capability.

    The rate limiter and query client are injected and shared by every
    session of the process.
    """

    def __init__(
        self,
        rate_limiter: RateLimiter,
        query_client: LogsQueryCapability,
        *,
        workspace_id: str,
        query_timeout: float = DEFAULT_QUERY_TIMEOUT_SECONDS,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            rate_limiter: Shared per-client limiter.
            query_client: External query capability.
            workspace_id: Log Analytics workspace to query.
            query_timeout: Seconds before a query is abandoned.
            logger: Operational log sink. Defaults to the system logger.
        """
        self.rate_limiter = rate_limiter
        self.query_client = query_client
        self.workspace_id = workspace_id
        self.query_timeout = query_timeout
        self._logger = logger or get_system_logger()
        self._accepting = True

    @property
    def accepting(self) -> bool:
        """False once shutdown() has been called."""
        return self._accepting

    def shutdown(self) -> None:
        """Refuse every call from now on."""
        self._accepting = False

    async def search_logs(
        self,
        client_id: str,
        search_term: Any,
        limit: Any = None,
        duration: Any = None,
    ) -> ResponseEnvelope:
        """Handle one searchLogs call.

        Never raises for per-call failures; every outcome is an envelope.

        Args:
            client_id: Rate-limit key from the transport.
            search_term: Raw term from the caller.
            limit: Raw row cap, or None.
            duration: Raw ISO 8601 lookback, or None.

        Returns:
            ResponseEnvelope with either rows and a summary, or an error message.
        """
        self._logger.info(
            {
                "event": "tool_called",
                "message": f"{TOOL_NAME} called",
                "tool": TOOL_NAME,
                "client_id": client_id,
                "search_term": REDACTED,
                "limit": limit,
                "duration": duration,
            }
        )

        if not self.rate_limiter.check_limit(client_id):
            self._logger.warning(
                {
                    "event": "rate_limit_exceeded",
                    "message": f"Rate limit exceeded for client {client_id}",
                    "tool": TOOL_NAME,
                    "client_id": client_id,
                }
            )
            return ResponseEnvelope.failure(RATE_LIMIT_MESSAGE)

        redact: tuple[str, ...] = ()
        if isinstance(search_term, str):
            redact = (search_term, search_term.strip())

        try:
            if not self._accepting:
                raise ShutdownInProgressError()
            request = validate_search_request(search_term, limit, duration)
            result = await self._run_query(request.search_term, request.limit, request.timespan)
        except Exception as e:
            return ResponseEnvelope.failure(sanitize_error(e, TOOL_NAME, logger=self._logger, redact=redact))

        row_count = count_rows(result)
        self._logger.info(
            {
                "event": "search_completed",
                "message": f"{TOOL_NAME} returned {row_count} entries",
                "tool": TOOL_NAME,
                "client_id": client_id,
                "search_term": REDACTED,
                "row_count": row_count,
                "limit": request.limit,
                "duration": request.duration,
            }
        )
        return ResponseEnvelope.success(
            f"Successfully retrieved {row_count} log entries for search term: {request.search_term}",
            result,
        )

    async def _run_query(self, search_term: str, limit: int, timespan: timedelta) -> QueryResult:
        query = build_search_query(search_term, limit)
        try:
            return await asyncio.wait_for(
                self.query_client.execute_query(self.workspace_id, query, timespan),
                timeout=self.query_timeout,
            )
        except TimeoutError as e:
            raise QueryError(f"Log query timed out after {self.query_timeout:g} seconds", cause=e) from e
