"""Custom exceptions for azure-logs-mcp.

Every error raised by this package carries an explicit ErrorKind tag. The
error sanitizer decides what the caller may see by switching on that tag,
never on the class or the message text.

Disclosure-safe (message reaches the caller verbatim):
    - ValidationError: Malformed or out-of-range tool input
    - ConfigurationError: Required settings missing or invalid

Generalized (caller sees the generic retry-later message):
    - QueryError: The log-analytics query failed (auth, network, timeout)
    - ShutdownInProgressError: A new session was requested during shutdown

Usage:
    from azure_logs_mcp.exceptions import ValidationError, QueryError
"""

from __future__ import annotations

__all__ = [
    "AzureLogsError",
    "ConfigurationError",
    "ErrorKind",
    "QueryError",
    "ShutdownInProgressError",
    "ValidationError",
]

from enum import Enum


class ErrorKind(str, Enum):
    """Failure category used for disclosure decisions."""

    VALIDATION = "validation"
    CONFIGURATION = "configuration"
    QUERY = "query"
    SHUTDOWN = "shutdown"

    @property
    def disclosure_safe(self) -> bool:
        """Whether messages of this kind may be shown to callers unchanged."""
        return self in (ErrorKind.VALIDATION, ErrorKind.CONFIGURATION)


class AzureLogsError(Exception):
    """Base class for all tagged errors in this package.

    Attributes:
        message: Human-readable description.
        kind: Failure category.
        cause: Underlying exception, kept for logging only.
    """

    def __init__(
        self,
        message: str,
        *,
        kind: ErrorKind,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.cause = cause

    @property
    def disclosure_safe(self) -> bool:
        """Whether this error's message may be shown to the caller."""
        return self.kind.disclosure_safe


class ValidationError(AzureLogsError):
    """Raised when tool input fails validation.

    Messages never echo the offending value back, so they are always safe
    to return to the caller.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=ErrorKind.VALIDATION)


class ConfigurationError(AzureLogsError):
    """Raised when required configuration is missing or invalid.

    Fatal at startup for the stdio transport. The HTTP transport logs it
    and keeps serving so the health endpoint can report the problem.

    Attributes:
        missing: Names of the environment variables that were absent.
        exit_code: Process exit code used by the CLI.
    """

    exit_code: int = 16

    def __init__(self, message: str, *, missing: tuple[str, ...] = ()) -> None:
        super().__init__(message, kind=ErrorKind.CONFIGURATION)
        self.missing = missing


class QueryError(AzureLogsError):
    """Raised when the external log query fails.

    The message is operator-facing. The original exception is kept in
    ``cause`` and logged, but nothing from it ever reaches the caller.
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message, kind=ErrorKind.QUERY, cause=cause)


class ShutdownInProgressError(AzureLogsError):
    """Raised when a session is requested after shutdown has begun."""

    def __init__(self, message: str = "Server is shutting down") -> None:
        super().__init__(message, kind=ErrorKind.SHUTDOWN)
