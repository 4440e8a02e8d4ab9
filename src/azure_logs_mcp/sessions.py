"""Session registry for the HTTP transport.

Maps an opaque session token to the one protocol handler serving it.

Lifecycle per session:
    UNINITIALIZED -> ACTIVE -> CLOSED (terminal)

- A request with no token, or a token the registry does not know, gets a
  fresh token and a freshly started handler.
- A request with a known token is routed to the existing handler.
- close() and close_all() move sessions to CLOSED and drop them. Tokens are
  128-bit random values and are never handed out twice.

Tokens are for continuity, not authorization: an unknown token is treated
like a missing one rather than rejected.
"""

from __future__ import annotations

__all__ = [
    "Session",
    "SessionHandler",
    "SessionRegistry",
    "SessionState",
]

import asyncio
import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol

from azure_logs_mcp.constants import SESSION_TOKEN_BYTES
from azure_logs_mcp.exceptions import ShutdownInProgressError
from azure_logs_mcp.telemetry.system_logger import get_system_logger


class SessionState(str, Enum):
    UNINITIALIZED = "uninitialized"
    ACTIVE = "active"
    CLOSED = "closed"


class SessionHandler(Protocol):
    """A live protocol handler owned by exactly one session."""

    @property
    def is_terminated(self) -> bool: ...

    async def start(self) -> None: ...

    async def handle_request(self, scope: Any, receive: Any, send: Any) -> None: ...

    async def close(self) -> None: ...


@dataclass
class Session:
    """One registered session.

    Attributes:
        session_id: Opaque token sent in the mcp-session-id header.
        handler: The protocol handler bound to this token.
        state: Lifecycle state.
        created_at: When the session was created.
    """

    session_id: str
    handler: SessionHandler
    state: SessionState = SessionState.UNINITIALIZED
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_live(self) -> bool:
        return self.state is SessionState.ACTIVE and not self.handler.is_terminated


class SessionRegistry:
    """Registry of live sessions keyed by token.

    Insert and delete are serialized by an asyncio.Lock. Requests sharing one
    token are not serialized here; the transport delivers those in order.
    """

    def __init__(
        self,
        handler_factory: Callable[[str], SessionHandler],
        *,
        logger: logging.Logger | None = None,
    ) -> None:
        """Initialize the registry.

        Args:
            handler_factory: Builds an unstarted handler for a new token.
            logger: Operational log sink. Defaults to the system logger.
        """
        self._handler_factory = handler_factory
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()
        self._shutting_down = False
        self._logger = logger or get_system_logger()

    @property
    def active_count(self) -> int:
        """Number of registered sessions."""
        return len(self._sessions)

    @property
    def is_shutting_down(self) -> bool:
        return self._shutting_down

    def get(self, session_id: str) -> Session | None:
        """Look up a session without creating one."""
        return self._sessions.get(session_id)

    def _mint_token(self) -> str:
        while True:
            token = secrets.token_hex(SESSION_TOKEN_BYTES)
            if token not in self._sessions:
                return token

    async def acquire(self, token: str | None) -> Session:
        """Return the session for a token, creating one if needed.

        Args:
            token: Value of the session header, if the request carried one.

        Returns:
            An ACTIVE session. Its session_id differs from ``token`` when a
            new session was created.

        Raises:
            ShutdownInProgressError: If close_all() has been called.
        """
        stale: Session | None = None

        async with self._lock:
            if self._shutting_down:
                raise ShutdownInProgressError()

            if token:
                existing = self._sessions.get(token)
                if existing is not None and existing.is_live:
                    return existing
                if existing is not None:
                    stale = self._sessions.pop(token)

            session_id = self._mint_token()
            session = Session(session_id=session_id, handler=self._handler_factory(session_id))
            await session.handler.start()
            session.state = SessionState.ACTIVE
            self._sessions[session_id] = session

        if stale is not None:
            await self._release(stale, reason="terminated")

        self._logger.info(
            {
                "event": "session_created",
                "message": "MCP session created",
                "session_id": session_id,
                "replaced_unknown_token": bool(token),
                "active_sessions": self.active_count,
            }
        )
        return session

    async def close(self, session_id: str, *, reason: str = "closed") -> bool:
        """Close and drop one session.

        Returns:
            True if the session was registered, False otherwise.
        """
        async with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            return False
        await self._release(session, reason=reason)
        return True

    async def close_all(self) -> int:
        """Close every session and refuse new ones.

        Returns:
            Number of sessions closed.
        """
        async with self._lock:
            self._shutting_down = True
            sessions = list(self._sessions.values())
            self._sessions.clear()

        for session in sessions:
            await self._release(session, reason="shutdown")

        if sessions:
            self._logger.info(
                {
                    "event": "sessions_closed",
                    "message": f"Closed {len(sessions)} MCP session(s) for shutdown",
                    "count": len(sessions),
                }
            )
        return len(sessions)

    async def _release(self, session: Session, *, reason: str) -> None:
        if session.state is SessionState.CLOSED:
            return
        session.state = SessionState.CLOSED
        try:
            await session.handler.close()
        except Exception as e:
            self._logger.warning(
                {
                    "event": "session_close_failed",
                    "message": "Error while closing MCP session",
                    "session_id": session.session_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
        self._logger.info(
            {
                "event": "session_closed",
                "message": "MCP session closed",
                "session_id": session.session_id,
                "reason": reason,
            }
        )
