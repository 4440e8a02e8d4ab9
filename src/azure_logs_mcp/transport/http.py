"""Streamable HTTP transport.

Routes:
    GET  /          Server info
    GET  /health    Azure connectivity (200 healthy, 503 unhealthy)
    *    /mcp       MCP Streamable HTTP (GET, POST, DELETE)

Each MCP session gets its own FastMCP server and StreamableHTTPServerTransport,
held by the SessionRegistry under the token sent in the mcp-session-id
header. The rate limiter and query client are shared by all sessions.

Missing Azure settings do not stop this transport: it starts, logs a
warning, and /health reports unhealthy so operators can see the problem.
"""

from __future__ import annotations

__all__ = [
    "McpEndpoint",
    "StreamableSessionHandler",
    "create_http_app",
    "run_http_server",
]

import asyncio
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastmcp import FastMCP
from mcp.server.streamable_http import StreamableHTTPServerTransport
from starlette.requests import Request
from starlette.types import Message, Receive, Scope, Send

from azure_logs_mcp import __version__
from azure_logs_mcp.config import AppConfig, AzureConfig
from azure_logs_mcp.constants import (
    GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS,
    INTERNAL_ERROR_MESSAGE,
    JSONRPC_INTERNAL_ERROR,
    MCP_SESSION_ID_HEADER,
    SERVER_DISPLAY_NAME,
    SHUTDOWN_MESSAGE,
    TOOL_NAME,
)
from azure_logs_mcp.exceptions import ConfigurationError, ShutdownInProgressError
from azure_logs_mcp.pipeline import ToolInvocationPipeline
from azure_logs_mcp.query import AzureLogsQueryClient, LogsQueryCapability, UnconfiguredQueryClient
from azure_logs_mcp.security.rate_limiter import RateLimitSweeper
from azure_logs_mcp.server import create_mcp_server, http_identity
from azure_logs_mcp.sessions import SessionHandler, SessionRegistry
from azure_logs_mcp.telemetry.system_logger import get_system_logger
from azure_logs_mcp.transport.common import build_pipeline, run_startup_checks

_SESSION_HEADER_BYTES = MCP_SESSION_ID_HEADER.encode("latin-1")


def _utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _jsonrpc_error(message: str) -> dict[str, object]:
    return {
        "jsonrpc": "2.0",
        "error": {"code": JSONRPC_INTERNAL_ERROR, "message": message},
        "id": None,
    }


# =============================================================================
# Per-session protocol handler
# =============================================================================


class StreamableSessionHandler:
    """One FastMCP server bound to one Streamable HTTP transport.

    The server's message loop runs in a background task for the life of the
    session; requests are fed to it through handle_request().
    """

    def __init__(self, session_id: str, server_factory: Callable[[], FastMCP]) -> None:
        self.session_id = session_id
        self.request_count = 0
        self._server = server_factory()
        self._transport = StreamableHTTPServerTransport(mcp_session_id=session_id)
        self._task: asyncio.Task[None] | None = None

    @property
    def is_terminated(self) -> bool:
        return self._transport.is_terminated

    async def start(self) -> None:
        """Connect the transport and start the server loop.

        Returns once the transport streams are open.
        """
        ready = asyncio.Event()
        self._task = asyncio.create_task(self._run(ready), name=f"mcp_session_{self.session_id[:8]}")
        ready_wait = asyncio.ensure_future(ready.wait())
        done, _ = await asyncio.wait({ready_wait, self._task}, return_when=asyncio.FIRST_COMPLETED)
        if ready_wait not in done:
            ready_wait.cancel()
            # Server loop exited before the transport connected
            self._task.result()
            raise RuntimeError("MCP session ended before it was ready")

    async def _run(self, ready: asyncio.Event) -> None:
        # NOTE: _mcp_server is FastMCP's low-level server. FastMCP only exposes
        # whole-app HTTP runners, and we need one server per session token.
        server = self._server._mcp_server
        async with self._transport.connect() as (read_stream, write_stream):
            ready.set()
            await server.run(
                read_stream,
                write_stream,
                server.create_initialization_options(),
                stateless=False,
            )

    async def handle_request(self, scope: Scope, receive: Receive, send: Send) -> None:
        self.request_count += 1
        await self._transport.handle_request(scope, receive, send)

    async def close(self) -> None:
        """Stop the server loop and terminate the transport."""
        # Stop the loop first so it never reads from a closed stream
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if not self._transport.is_terminated:
            await self._transport.terminate()


# =============================================================================
# /mcp endpoint
# =============================================================================


class _SendTracker:
    """Wraps ASGI send to record whether a response has started, and its status."""

    def __init__(self, send: Send) -> None:
        self._send = send
        self.response_started = False
        self.status_code: int | None = None

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            self.response_started = True
            self.status_code = message["status"]
        await self._send(message)


def _without_session_header(scope: Scope) -> Scope:
    headers = [(name, value) for name, value in scope["headers"] if name.lower() != _SESSION_HEADER_BYTES]
    return {**scope, "headers": headers}


class McpEndpoint:
    """ASGI app that routes /mcp requests to their session's handler.

    A token the registry does not know is stripped from the request before it
    reaches the new session's transport, so the request is served as a fresh
    session instead of being rejected. A session created for a request that
    does not get a successful response (anything but an accepted initialize)
    is closed again before the request returns.
    """

    def __init__(self, registry: SessionRegistry, *, logger: logging.Logger | None = None) -> None:
        self.registry = registry
        self._logger = logger or get_system_logger()

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        token = Request(scope).headers.get(MCP_SESSION_ID_HEADER)

        try:
            session = await self.registry.acquire(token)
        except ShutdownInProgressError:
            await JSONResponse(_jsonrpc_error(SHUTDOWN_MESSAGE), status_code=503)(scope, receive, send)
            return
        except Exception as e:
            self._log_failure("session_create_failed", e)
            await JSONResponse(_jsonrpc_error(INTERNAL_ERROR_MESSAGE), status_code=500)(scope, receive, send)
            return

        created = token != session.session_id
        if token and created:
            scope = _without_session_header(scope)

        tracker = _SendTracker(send)
        try:
            await session.handler.handle_request(scope, receive, tracker)
        except Exception as e:
            self._log_failure("mcp_request_failed", e, session_id=session.session_id)
            if not tracker.response_started:
                await JSONResponse(_jsonrpc_error(INTERNAL_ERROR_MESSAGE), status_code=500)(scope, receive, send)
        finally:
            if session.handler.is_terminated:
                await self.registry.close(session.session_id, reason="terminated")
            elif created and (tracker.status_code is None or tracker.status_code >= 400):
                # The client never received a usable token for this session
                await self.registry.close(session.session_id, reason="not_initialized")

    def _log_failure(self, event: str, error: Exception, *, session_id: str | None = None) -> None:
        self._logger.error(
            {
                "event": event,
                "message": "Unexpected error handling MCP request",
                "session_id": session_id,
                "error": str(error),
                "error_type": type(error).__name__,
            }
        )


# =============================================================================
# Application
# =============================================================================


def create_http_app(
    config: AppConfig,
    pipeline: ToolInvocationPipeline,
    *,
    handler_factory: Callable[[str], SessionHandler] | None = None,
) -> FastAPI:
    """Create the FastAPI application for the HTTP transport.

    Args:
        config: Application settings (CORS origins are read from here).
        pipeline: Shared call pipeline.
        handler_factory: Builds the handler for a new session token.
            Defaults to a StreamableSessionHandler around a new FastMCP server.

    Returns:
        Configured FastAPI application. The session registry is exposed as
        ``app.state.sessions``.
    """
    def _streamable_handler(session_id: str) -> SessionHandler:
        return StreamableSessionHandler(
            session_id,
            lambda: create_mcp_server(pipeline, identity_resolver=http_identity),
        )

    registry = SessionRegistry(handler_factory or _streamable_handler)
    sweeper = RateLimitSweeper(pipeline.rate_limiter)
    query_client: LogsQueryCapability = pipeline.query_client
    logger = get_system_logger()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await sweeper.start()
        logger.info(
            {
                "event": "http_server_started",
                "message": f"{SERVER_DISPLAY_NAME} {__version__} listening",
                "cors_origins": config.server.cors_origins,
            }
        )
        try:
            yield
        finally:
            pipeline.shutdown()
            await registry.close_all()
            await sweeper.stop()
            await query_client.close()
            logger.info({"event": "http_server_stopped", "message": "HTTP server stopped"})

    app = FastAPI(
        title=SERVER_DISPLAY_NAME,
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    app.state.sessions = registry
    app.state.pipeline = pipeline

    allow_all = "*" in config.server.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else config.server.cors_origins,
        allow_credentials=not allow_all,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", MCP_SESSION_ID_HEADER, "x-client-id", "mcp-client-id"],
        expose_headers=["Mcp-Session-Id"],
    )

    @app.get("/health")
    async def health() -> JSONResponse:
        """Report Azure connectivity."""
        if await query_client.health_check():
            return JSONResponse({"status": "healthy", "timestamp": _utc_timestamp()})
        return JSONResponse(
            {
                "status": "unhealthy",
                "error": "Azure connectivity check failed",
                "timestamp": _utc_timestamp(),
            },
            status_code=503,
        )

    @app.get("/")
    async def info() -> dict[str, object]:
        """Describe the server."""
        return {
            "name": SERVER_DISPLAY_NAME,
            "version": __version__,
            "transport": "http",
            "endpoints": {"health": "/health", "mcp": "/mcp"},
            "tools": [TOOL_NAME],
        }

    app.add_route("/mcp", McpEndpoint(registry), methods=["GET", "POST", "DELETE"])

    return app


async def run_http_server(config: AppConfig) -> None:
    """Serve the HTTP transport until uvicorn receives SIGINT or SIGTERM.

    Uvicorn owns the signal handling. Shutdown runs the app lifespan, which
    closes every session before the process exits.
    """
    logger = get_system_logger()

    query_client: LogsQueryCapability
    try:
        azure = AzureConfig.from_env()
    except ConfigurationError as e:
        logger.warning(
            {
                "event": "azure_config_missing",
                "message": f"{e.message}. Starting anyway; /health will report unhealthy",
                "missing": list(e.missing),
            }
        )
        query_client = UnconfiguredQueryClient(e)
        workspace_id = ""
    else:
        query_client = AzureLogsQueryClient(azure)
        workspace_id = azure.workspace_id

    pipeline = build_pipeline(config, query_client, workspace_id=workspace_id)
    app = create_http_app(config, pipeline)

    await run_startup_checks(query_client, config)

    # Mute uvicorn's own loggers below WARNING
    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    server = uvicorn.Server(
        uvicorn.Config(
            app,
            host=config.server.host,
            port=config.server.port,
            log_config=None,
            ws="none",
            timeout_graceful_shutdown=GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS,
        )
    )
    await server.serve()
