"""Tests for the HTTP transport application.

Tests cover:
- Info and health routes
- /mcp session routing, token stripping and error responses
- CORS headers
- Lifespan shutdown
- StreamableSessionHandler lifecycle
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.requests import Request
from starlette.responses import JSONResponse

from azure_logs_mcp import __version__
from azure_logs_mcp.config import AppConfig, ServerConfig
from azure_logs_mcp.constants import INTERNAL_ERROR_MESSAGE, JSONRPC_INTERNAL_ERROR, MCP_SESSION_ID_HEADER
from azure_logs_mcp.pipeline import ToolInvocationPipeline
from azure_logs_mcp.security.rate_limiter import RateLimiter
from azure_logs_mcp.server import create_mcp_server
from azure_logs_mcp.transport.http import StreamableSessionHandler, create_http_app


class EchoHandler:
    """Session handler that answers every request with its own session id.

    DELETE terminates the session, like the real transport.
    """

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        self.seen_tokens: list[str | None] = []
        self.terminated = False
        self.closed = False

    @property
    def is_terminated(self) -> bool:
        return self.terminated

    async def start(self) -> None:
        return None

    async def handle_request(self, scope, receive, send) -> None:
        request = Request(scope)
        self.seen_tokens.append(request.headers.get(MCP_SESSION_ID_HEADER))
        if request.method == "DELETE":
            self.terminated = True
        response = JSONResponse({"session": self.session_id}, headers={MCP_SESSION_ID_HEADER: self.session_id})
        await response(scope, receive, send)

    async def close(self) -> None:
        self.closed = True


class FailingHandler(EchoHandler):
    """Raises before sending anything."""

    async def handle_request(self, scope, receive, send) -> None:
        raise RuntimeError("transport exploded")


class RejectingHandler(EchoHandler):
    """Answers 400, like the transport does for a non-initialize request without a session."""

    async def handle_request(self, scope, receive, send) -> None:
        self.seen_tokens.append(Request(scope).headers.get(MCP_SESSION_ID_HEADER))
        response = JSONResponse({"error": "Bad Request: Missing session ID"}, status_code=400)
        await response(scope, receive, send)


@pytest.fixture
def handlers() -> dict[str, EchoHandler]:
    return {}


@pytest.fixture
def build_app(query_client_factory, handlers, log_records):
    def _build(*, handler_cls=EchoHandler, healthy: bool = True, cors_origins=None):
        query_client = query_client_factory(healthy=healthy)
        pipeline = ToolInvocationPipeline(RateLimiter(), query_client, workspace_id="ws-1")
        server = ServerConfig(cors_origins=cors_origins) if cors_origins else ServerConfig()
        config = AppConfig(server=server)

        def factory(session_id: str):
            handler = handler_cls(session_id)
            handlers[session_id] = handler
            return handler

        return create_http_app(config, pipeline, handler_factory=factory), query_client

    return _build


# =============================================================================
# Plain routes
# =============================================================================


class TestRoutes:
    """Info and health endpoints."""

    def test_info(self, build_app) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            response = client.get("/")

        assert response.status_code == 200
        body = response.json()
        assert body["version"] == __version__
        assert body["tools"] == ["searchLogs"]
        assert body["endpoints"] == {"health": "/health", "mcp": "/mcp"}

    def test_health_healthy(self, build_app) -> None:
        app, _ = build_app(healthy=True)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"
        assert response.json()["timestamp"].endswith("Z")

    def test_health_unhealthy(self, build_app) -> None:
        app, _ = build_app(healthy=False)

        with TestClient(app) as client:
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unhealthy"

    def test_docs_disabled(self, build_app) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            assert client.get("/docs").status_code == 404
            assert client.get("/openapi.json").status_code == 404


# =============================================================================
# /mcp routing
# =============================================================================


class TestMcpEndpoint:
    """Session routing on /mcp."""

    def test_new_session_without_token(self, build_app, handlers) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            response = client.post("/mcp", json={})

        session_id = response.headers[MCP_SESSION_ID_HEADER]
        assert response.status_code == 200
        assert handlers[session_id].seen_tokens == [None]

    def test_known_token_reuses_handler(self, build_app, handlers) -> None:
        # Arrange
        app, _ = build_app()

        with TestClient(app) as client:
            first = client.post("/mcp", json={})
            session_id = first.headers[MCP_SESSION_ID_HEADER]

            # Act
            second = client.post("/mcp", json={}, headers={MCP_SESSION_ID_HEADER: session_id})

        # Assert
        assert second.headers[MCP_SESSION_ID_HEADER] == session_id
        assert list(handlers) == [session_id]
        assert handlers[session_id].seen_tokens == [None, session_id]

    def test_unknown_token_is_stripped(self, build_app, handlers) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            response = client.post("/mcp", json={}, headers={MCP_SESSION_ID_HEADER: "forged-token"})

        session_id = response.headers[MCP_SESSION_ID_HEADER]
        assert session_id != "forged-token"
        assert handlers[session_id].seen_tokens == [None]

    def test_terminated_session_is_removed(self, build_app, handlers) -> None:
        # Arrange
        app, _ = build_app()

        with TestClient(app) as client:
            session_id = client.post("/mcp", json={}).headers[MCP_SESSION_ID_HEADER]

            # Act
            client.delete("/mcp", headers={MCP_SESSION_ID_HEADER: session_id})

            # Assert
            assert app.state.sessions.get(session_id) is None
            assert handlers[session_id].closed is True

    def test_handler_error_returns_jsonrpc_500(self, build_app, log_records) -> None:
        app, _ = build_app(handler_cls=FailingHandler)

        with TestClient(app) as client:
            response = client.post("/mcp", json={})

        assert response.status_code == 500
        assert response.json() == {
            "jsonrpc": "2.0",
            "error": {"code": JSONRPC_INTERNAL_ERROR, "message": INTERNAL_ERROR_MESSAGE},
            "id": None,
        }
        failure = log_records.events("mcp_request_failed")[0]
        assert failure["error"] == "transport exploded"

    def test_rejected_request_does_not_keep_session(self, build_app, handlers, log_records) -> None:
        """A new session whose first request fails is dropped at once."""
        # Arrange
        app, _ = build_app(handler_cls=RejectingHandler)

        with TestClient(app) as client:
            # Act
            statuses = [
                client.post("/mcp", json={}, headers={MCP_SESSION_ID_HEADER: "stale-token"}).status_code
                for _ in range(5)
            ]
            statuses.append(client.delete("/mcp", headers={MCP_SESSION_ID_HEADER: "stale-token"}).status_code)

            # Assert
            assert statuses == [400] * 6
            assert app.state.sessions.active_count == 0

        assert len(handlers) == 6
        assert all(h.closed for h in handlers.values())
        assert {e["reason"] for e in log_records.events("session_closed")} == {"not_initialized"}

    def test_failed_request_does_not_keep_session(self, build_app) -> None:
        app, _ = build_app(handler_cls=FailingHandler)

        with TestClient(app) as client:
            client.post("/mcp", json={})

            assert app.state.sessions.active_count == 0

    def test_session_start_error_returns_500(self, build_app, log_records) -> None:
        class BrokenStart(EchoHandler):
            async def start(self) -> None:
                raise OSError("cannot connect streams")

        app, _ = build_app(handler_cls=BrokenStart)

        with TestClient(app) as client:
            response = client.post("/mcp", json={})

        assert response.status_code == 500
        assert response.json()["error"]["message"] == INTERNAL_ERROR_MESSAGE
        assert len(log_records.events("session_create_failed")) == 1

    def test_shutdown_refuses_new_sessions(self, build_app) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            client.portal.call(app.state.sessions.close_all)
            response = client.post("/mcp", json={})

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "Server is shutting down"

    def test_unsupported_method(self, build_app) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            response = client.put("/mcp", json={})

        assert response.status_code == 405


# =============================================================================
# CORS
# =============================================================================


class TestCors:
    """Cross-origin headers."""

    def test_wildcard_origin(self, build_app) -> None:
        app, _ = build_app()

        with TestClient(app) as client:
            response = client.get("/", headers={"Origin": "https://elsewhere.example"})

        assert response.headers["access-control-allow-origin"] == "*"
        assert "access-control-allow-credentials" not in response.headers
        assert response.headers["access-control-expose-headers"] == "Mcp-Session-Id"

    def test_preflight_for_configured_origin(self, build_app) -> None:
        app, _ = build_app(cors_origins=["https://app.example.com"])

        with TestClient(app) as client:
            response = client.options(
                "/mcp",
                headers={
                    "Origin": "https://app.example.com",
                    "Access-Control-Request-Method": "POST",
                    "Access-Control-Request-Headers": "content-type, mcp-session-id",
                },
            )

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://app.example.com"
        assert response.headers["access-control-allow-credentials"] == "true"

    def test_preflight_rejects_other_origin(self, build_app) -> None:
        app, _ = build_app(cors_origins=["https://app.example.com"])

        with TestClient(app) as client:
            response = client.options(
                "/mcp",
                headers={"Origin": "https://evil.example", "Access-Control-Request-Method": "POST"},
            )

        assert response.status_code == 400


# =============================================================================
# Lifespan
# =============================================================================


class TestLifespan:
    """Shutdown through the application lifespan."""

    def test_shutdown_closes_sessions_and_client(self, build_app, handlers, log_records) -> None:
        # Arrange
        app, query_client = build_app()

        # Act
        with TestClient(app) as client:
            client.post("/mcp", json={})
            client.post("/mcp", json={})

        # Assert
        assert len(handlers) == 2
        assert all(h.closed for h in handlers.values())
        assert app.state.sessions.active_count == 0
        assert app.state.pipeline.accepting is False
        assert query_client.closed is True
        assert len(log_records.events("http_server_stopped")) == 1


class TestStreamableSessionHandler:
    """The real per-session handler around FastMCP."""

    @pytest.mark.asyncio
    async def test_start_and_close(self, query_client_factory, log_records) -> None:
        # Arrange
        pipeline = ToolInvocationPipeline(RateLimiter(), query_client_factory(), workspace_id="ws-1")
        handler = StreamableSessionHandler("a" * 32, lambda: create_mcp_server(pipeline))

        # Act
        await handler.start()
        running = not handler.is_terminated
        await handler.close()

        # Assert
        assert running is True
        assert handler.is_terminated is True
        assert handler.request_count == 0

    def test_wraps_fastmcp_low_level_server(self, query_client_factory) -> None:
        """The handler runs FastMCP's low-level server directly."""
        pipeline = ToolInvocationPipeline(RateLimiter(), query_client_factory(), workspace_id="ws-1")

        server = create_mcp_server(pipeline)

        assert callable(server._mcp_server.run)
        assert callable(server._mcp_server.create_initialization_options)

    def test_non_initialize_requests_leave_no_sessions(self, query_client_factory, log_records) -> None:
        """Requests that never initialize a session do not accumulate handlers."""
        # Arrange
        pipeline = ToolInvocationPipeline(RateLimiter(), query_client_factory(), workspace_id="ws-1")
        app = create_http_app(AppConfig(), pipeline)
        headers = {
            MCP_SESSION_ID_HEADER: "stale-token",
            "Accept": "application/json, text/event-stream",
        }
        body = {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}

        with TestClient(app) as client:
            # Act
            responses = [client.post("/mcp", json=body, headers=headers) for _ in range(5)]
            responses.append(client.delete("/mcp", headers=headers))

            # Assert
            assert all(r.status_code >= 400 for r in responses)
            assert app.state.sessions.active_count == 0
