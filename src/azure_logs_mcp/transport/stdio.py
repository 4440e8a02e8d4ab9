"""stdio transport.

Serves one MCP client over stdin/stdout. There is no per-call metadata on
this transport, so every call lands in the shared DEFAULT_CLIENT_ID
rate-limit bucket.

Azure settings are required here: a missing variable raises
ConfigurationError before the server reads its first message.
"""

from __future__ import annotations

__all__ = ["run_stdio_server"]

import asyncio
import signal

from azure_logs_mcp.config import AppConfig, AzureConfig
from azure_logs_mcp.query import AzureLogsQueryClient
from azure_logs_mcp.security.rate_limiter import RateLimitSweeper
from azure_logs_mcp.server import create_mcp_server, stdio_identity
from azure_logs_mcp.telemetry.system_logger import get_system_logger
from azure_logs_mcp.transport.common import build_pipeline, run_startup_checks

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


async def run_stdio_server(config: AppConfig) -> None:
    """Serve over stdio until the client disconnects or a signal arrives.

    Raises:
        ConfigurationError: If Azure settings are missing (before serving).
    """
    logger = get_system_logger()

    azure = AzureConfig.from_env()
    query_client = AzureLogsQueryClient(azure)
    pipeline = build_pipeline(config, query_client, workspace_id=azure.workspace_id)
    server = create_mcp_server(pipeline, identity_resolver=stdio_identity)
    sweeper = RateLimitSweeper(pipeline.rate_limiter)

    await run_startup_checks(query_client, config)

    loop = asyncio.get_running_loop()
    serve_task = asyncio.create_task(server.run_stdio_async(show_banner=False), name="mcp_stdio_server")
    received: list[str] = []

    def _request_shutdown(signal_name: str) -> None:
        if received:
            return
        received.append(signal_name)
        logger.info(
            {
                "event": "shutdown_requested",
                "message": f"Received {signal_name}, shutting down",
                "signal": signal_name,
            }
        )
        pipeline.shutdown()
        serve_task.cancel()

    installed: list[signal.Signals] = []
    for sig in _SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no signal handler support
            pass

    await sweeper.start()
    logger.info({"event": "stdio_server_started", "message": "MCP server running on stdio"})

    try:
        await serve_task
    except asyncio.CancelledError:
        # Only swallow the cancellation we asked for
        if not received:
            raise
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)
        pipeline.shutdown()
        await sweeper.stop()
        await query_client.close()
        logger.info({"event": "stdio_server_stopped", "message": "MCP server stopped"})
