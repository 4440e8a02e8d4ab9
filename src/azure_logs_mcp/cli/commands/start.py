"""Start command for azure-logs-mcp CLI.

Starts the MCP server on the stdio or Streamable HTTP transport.
"""

from __future__ import annotations

__all__ = ["start"]

import asyncio
import sys
from pathlib import Path
from typing import NoReturn

import click

from azure_logs_mcp.config import AppConfig, LoggingConfig, ServerConfig, load_config
from azure_logs_mcp.exceptions import ConfigurationError
from azure_logs_mcp.telemetry.system_logger import get_system_logger
from azure_logs_mcp.transport.common import configure_logging
from azure_logs_mcp.transport.http import run_http_server
from azure_logs_mcp.transport.stdio import run_stdio_server

from ..styling import style_error


def _handle_startup_error(error: ConfigurationError) -> NoReturn:
    """Log a configuration failure, explain it on stderr and exit.

    Raises:
        SystemExit: Always, with the error's exit code.
    """
    get_system_logger().error(
        {
            "event": "startup_failed",
            "message": error.message,
            "error_type": type(error).__name__,
            "missing": list(error.missing),
            "exit_code": error.exit_code,
        }
    )
    click.echo(style_error(f"Error: {error.message}"), err=True)
    if error.missing:
        click.echo("Set them in the environment or in a .env file in the working directory.", err=True)
    sys.exit(error.exit_code)


def _apply_overrides(
    config: AppConfig,
    *,
    transport: str | None,
    host: str | None,
    port: int | None,
    log_file: Path | None,
) -> AppConfig:
    server_updates = {
        key: value
        for key, value in (("transport", transport), ("host", host), ("port", port))
        if value is not None
    }
    server = ServerConfig.model_validate({**config.server.model_dump(), **server_updates})
    logging_config = config.logging
    if log_file is not None:
        logging_config = LoggingConfig(level=config.logging.level, log_file=log_file)
    return config.model_copy(update={"server": server, "logging": logging_config})


@click.command()
@click.option(
    "--transport",
    "-t",
    type=click.Choice(["stdio", "http"]),
    default=None,
    help="Transport to serve on (default: TRANSPORT_MODE, else stdio)",
)
@click.option("--host", default=None, help="Bind address for http (default: HOST, else 127.0.0.1)")
@click.option("--port", "-p", type=click.IntRange(1, 65535), default=None, help="Bind port for http (default: PORT, else 3000)")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Also write warnings and errors as JSONL to this file",
)
def start(transport: str | None, host: str | None, port: int | None, log_file: Path | None) -> None:
    """Start the MCP server.

    stdio requires AZURE_CLIENT_ID, AZURE_TENANT_ID, AZURE_CLIENT_SECRET and
    AZURE_MONITOR_WORKSPACE_ID. http starts without them and reports
    unhealthy on /health until they are set.

    Examples:
        azure-logs-mcp start                        # stdio, for MCP clients
        azure-logs-mcp start -t http --port 3000    # Streamable HTTP on /mcp
    """
    try:
        config = _apply_overrides(
            load_config(),
            transport=transport,
            host=host,
            port=port,
            log_file=log_file,
        )
    except ConfigurationError as e:
        _handle_startup_error(e)

    configure_logging(config)

    runner = run_stdio_server if config.server.transport == "stdio" else run_http_server
    try:
        asyncio.run(runner(config))
    except ConfigurationError as e:
        _handle_startup_error(e)
    except KeyboardInterrupt:
        pass
