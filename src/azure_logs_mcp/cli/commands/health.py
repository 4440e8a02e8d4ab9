"""Health command for azure-logs-mcp CLI.

Exit status 0 means healthy and 1 means unhealthy, so the command can serve
as a container health check.
"""

from __future__ import annotations

__all__ = ["health"]

import asyncio
import sys

import click
import httpx

from azure_logs_mcp.config import AzureConfig, load_config
from azure_logs_mcp.exceptions import ConfigurationError
from azure_logs_mcp.query import AzureLogsQueryClient
from azure_logs_mcp.transport.common import configure_logging

from ..styling import style_error, style_success


async def _check_azure() -> bool:
    client = AzureLogsQueryClient(AzureConfig.from_env())
    try:
        return await client.health_check()
    finally:
        await client.close()


def _check_server(url: str, timeout: float) -> bool:
    try:
        response = httpx.get(f"{url.rstrip('/')}/health", timeout=timeout)
    except httpx.HTTPError as e:
        click.echo(style_error(f"Could not reach {url}: {type(e).__name__}"), err=True)
        return False
    return response.status_code == 200


@click.command()
@click.option("--url", default=None, help="Check a running HTTP server instead (e.g. http://127.0.0.1:3000)")
@click.option("--timeout", type=float, default=10.0, show_default=True, help="Seconds to wait for --url")
def health(url: str | None, timeout: float) -> None:
    """Check Azure connectivity.

    Without --url, runs a trivial query against the configured workspace.
    With --url, asks a running server's /health endpoint.
    """
    if url:
        healthy = _check_server(url, timeout)
    else:
        try:
            config = load_config()
            configure_logging(config)
            healthy = asyncio.run(_check_azure())
        except ConfigurationError as e:
            click.echo(style_error(f"Error: {e.message}"), err=True)
            sys.exit(e.exit_code)

    if healthy:
        click.echo(style_success("healthy"))
        sys.exit(0)
    click.echo(style_error("unhealthy"), err=True)
    sys.exit(1)
