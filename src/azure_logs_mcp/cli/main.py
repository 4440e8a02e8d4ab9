"""Main CLI entry point for azure-logs-mcp.

Commands:
    start   - Start the MCP server (stdio or http)
    health  - Check Azure connectivity, or a running server's /health

Subcommand help:
    azure-logs-mcp COMMAND -h
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from azure_logs_mcp import __version__

from .commands.health import health
from .commands.start import start


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """azure-logs-mcp: search Application Insights request logs over MCP."""
    if version:
        click.echo(f"azure-logs-mcp {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(start)
cli.add_command(health)


def main() -> None:
    """CLI entry point."""
    cli()
