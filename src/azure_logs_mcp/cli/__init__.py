"""Command-line interface for azure-logs-mcp.

Provides commands for starting the server on either transport and for
checking Azure connectivity.
"""

from .main import cli, main

__all__ = ["cli", "main"]
