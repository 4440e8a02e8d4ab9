"""Transport entrypoints.

Two thin adapters around the shared call pipeline:
- stdio: one client over stdin/stdout, shared identity bucket
- http: Streamable HTTP with per-session protocol handlers
"""

from azure_logs_mcp.transport.common import build_pipeline, run_startup_checks
from azure_logs_mcp.transport.http import create_http_app, run_http_server
from azure_logs_mcp.transport.stdio import run_stdio_server

__all__ = [
    "build_pipeline",
    "create_http_app",
    "run_http_server",
    "run_startup_checks",
    "run_stdio_server",
]
