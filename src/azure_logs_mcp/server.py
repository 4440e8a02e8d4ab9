"""MCP tool surface.

create_mcp_server() builds a FastMCP server exposing the single searchLogs
tool. The tool is a thin adapter: it asks the transport-specific identity
resolver who is calling, runs the shared pipeline, and maps the envelope to
an MCP result (two text items) or a ToolError (one text item, isError=true).
"""

from __future__ import annotations

__all__ = [
    "IdentityResolver",
    "create_mcp_server",
    "http_identity",
    "stdio_identity",
]

from collections.abc import Callable
from typing import Annotated, Any

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.server.dependencies import get_http_request
from fastmcp.tools.tool import ToolResult
from mcp.types import TextContent
from pydantic import Field

from azure_logs_mcp import __version__
from azure_logs_mcp.constants import (
    APP_NAME,
    DEFAULT_CLIENT_ID,
    DEFAULT_DURATION,
    DEFAULT_LIMIT,
    MAX_LIMIT,
    MAX_SEARCH_TERM_LENGTH,
    TOOL_DESCRIPTION,
    TOOL_NAME,
    TOOL_TITLE,
)
from azure_logs_mcp.pipeline import ToolInvocationPipeline
from azure_logs_mcp.security.identity import extract_client_id

IdentityResolver = Callable[[], str]


def stdio_identity() -> str:
    """All stdio traffic shares one bucket."""
    return DEFAULT_CLIENT_ID


def http_identity() -> str:
    """Identity from the HTTP request behind the current tool call."""
    try:
        request = get_http_request()
    except RuntimeError:
        request = None
    return extract_client_id(request)


def create_mcp_server(
    pipeline: ToolInvocationPipeline,
    identity_resolver: IdentityResolver = stdio_identity,
) -> FastMCP:
    """Create a FastMCP server with the searchLogs tool registered.

    Args:
        pipeline: Shared call pipeline.
        identity_resolver: Returns the rate-limit key for the current call.

    Returns:
        FastMCP server named after the application.
    """
    mcp = FastMCP(name=APP_NAME, version=__version__)

    # camelCase argument names are part of the tool's wire schema. Types stay
    # open: the pipeline validates every value after the rate-limit gate.
    @mcp.tool(name=TOOL_NAME, title=TOOL_TITLE, description=TOOL_DESCRIPTION)
    async def search_logs(
        searchTerm: Annotated[
            Any,
            Field(
                description=(
                    "Term to search for, e.g. an order number or transaction ID. "
                    f"Letters, digits, hyphens, underscores and dots; at most {MAX_SEARCH_TERM_LENGTH} characters."
                ),
            ),
        ],
        limit: Annotated[
            Any,
            Field(description=f"Maximum entries to return (1-{MAX_LIMIT}, default {DEFAULT_LIMIT})."),
        ] = None,
        duration: Annotated[
            Any,
            Field(description=f"ISO 8601 lookback window such as P7D or PT24H (default {DEFAULT_DURATION})."),
        ] = None,
    ) -> ToolResult:
        envelope = await pipeline.search_logs(identity_resolver(), searchTerm, limit, duration)
        if envelope.is_error:
            raise ToolError(envelope.message)
        return ToolResult(content=[TextContent(type="text", text=text) for text in envelope.content_texts()])

    return mcp
