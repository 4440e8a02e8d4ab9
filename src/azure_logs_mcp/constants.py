"""Application-wide constants for azure-logs-mcp.

Constants that define application behavior.
For settings that vary per deployment, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    "SERVER_DISPLAY_NAME",
    "TOOL_NAME",
    "TOOL_TITLE",
    "TOOL_DESCRIPTION",
    # User-facing messages
    "GENERIC_ERROR_MESSAGE",
    "RATE_LIMIT_MESSAGE",
    "QUERY_FAILED_MESSAGE",
    "INTERNAL_ERROR_MESSAGE",
    "SHUTDOWN_MESSAGE",
    "REDACTED",
    # Search request bounds
    "MAX_SEARCH_TERM_LENGTH",
    "DEFAULT_LIMIT",
    "MIN_LIMIT",
    "MAX_LIMIT",
    "DEFAULT_DURATION",
    # Rate limiting
    "DEFAULT_RATE_LIMIT_MAX_REQUESTS",
    "DEFAULT_RATE_LIMIT_WINDOW_SECONDS",
    # Client identity
    "CLIENT_ID_HEADERS",
    "DEFAULT_CLIENT_ID",
    "UNKNOWN_CLIENT_ID",
    # Query engine
    "DEFAULT_QUERY_TIMEOUT_SECONDS",
    "HEALTH_CHECK_QUERY",
    "HEALTH_CHECK_TIMESPAN_MINUTES",
    # Network transport
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "MCP_SESSION_ID_HEADER",
    "JSONRPC_INTERNAL_ERROR",
    "SESSION_TOKEN_BYTES",
    "GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS",
]

# =============================================================================
# Application Identity
# =============================================================================

APP_NAME: str = "azure-logs-mcp"
SERVER_DISPLAY_NAME: str = "Azure Logs MCP Server"

TOOL_NAME: str = "searchLogs"
TOOL_TITLE: str = "Search Logs"
TOOL_DESCRIPTION: str = (
    "Search Azure Application Insights request and dependency logs by a term "
    "such as an order number or transaction ID. Returns matching entries "
    "newest first."
)

# =============================================================================
# User-Facing Messages
# =============================================================================

GENERIC_ERROR_MESSAGE: str = "An error occurred while processing your request. Please try again later."
RATE_LIMIT_MESSAGE: str = "Rate limit exceeded. Please wait before making another request."
QUERY_FAILED_MESSAGE: str = "Failed to query logs. Please check your configuration and try again."
INTERNAL_ERROR_MESSAGE: str = "Internal server error"
SHUTDOWN_MESSAGE: str = "Server is shutting down"

# Placeholder written to logs in place of the search term and secrets
REDACTED: str = "[REDACTED]"

# =============================================================================
# Search Request Bounds
# =============================================================================

MAX_SEARCH_TERM_LENGTH: int = 100
DEFAULT_LIMIT: int = 50
MIN_LIMIT: int = 1
MAX_LIMIT: int = 1000
DEFAULT_DURATION: str = "P7D"

# =============================================================================
# Rate Limiting
# =============================================================================

DEFAULT_RATE_LIMIT_MAX_REQUESTS: int = 10
DEFAULT_RATE_LIMIT_WINDOW_SECONDS: float = 60.0

# =============================================================================
# Client Identity
# =============================================================================

# Checked in order; first non-empty value wins
CLIENT_ID_HEADERS: tuple[str, ...] = ("x-client-id", "mcp-client-id")

# Shared bucket when the transport carries no per-call metadata (stdio)
DEFAULT_CLIENT_ID: str = "default"
UNKNOWN_CLIENT_ID: str = "ip:unknown"

# =============================================================================
# Query Engine
# =============================================================================

# Upper bound for one query; long durations scan a lot of data
DEFAULT_QUERY_TIMEOUT_SECONDS: float = 1800.0

HEALTH_CHECK_QUERY: str = 'print "health_check"'
HEALTH_CHECK_TIMESPAN_MINUTES: int = 5

# =============================================================================
# Network Transport
# =============================================================================

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 3000
MCP_SESSION_ID_HEADER: str = "mcp-session-id"

# JSON-RPC 2.0 reserved code for internal errors
JSONRPC_INTERNAL_ERROR: int = -32603

# 16 bytes = 128 bits of entropy per session token
SESSION_TOKEN_BYTES: int = 16

GRACEFUL_SHUTDOWN_TIMEOUT_SECONDS: int = 10
