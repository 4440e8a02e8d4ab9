"""azure-logs-mcp: MCP server for searching Azure Application Insights request logs."""

__version__ = "1.0.0"
