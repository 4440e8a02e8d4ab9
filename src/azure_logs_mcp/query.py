"""Outbound log queries against Azure Monitor (Application Insights).

The pipeline only depends on the LogsQueryCapability protocol: run one query
against one workspace over one timespan, and get tables back or an
exception. AzureLogsQueryClient implements it with azure-monitor-query and
a service-principal credential from azure-identity. The SDK client is
synchronous, so calls run in a worker thread.

Results are normalized to plain JSON-compatible dicts:
    {"tables": [{"name": ..., "columns": [{"name", "type"}], "rows": [[...]]}]}
"""

from __future__ import annotations

__all__ = [
    "AzureLogsQueryClient",
    "LogsQueryCapability",
    "QueryResult",
    "UnconfiguredQueryClient",
    "build_search_query",
    "count_rows",
]

import asyncio
import threading
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Protocol, TypedDict

from azure.core.exceptions import AzureError
from azure.identity import ClientSecretCredential
from azure.monitor.query import LogsQueryClient, LogsQueryStatus

from azure_logs_mcp.constants import (
    HEALTH_CHECK_QUERY,
    HEALTH_CHECK_TIMESPAN_MINUTES,
    QUERY_FAILED_MESSAGE,
)
from azure_logs_mcp.exceptions import ConfigurationError, QueryError
from azure_logs_mcp.telemetry.system_logger import get_system_logger

if TYPE_CHECKING:
    from azure_logs_mcp.config import AzureConfig

# Server-side limit accepted by the Log Analytics API
_MAX_SERVER_TIMEOUT_SECONDS = 600


class QueryColumn(TypedDict):
    name: str
    type: str


class QueryTable(TypedDict):
    name: str
    columns: list[QueryColumn]
    rows: list[list[Any]]


class QueryResult(TypedDict):
    tables: list[QueryTable]


class LogsQueryCapability(Protocol):
    """Anything that can run a log query for the pipeline."""

    async def execute_query(self, workspace_id: str, query: str, timespan: timedelta) -> QueryResult: ...

    async def health_check(self) -> bool: ...

    async def close(self) -> None: ...


def build_search_query(search_term: str, limit: int) -> str:
    """Render the KQL search over requests and dependencies.

    Only call with a validated term: the charset check is what keeps the
    string literal below well-formed.

    Args:
        search_term: Validated term ([A-Za-z0-9._-], at most 100 chars).
        limit: Validated row cap.

    Returns:
        KQL query text.
    """
    return (
        f'let searchTerm = "{search_term}";\n'
        "union isfuzzy=true AppRequests, AppDependencies\n"
        "| where Url has searchTerm or tostring(Properties) has searchTerm or Name has searchTerm\n"
        "| project TimeGeneratedUtc=TimeGenerated, Name, Url, ResultCode, DurationMs,\n"
        '    RequestBody=Properties["Request-Body"], ResponseBody=Properties["Response-Body"]\n'
        "| order by TimeGeneratedUtc desc\n"
        f"| limit {limit}"
    )


def count_rows(result: QueryResult) -> int:
    """Total rows across all tables."""
    return sum(len(table["rows"]) for table in result["tables"])


def _to_json_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, Decimal):
        return float(value)
    return value


def _normalize_tables(tables: Any) -> QueryResult:
    normalized: list[QueryTable] = []
    for table in tables or []:
        column_types = list(getattr(table, "columns_types", None) or [])
        columns: list[QueryColumn] = [
            {"name": str(name), "type": str(column_types[i]) if i < len(column_types) else "dynamic"}
            for i, name in enumerate(table.columns)
        ]
        rows = [[_to_json_value(cell) for cell in row] for row in table.rows]
        normalized.append({"name": table.name, "columns": columns, "rows": rows})
    return {"tables": normalized}


class AzureLogsQueryClient:
    """Log Analytics query client authenticated as a service principal.

    The SDK client is created lazily on first use and shared by all calls.
    """

    def __init__(
        self,
        config: AzureConfig,
        *,
        server_timeout_seconds: int = _MAX_SERVER_TIMEOUT_SECONDS,
    ) -> None:
        self._config = config
        self._server_timeout = min(server_timeout_seconds, _MAX_SERVER_TIMEOUT_SECONDS)
        self._credential: ClientSecretCredential | None = None
        self._client: LogsQueryClient | None = None
        self._client_lock = threading.Lock()

    @property
    def workspace_id(self) -> str:
        return self._config.workspace_id

    def _get_client(self) -> LogsQueryClient:
        with self._client_lock:
            if self._client is None:
                self._credential = ClientSecretCredential(
                    tenant_id=self._config.tenant_id,
                    client_id=self._config.client_id,
                    client_secret=self._config.client_secret,
                )
                self._client = LogsQueryClient(self._credential)
            return self._client

    def _query_sync(self, workspace_id: str, query: str, timespan: timedelta) -> QueryResult:
        response = self._get_client().query_workspace(
            workspace_id,
            query,
            timespan=timespan,
            server_timeout=self._server_timeout,
        )

        if response.status == LogsQueryStatus.PARTIAL:
            get_system_logger().warning(
                {
                    "event": "query_partial_result",
                    "message": "Log query returned partial results",
                    "error": str(getattr(response.partial_error, "message", response.partial_error)),
                }
            )
            return _normalize_tables(response.partial_data)

        return _normalize_tables(response.tables)

    async def execute_query(self, workspace_id: str, query: str, timespan: timedelta) -> QueryResult:
        """Run a query in a worker thread.

        Raises:
            QueryError: On any SDK, authentication or network failure.
        """
        try:
            return await asyncio.to_thread(self._query_sync, workspace_id, query, timespan)
        except (AzureError, OSError, ValueError) as e:
            raise QueryError(QUERY_FAILED_MESSAGE, cause=e) from e

    async def health_check(self) -> bool:
        """Check connectivity with a trivial query.

        Returns:
            True if the workspace answered, False otherwise (logged as a warning).
        """
        try:
            await self.execute_query(
                self.workspace_id,
                HEALTH_CHECK_QUERY,
                timedelta(minutes=HEALTH_CHECK_TIMESPAN_MINUTES),
            )
        except Exception as e:
            cause = e.cause if isinstance(e, QueryError) and e.cause is not None else e
            get_system_logger().warning(
                {
                    "event": "health_check_failed",
                    "message": "Azure connectivity check failed",
                    "error_type": type(cause).__name__,
                    "error": str(cause),
                }
            )
            return False
        return True

    async def close(self) -> None:
        """Release the SDK client and credential."""
        with self._client_lock:
            client, credential = self._client, self._credential
            self._client = None
            self._credential = None
        if client is not None:
            client.close()
        if credential is not None:
            credential.close()


class UnconfiguredQueryClient:
    """Stand-in used when Azure settings are missing.

    Lets the HTTP transport start and report unhealthy. Every query fails
    with the original ConfigurationError.
    """

    workspace_id = ""

    def __init__(self, error: ConfigurationError) -> None:
        self.error = error

    async def execute_query(self, workspace_id: str, query: str, timespan: timedelta) -> QueryResult:
        raise self.error

    async def health_check(self) -> bool:
        return False

    async def close(self) -> None:
        return None
