"""Shared fixtures for azure-logs-mcp tests."""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from collections.abc import Iterator
from datetime import timedelta
from typing import Any

import pytest

from azure_logs_mcp.config import AZURE_ENV_VARS
from azure_logs_mcp.query import QueryResult
from azure_logs_mcp.telemetry.system_logger import get_system_logger


class RecordingHandler(logging.Handler):
    """Keeps every record it receives."""

    def __init__(self) -> None:
        super().__init__(logging.DEBUG)
        self.records: list[logging.LogRecord] = []

    def emit(self, record: logging.LogRecord) -> None:
        self.records.append(record)

    def events(self, name: str) -> list[dict[str, Any]]:
        """Dict records whose "event" equals name."""
        return [r.msg for r in self.records if isinstance(r.msg, dict) and r.msg.get("event") == name]

    def dump(self) -> str:
        """Every record serialized, for substring checks."""
        return "\n".join(
            json.dumps(r.msg, default=str) if isinstance(r.msg, dict) else r.getMessage() for r in self.records
        )


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeQueryClient:
    """In-memory LogsQueryCapability.

    Returns ``result`` unless ``error`` is set; ``hang`` blocks until cancelled.
    """

    def __init__(
        self,
        result: QueryResult | None = None,
        *,
        error: BaseException | None = None,
        healthy: bool = True,
        hang: bool = False,
    ) -> None:
        self.result: QueryResult = result or {"tables": []}
        self.error = error
        self.healthy = healthy
        self.hang = hang
        self.calls: list[tuple[str, str, timedelta]] = []
        self.closed = False

    async def execute_query(self, workspace_id: str, query: str, timespan: timedelta) -> QueryResult:
        self.calls.append((workspace_id, query, timespan))
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error
        return self.result

    async def health_check(self) -> bool:
        return self.healthy

    async def close(self) -> None:
        self.closed = True


SAMPLE_RESULT: QueryResult = {
    "tables": [
        {
            "name": "PrimaryResult",
            "columns": [
                {"name": "TimeGeneratedUtc", "type": "datetime"},
                {"name": "Name", "type": "string"},
                {"name": "ResultCode", "type": "string"},
            ],
            "rows": [
                ["2025-01-02T03:04:05+00:00", "POST /orders", "201"],
                ["2025-01-02T03:04:01+00:00", "GET /orders", "200"],
            ],
        }
    ]
}


@pytest.fixture
def log_records() -> Iterator[RecordingHandler]:
    """Capture everything the system logger emits during a test."""
    logger = get_system_logger()
    handler = RecordingHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    yield handler
    logger.removeHandler(handler)
    logger.setLevel(previous_level)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Any) -> pytest.MonkeyPatch:
    """Environment without any azure-logs-mcp variables, cwd in a temp dir."""
    names = [
        *AZURE_ENV_VARS.values(),
        "TRANSPORT_MODE",
        "HOST",
        "PORT",
        "CORS_ORIGIN",
        "LOG_LEVEL",
        "LOG_FILE",
        "APP_ENV",
        "NODE_ENV",
        "RATE_LIMIT_MAX_REQUESTS",
        "RATE_LIMIT_WINDOW_SECONDS",
        "QUERY_TIMEOUT_SECONDS",
    ]
    for name in names:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


@pytest.fixture
def azure_env(clean_env: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    """clean_env plus a complete set of Azure variables."""
    clean_env.setenv("AZURE_CLIENT_ID", "client-id")
    clean_env.setenv("AZURE_TENANT_ID", "tenant-id")
    clean_env.setenv("AZURE_CLIENT_SECRET", "super-secret")
    clean_env.setenv("AZURE_MONITOR_WORKSPACE_ID", "workspace-id")
    return clean_env


@pytest.fixture
def query_client_factory() -> type[FakeQueryClient]:
    """The FakeQueryClient class, for tests that need several configurations."""
    return FakeQueryClient


@pytest.fixture
def sample_result() -> QueryResult:
    return copy.deepcopy(SAMPLE_RESULT)
