"""Tests for configuration loading."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from azure_logs_mcp.config import (
    AzureConfig,
    get_env_bool,
    get_env_number,
    load_config,
    parse_log_level,
    redact_sensitive_info,
)
from azure_logs_mcp.constants import REDACTED
from azure_logs_mcp.exceptions import ConfigurationError


class TestLoadConfigDefaults:
    """Values with an empty environment."""

    def test_defaults(self, clean_env) -> None:
        config = load_config()

        assert config.server.transport == "stdio"
        assert config.server.host == "127.0.0.1"
        assert config.server.port == 3000
        assert config.server.cors_origins == ["*"]
        assert config.rate_limit.max_requests == 10
        assert config.rate_limit.window_seconds == 60.0
        assert config.query.timeout_seconds == 1800.0
        assert config.logging.level == logging.INFO
        assert config.logging.log_file is None

    def test_development_defaults_to_debug(self, clean_env) -> None:
        clean_env.setenv("NODE_ENV", "development")

        assert load_config().logging.level == logging.DEBUG

    def test_app_env_wins_over_node_env(self, clean_env) -> None:
        clean_env.setenv("APP_ENV", "production")
        clean_env.setenv("NODE_ENV", "development")

        assert load_config().logging.level == logging.INFO


class TestLoadConfigValues:
    """Parsing individual variables."""

    @pytest.mark.parametrize(("value", "expected"), [("stdio", "stdio"), ("http", "http"), ("HTTP", "http"), ("sse", "http")])
    def test_transport(self, clean_env, value: str, expected: str) -> None:
        clean_env.setenv("TRANSPORT_MODE", value)

        assert load_config().server.transport == expected

    def test_invalid_transport(self, clean_env) -> None:
        clean_env.setenv("TRANSPORT_MODE", "grpc")

        with pytest.raises(ConfigurationError, match="Invalid TRANSPORT_MODE"):
            load_config()

    def test_port_must_be_numeric(self, clean_env) -> None:
        clean_env.setenv("PORT", "eighty")

        with pytest.raises(ConfigurationError, match="PORT must be a number"):
            load_config()

    def test_port_out_of_range(self, clean_env) -> None:
        clean_env.setenv("PORT", "70000")

        with pytest.raises(ConfigurationError, match="port") as exc_info:
            load_config()

        assert exc_info.value.exit_code == 16

    def test_rate_limit_must_be_positive(self, clean_env) -> None:
        clean_env.setenv("RATE_LIMIT_MAX_REQUESTS", "0")

        with pytest.raises(ConfigurationError, match="max_requests"):
            load_config()

    def test_rate_limit_settings(self, clean_env) -> None:
        clean_env.setenv("RATE_LIMIT_MAX_REQUESTS", "25")
        clean_env.setenv("RATE_LIMIT_WINDOW_SECONDS", "30")

        config = load_config()

        assert (config.rate_limit.max_requests, config.rate_limit.window_seconds) == (25, 30.0)

    def test_cors_origin_list(self, clean_env) -> None:
        clean_env.setenv("CORS_ORIGIN", "https://a.example, https://b.example,")

        assert load_config().server.cors_origins == ["https://a.example", "https://b.example"]

    def test_log_file_expands_home(self, clean_env, tmp_path: Path) -> None:
        clean_env.setenv("HOME", str(tmp_path))
        clean_env.setenv("LOG_FILE", "~/logs/server.jsonl")

        assert load_config().logging.log_file == tmp_path / "logs" / "server.jsonl"


class TestDotenv:
    """.env file in the working directory."""

    def test_loads_dotenv(self, clean_env, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("TRANSPORT_MODE=http\nPORT=4000\n")

        with patch.dict(os.environ):
            config = load_config()

        assert config.server.transport == "http"
        assert config.server.port == 4000

    def test_environment_wins_over_dotenv(self, clean_env, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("PORT=4000\n")
        clean_env.setenv("PORT", "5000")

        with patch.dict(os.environ):
            config = load_config()

        assert config.server.port == 5000

    def test_dotenv_can_be_skipped(self, clean_env, tmp_path: Path) -> None:
        (tmp_path / ".env").write_text("PORT=4000\n")

        with patch.dict(os.environ):
            config = load_config(dotenv=False)

        assert config.server.port == 3000


class TestParseLogLevel:
    """LOG_LEVEL mapping."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("0", logging.ERROR),
            ("1", logging.WARNING),
            ("2", logging.INFO),
            ("3", logging.DEBUG),
            ("error", logging.ERROR),
            ("WARN", logging.WARNING),
            ("warning", logging.WARNING),
            (" debug ", logging.DEBUG),
        ],
    )
    def test_known_values(self, value: str, expected: int) -> None:
        assert parse_log_level(value) == expected

    def test_unset(self) -> None:
        assert parse_log_level(None) == logging.INFO
        assert parse_log_level("", development=True) == logging.DEBUG

    @pytest.mark.parametrize("value", ["verbose", "4", "-1"])
    def test_unknown_values(self, value: str) -> None:
        with pytest.raises(ConfigurationError, match="Invalid LOG_LEVEL"):
            parse_log_level(value)


class TestAzureConfig:
    """Azure credentials from the environment."""

    def test_complete(self, azure_env) -> None:
        azure = AzureConfig.from_env()

        assert azure.workspace_id == "workspace-id"
        assert azure.client_secret == "super-secret"

    def test_all_missing_listed_in_order(self, clean_env) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            AzureConfig.from_env()

        assert exc_info.value.message == (
            "Missing required environment variables: "
            "AZURE_CLIENT_ID, AZURE_TENANT_ID, AZURE_CLIENT_SECRET, AZURE_MONITOR_WORKSPACE_ID"
        )
        assert exc_info.value.exit_code == 16

    def test_blank_counts_as_missing(self, azure_env) -> None:
        azure_env.setenv("AZURE_CLIENT_SECRET", "   ")

        with pytest.raises(ConfigurationError) as exc_info:
            AzureConfig.from_env()

        assert exc_info.value.missing == ("AZURE_CLIENT_SECRET",)


class TestEnvHelpers:
    """Small environment readers."""

    @pytest.mark.parametrize(("value", "expected"), [("true", True), ("1", True), ("YES", True), ("off", False), ("0", False)])
    def test_get_env_bool(self, monkeypatch: pytest.MonkeyPatch, value: str, expected: bool) -> None:
        monkeypatch.setenv("AZURE_LOGS_FLAG", value)

        assert get_env_bool("AZURE_LOGS_FLAG") is expected

    def test_get_env_bool_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("AZURE_LOGS_FLAG", raising=False)

        assert get_env_bool("AZURE_LOGS_FLAG", default=True) is True

    def test_get_env_number_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AZURE_LOGS_NUMBER", " ")

        assert get_env_number("AZURE_LOGS_NUMBER", 7.5) == 7.5


class TestRedactSensitiveInfo:
    """Secret scrubbing for logged configuration."""

    def test_redacts_sensitive_keys_recursively(self) -> None:
        data = {
            "client_secret": "abc",
            "server": {"port": 3000, "api_key": "k", "session_token": "t"},
            "admin_password": "pw",
            "workspace_id": "ws",
        }

        redacted = redact_sensitive_info(data)

        assert redacted == {
            "client_secret": REDACTED,
            "server": {"port": 3000, "api_key": REDACTED, "session_token": REDACTED},
            "admin_password": REDACTED,
            "workspace_id": "ws",
        }
        assert data["client_secret"] == "abc"
