"""Runtime configuration for azure-logs-mcp.

All settings come from environment variables. A ``.env`` file in the working
directory is loaded first via python-dotenv; variables already present in the
environment take precedence.

Azure credentials are loaded separately from the server settings so the HTTP
transport can start (and report unhealthy) when they are missing, while the
stdio transport treats their absence as fatal.

Example usage:
    config = load_config()
    azure = AzureConfig.from_env()  # raises ConfigurationError if incomplete
"""

from __future__ import annotations

__all__ = [
    "AZURE_ENV_VARS",
    "AppConfig",
    "AzureConfig",
    "LoggingConfig",
    "QuerySettings",
    "RateLimitSettings",
    "ServerConfig",
    "get_env_bool",
    "get_env_number",
    "load_config",
    "parse_log_level",
    "redact_sensitive_info",
]

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Literal

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from azure_logs_mcp.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_QUERY_TIMEOUT_SECONDS,
    DEFAULT_RATE_LIMIT_MAX_REQUESTS,
    DEFAULT_RATE_LIMIT_WINDOW_SECONDS,
    REDACTED,
)
from azure_logs_mcp.exceptions import ConfigurationError

# Field name -> environment variable
AZURE_ENV_VARS: dict[str, str] = {
    "client_id": "AZURE_CLIENT_ID",
    "tenant_id": "AZURE_TENANT_ID",
    "client_secret": "AZURE_CLIENT_SECRET",
    "workspace_id": "AZURE_MONITOR_WORKSPACE_ID",
}

_SENSITIVE_KEY_PARTS: tuple[str, ...] = ("password", "secret", "token", "key")

# Numeric LOG_LEVEL values kept for existing deployments (0=ERROR .. 3=DEBUG)
_NUMERIC_LOG_LEVELS: dict[str, int] = {
    "0": logging.ERROR,
    "1": logging.WARNING,
    "2": logging.INFO,
    "3": logging.DEBUG,
}

_NAMED_LOG_LEVELS: dict[str, int] = {
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


# =============================================================================
# Environment helpers
# =============================================================================


def get_env_bool(name: str, default: bool = False) -> bool:
    """Read a boolean flag from the environment.

    Args:
        name: Variable name.
        default: Value when the variable is unset or blank.

    Returns:
        True for "true", "1", "yes" or "on" (case-insensitive).
    """
    value = os.environ.get(name, "").strip().lower()
    if not value:
        return default
    return value in ("true", "1", "yes", "on")


def get_env_number(name: str, default: float) -> float:
    """Read a number from the environment.

    Raises:
        ConfigurationError: If the variable is set but not numeric.
    """
    value = os.environ.get(name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"Environment variable {name} must be a number") from None


def parse_log_level(value: str | None, *, development: bool = False) -> int:
    """Map a LOG_LEVEL value to a logging level.

    Accepts level names (ERROR, WARN, WARNING, INFO, DEBUG) or the numeric
    scale 0-3. Unset means DEBUG in development and INFO otherwise.

    Raises:
        ConfigurationError: If the value is not recognized.
    """
    if value is None or not value.strip():
        return logging.DEBUG if development else logging.INFO

    normalized = value.strip().upper()
    if normalized in _NUMERIC_LOG_LEVELS:
        return _NUMERIC_LOG_LEVELS[normalized]
    if normalized in _NAMED_LOG_LEVELS:
        return _NAMED_LOG_LEVELS[normalized]
    raise ConfigurationError(f"Invalid LOG_LEVEL '{value}'. Use ERROR, WARN, INFO, DEBUG or 0-3")


def redact_sensitive_info(data: Mapping[str, Any]) -> dict[str, Any]:
    """Copy a mapping with secret-looking values replaced by REDACTED.

    A key is sensitive when it contains password, secret, token or key
    (case-insensitive). Nested mappings are redacted recursively.
    """
    redacted: dict[str, Any] = {}
    for key, value in data.items():
        lowered = str(key).lower()
        if any(part in lowered for part in _SENSITIVE_KEY_PARTS):
            redacted[key] = REDACTED
        elif isinstance(value, Mapping):
            redacted[key] = redact_sensitive_info(value)
        else:
            redacted[key] = value
    return redacted


# =============================================================================
# Configuration models
# =============================================================================


class AzureConfig(BaseModel):
    """Credentials and workspace for the Log Analytics query API.

    Attributes:
        client_id: Service principal application ID.
        tenant_id: Entra ID tenant.
        client_secret: Service principal secret.
        workspace_id: Log Analytics workspace backing Application Insights.
    """

    client_id: str = Field(min_length=1)
    tenant_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    workspace_id: str = Field(min_length=1)

    @classmethod
    def from_env(cls) -> AzureConfig:
        """Build from environment variables.

        Raises:
            ConfigurationError: Listing every variable that is missing or blank.
        """
        values = {field: os.environ.get(env, "").strip() for field, env in AZURE_ENV_VARS.items()}
        missing = tuple(AZURE_ENV_VARS[field] for field, value in values.items() if not value)
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}",
                missing=missing,
            )
        return cls(**values)


class ServerConfig(BaseModel):
    """Transport and network settings.

    Attributes:
        transport: "stdio" or "http".
        host: Bind address for the HTTP transport.
        port: Bind port for the HTTP transport.
        cors_origins: Allowed origins; ["*"] allows any origin.
    """

    transport: Literal["stdio", "http"] = "stdio"
    host: str = Field(default=DEFAULT_HOST, min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])


class RateLimitSettings(BaseModel):
    """Per-client fixed-window limits.

    Attributes:
        max_requests: Calls admitted per window.
        window_seconds: Window length.
    """

    max_requests: int = Field(default=DEFAULT_RATE_LIMIT_MAX_REQUESTS, ge=1)
    window_seconds: float = Field(default=DEFAULT_RATE_LIMIT_WINDOW_SECONDS, gt=0)


class QuerySettings(BaseModel):
    """Limits applied to outbound log queries."""

    timeout_seconds: float = Field(default=DEFAULT_QUERY_TIMEOUT_SECONDS, gt=0)


class LoggingConfig(BaseModel):
    """Logging settings.

    Attributes:
        level: Threshold for the system logger.
        log_file: Optional JSONL file for WARNING and above.
    """

    level: int = logging.INFO
    log_file: Path | None = None


class AppConfig(BaseModel):
    """Everything except the Azure credentials."""

    server: ServerConfig = Field(default_factory=ServerConfig)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _parse_transport(value: str) -> str:
    normalized = value.strip().lower()
    # "sse" was the name of the network mode before Streamable HTTP
    if normalized == "sse":
        return "http"
    if normalized not in ("stdio", "http"):
        raise ConfigurationError(f"Invalid TRANSPORT_MODE '{value}'. Use 'stdio' or 'http'")
    return normalized


def _parse_origins(value: str) -> list[str]:
    origins = [origin.strip() for origin in value.split(",") if origin.strip()]
    return origins or ["*"]


def load_config(*, dotenv: bool = True) -> AppConfig:
    """Load application settings from the environment.

    Args:
        dotenv: Load a .env file from the working directory first.

    Returns:
        Validated AppConfig.

    Raises:
        ConfigurationError: If any value is malformed.
    """
    if dotenv:
        load_dotenv(find_dotenv(usecwd=True), override=False)

    development = os.environ.get("APP_ENV", os.environ.get("NODE_ENV", "")).strip().lower() == "development"
    log_file = os.environ.get("LOG_FILE", "").strip()

    try:
        return AppConfig(
            server=ServerConfig(
                transport=_parse_transport(os.environ.get("TRANSPORT_MODE", "stdio")),
                host=os.environ.get("HOST", DEFAULT_HOST).strip() or DEFAULT_HOST,
                port=int(get_env_number("PORT", DEFAULT_PORT)),
                cors_origins=_parse_origins(os.environ.get("CORS_ORIGIN", "*")),
            ),
            rate_limit=RateLimitSettings(
                max_requests=int(get_env_number("RATE_LIMIT_MAX_REQUESTS", DEFAULT_RATE_LIMIT_MAX_REQUESTS)),
                window_seconds=get_env_number("RATE_LIMIT_WINDOW_SECONDS", DEFAULT_RATE_LIMIT_WINDOW_SECONDS),
            ),
            query=QuerySettings(
                timeout_seconds=get_env_number("QUERY_TIMEOUT_SECONDS", DEFAULT_QUERY_TIMEOUT_SECONDS),
            ),
            logging=LoggingConfig(
                level=parse_log_level(os.environ.get("LOG_LEVEL"), development=development),
                log_file=Path(log_file).expanduser() if log_file else None,
            ),
        )
    except PydanticValidationError as e:
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        raise ConfigurationError(f"Invalid configuration values: {fields}") from e
