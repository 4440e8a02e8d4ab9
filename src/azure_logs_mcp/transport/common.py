"""Setup shared by both transports."""

from __future__ import annotations

__all__ = [
    "build_pipeline",
    "configure_logging",
    "run_startup_checks",
]

from azure_logs_mcp.config import AppConfig, redact_sensitive_info
from azure_logs_mcp.pipeline import ToolInvocationPipeline
from azure_logs_mcp.query import LogsQueryCapability
from azure_logs_mcp.security.rate_limiter import RateLimiter
from azure_logs_mcp.telemetry.system_logger import (
    configure_log_level,
    configure_system_logger_file,
    get_system_logger,
)


def configure_logging(config: AppConfig) -> None:
    """Apply the configured level and optional JSONL file sink."""
    configure_log_level(config.logging.level)
    if config.logging.log_file is not None:
        configure_system_logger_file(config.logging.log_file)


def build_pipeline(
    config: AppConfig,
    query_client: LogsQueryCapability,
    *,
    workspace_id: str,
) -> ToolInvocationPipeline:
    """Wire a pipeline with a fresh rate limiter from the settings."""
    limiter = RateLimiter(
        max_requests=config.rate_limit.max_requests,
        window_seconds=config.rate_limit.window_seconds,
    )
    return ToolInvocationPipeline(
        limiter,
        query_client,
        workspace_id=workspace_id,
        query_timeout=config.query.timeout_seconds,
    )


async def run_startup_checks(query_client: LogsQueryCapability, config: AppConfig | None = None) -> bool:
    """Check Azure connectivity once before serving.

    A failure is logged as a warning and never stops startup.

    Returns:
        True if the workspace answered.
    """
    logger = get_system_logger()
    if config is not None:
        logger.debug(
            {
                "event": "config_loaded",
                "message": "Configuration loaded",
                "config": redact_sensitive_info(config.model_dump(mode="json")),
            }
        )

    healthy = await query_client.health_check()
    if healthy:
        logger.info({"event": "startup_check_passed", "message": "Azure connectivity check passed"})
    else:
        logger.warning(
            {
                "event": "startup_check_failed",
                "message": "Azure connectivity check failed; the server will start but queries may fail",
            }
        )
    return healthy
