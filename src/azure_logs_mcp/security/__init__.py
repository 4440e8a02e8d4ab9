"""Admission control and error disclosure.

This module provides:
- Fixed-window rate limiting per client identity
- Client identity derivation from transport metadata
- Error sanitization (what a caller may see vs. what the log records)
"""

from azure_logs_mcp.security.error_sanitizer import sanitize_error
from azure_logs_mcp.security.identity import extract_client_id
from azure_logs_mcp.security.rate_limiter import (
    RateLimitEntry,
    RateLimiter,
    RateLimitSweeper,
    RateLimitUsage,
)

__all__ = [
    "RateLimitEntry",
    "RateLimitSweeper",
    "RateLimitUsage",
    "RateLimiter",
    "extract_client_id",
    "sanitize_error",
]
