"""Client identity derivation for rate limiting.

The identity is a bucketing key, not a credential. A caller can pick any
value for the client-id header; that only moves them to another bucket.
"""

from __future__ import annotations

__all__ = ["extract_client_id"]

from starlette.requests import Request

from azure_logs_mcp.constants import CLIENT_ID_HEADERS, DEFAULT_CLIENT_ID, UNKNOWN_CLIENT_ID


def extract_client_id(request: Request | None) -> str:
    """Derive the rate-limit key for a call.

    Precedence:
        1. No request (stdio): the shared DEFAULT_CLIENT_ID bucket.
        2. First non-empty header from CLIENT_ID_HEADERS, returned verbatim.
        3. "ip:<peer address>" when the peer address is known.
        4. UNKNOWN_CLIENT_ID.

    Args:
        request: The HTTP request carrying the call, if any.

    Returns:
        Client identity string.
    """
    if request is None:
        return DEFAULT_CLIENT_ID

    for header in CLIENT_ID_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value

    if request.client is not None and request.client.host:
        return f"ip:{request.client.host}"

    return UNKNOWN_CLIENT_ID
