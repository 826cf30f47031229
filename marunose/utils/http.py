"""Shared outbound httpx client.

Created once in the lifespan (app.state.http_client) and handed to the
GitHub client and the summary chain. Never instantiated per request.
"""

from __future__ import annotations

import httpx

from marunose.constants import HTTP_MAX_CONNECTIONS, HTTP_TIMEOUT_S


def create_http_client(timeout_s: float = HTTP_TIMEOUT_S) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        limits=httpx.Limits(
            max_connections=HTTP_MAX_CONNECTIONS,
            max_keepalive_connections=HTTP_MAX_CONNECTIONS,
        ),
        timeout=httpx.Timeout(timeout_s),
        follow_redirects=True,
    )
