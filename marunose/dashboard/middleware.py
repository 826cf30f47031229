"""Dashboard localhost enforcement middleware.

Key management has no login of its own: the loopback origin is the security
boundary. Every /dashboard/* request whose socket peer is not 127.0.0.1 or
::1 gets HTTP 403. Forwarding headers are not consulted here;
only the gateway routes identify callers by them.

Other paths pass through unchanged.
"""

from __future__ import annotations

import os

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from marunose.utils.logger import get_logger

logger = get_logger(__name__)

_LOOPBACK_HOSTS: frozenset[str] = frozenset({"127.0.0.1", "::1", "localhost"})

_DASHBOARD_PREFIX = "/dashboard"

_FORBIDDEN_BODY: dict = {"error": "Dashboard access is restricted to localhost"}


def _localhost_check_enabled() -> bool:
    """True unless MARUNOSE_DASHBOARD_LOCALHOST_ONLY=false (tests only)."""
    return os.environ.get("MARUNOSE_DASHBOARD_LOCALHOST_ONLY", "true").lower() != "false"


class DashboardLocalhostMiddleware(BaseHTTPMiddleware):
    """Restrict all /dashboard/* requests to loopback origins."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        if not request.url.path.startswith(_DASHBOARD_PREFIX):
            return await call_next(request)

        if not _localhost_check_enabled():
            return await call_next(request)

        client_host = request.client.host if request.client else None
        if client_host not in _LOOPBACK_HOSTS:
            logger.warning(
                "Dashboard access denied: non-localhost origin",
                client_host=client_host,
                path=request.url.path,
            )
            return JSONResponse(status_code=403, content=_FORBIDDEN_BODY)

        return await call_next(request)
