"""Shared slowapi limiter for the dashboard key-management endpoints.

Dashboard requests are localhost-only (DashboardLocalhostMiddleware), so this
acts as a global cap on key operations rather than a per-user limit.

The Limiter instance is shared between:
  - marunose/dashboard/api.py  (route decorators)
  - marunose/main.py           (app.state.limiter + SlowAPIMiddleware registration)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

KEY_MANAGEMENT_RATE_LIMIT = "20/minute"
