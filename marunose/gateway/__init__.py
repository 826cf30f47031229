"""Key validation and quota gate in front of the summarizer.

Public API:
  - KeyGate: rate limit → format → lookup → quota → increment
  - RateLimitPolicy: max requests per window for one endpoint
  - Authorization: result of a successful authorize()
  - ClientInfo: caller IP and user agent from request headers
"""

from marunose.gateway.client import ClientInfo, client_info_from_headers
from marunose.gateway.gate import (
    NO_TARGET_URL,
    Authorization,
    KeyGate,
    RateLimitPolicy,
    UsageSnapshot,
)

__all__ = [
    "NO_TARGET_URL",
    "Authorization",
    "ClientInfo",
    "KeyGate",
    "RateLimitPolicy",
    "UsageSnapshot",
    "client_info_from_headers",
]
