"""Gateway error taxonomy.

Every rejection raised by the key gate is a GatewayError subclass carrying
the HTTP status and the generic message shown to the caller. Diagnostic
detail never goes into ``public_message``: it belongs in the security log.

HTTP mapping:
  RateLimitedError    → 429 (+ reset_time)
  MalformedInputError → 400
  UnauthorizedError   → 401
  QuotaExceededError  → 429
  UpstreamError       → 502 (raised by adapters; degraded locally where possible)
  InternalGatewayError → 500
"""

from __future__ import annotations

from typing import Optional


class GatewayError(Exception):
    """Base class for every request rejection produced by the gateway."""

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(self, public_message: Optional[str] = None) -> None:
        if public_message is not None:
            self.public_message = public_message
        super().__init__(self.public_message)


class RateLimitedError(GatewayError):
    """Client identifier exhausted its request window."""

    status_code = 429
    public_message = "Too many requests. Please try again later."

    def __init__(self, reset_time: float, public_message: Optional[str] = None) -> None:
        super().__init__(public_message)
        self.reset_time = reset_time

    @property
    def reset_time_ms(self) -> int:
        """reset_time as integer epoch milliseconds (wire format)."""
        return int(self.reset_time * 1000)


class MalformedInputError(GatewayError):
    """Missing or mistyped field, bad key prefix, or bad URL pattern."""

    status_code = 400
    public_message = "Invalid request"

    def __init__(self, reason: str, public_message: Optional[str] = None) -> None:
        super().__init__(public_message)
        self.reason = reason


class UnauthorizedError(GatewayError):
    status_code = 401
    public_message = "Invalid or inactive API key"


class QuotaExceededError(GatewayError):
    status_code = 429
    public_message = "Monthly usage limit exceeded"


class UpstreamError(GatewayError):
    """External API or database failure on a critical path."""

    status_code = 502
    public_message = "Upstream service unavailable"


class InternalGatewayError(GatewayError):
    status_code = 500
    public_message = "Internal server error"
