"""Per-client request rate limiting for the gateway endpoints.

Public API:
  - SlidingWindowRateLimiter: fixed-origin window counters keyed by client IP
  - RateLimitResult: allowed / remaining / reset_time
  - RateLimitSweeper: background eviction task with start()/stop()
"""

from __future__ import annotations

from marunose.ratelimit.limiter import (
    RateLimitRecord,
    RateLimitResult,
    SlidingWindowRateLimiter,
)
from marunose.ratelimit.sweeper import RateLimitSweeper

__all__ = [
    "RateLimitRecord",
    "RateLimitResult",
    "RateLimitSweeper",
    "SlidingWindowRateLimiter",
]
