"""Per-identifier request window counters for the gateway endpoints.

Each client identifier (normally the caller's IP) owns one RateLimitRecord:
a request count and the time its window started. A window is fixed-origin:
once ``window`` seconds have passed since ``window_start`` the next request
replaces the record wholesale (lazy expiry). Records are also evicted by
RateLimitSweeper so identifiers that never come back do not accumulate.

Known limitation: because the window resets wholesale rather than rolling,
a client can land up to ``2 * max_requests`` requests in a short span that
straddles a reset. This is accepted behaviour for the dashboard use case.

Thread-safety: the record read-modify-write is guarded by a lock so the
limiter stays correct when handlers run on a threadpool.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional

from marunose.constants import RATE_LIMIT_RECORD_MAX_AGE_S
from marunose.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class RateLimitRecord:
    """Requests observed for one identifier in its current window."""

    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of a single check() call.

    reset_time is epoch seconds at which the current window ends.
    """

    allowed: bool
    remaining: int
    reset_time: float

    @property
    def reset_time_ms(self) -> int:
        return int(self.reset_time * 1000)


class SlidingWindowRateLimiter:
    """In-memory fixed-origin window limiter keyed by client identifier.

    Usage:
        limiter = SlidingWindowRateLimiter()
        result = limiter.check("203.0.113.7", max_requests=5, window=900)
        if not result.allowed:
            ...  # 429 with result.reset_time
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._records: dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()

    def check(self, identifier: str, max_requests: int, window: float) -> RateLimitResult:
        """Count one request for ``identifier`` and decide whether it may proceed.

        Args:
            identifier:   Client key (IP address or "unknown").
            max_requests: Requests allowed per window.
            window:       Window length in seconds.

        Returns:
            RateLimitResult. A denied call does not increment the count.
        """
        now = self._clock()
        with self._lock:
            record = self._records.get(identifier)
            if record is None or record.window_start < now - window:
                record = RateLimitRecord(count=0, window_start=now)
                self._records[identifier] = record

            reset_time = record.window_start + window

            if record.count >= max_requests:
                return RateLimitResult(allowed=False, remaining=0, reset_time=reset_time)

            record.count += 1
            return RateLimitResult(
                allowed=True,
                remaining=max_requests - record.count,
                reset_time=reset_time,
            )

    def sweep(
        self,
        max_age: float = RATE_LIMIT_RECORD_MAX_AGE_S,
        now: Optional[float] = None,
    ) -> int:
        """Evict records whose window started more than ``max_age`` seconds ago.

        Returns:
            Number of evicted records.
        """
        cutoff = (self._clock() if now is None else now) - max_age
        with self._lock:
            stale = [key for key, rec in self._records.items() if rec.window_start < cutoff]
            for key in stale:
                del self._records[key]
        if stale:
            logger.debug("Rate limit records swept", evicted=len(stale))
        return len(stale)

    def get_record(self, identifier: str) -> Optional[RateLimitRecord]:
        with self._lock:
            record = self._records.get(identifier)
            return None if record is None else RateLimitRecord(record.count, record.window_start)

    def reset(self) -> None:
        """Drop every record (tests and shutdown)."""
        with self._lock:
            self._records.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
