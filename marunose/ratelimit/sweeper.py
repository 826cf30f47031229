"""Background eviction of stale rate-limit records.

RateLimitSweeper owns one asyncio.Task that calls
SlidingWindowRateLimiter.sweep() every ``interval`` seconds. The lifespan
starts it after the limiter is built and awaits stop() during shutdown, so
no timer outlives the application.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from marunose.constants import RATE_LIMIT_RECORD_MAX_AGE_S, RATE_LIMIT_SWEEP_INTERVAL_S
from marunose.ratelimit.limiter import SlidingWindowRateLimiter
from marunose.utils.logger import get_logger

logger = get_logger(__name__)


class RateLimitSweeper:
    """Periodic sweep task with an explicit start/stop contract.

    Usage:
        sweeper = RateLimitSweeper(limiter)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(
        self,
        limiter: SlidingWindowRateLimiter,
        interval: float = RATE_LIMIT_SWEEP_INTERVAL_S,
        max_age: float = RATE_LIMIT_RECORD_MAX_AGE_S,
    ) -> None:
        self._limiter = limiter
        self._interval = interval
        self._max_age = max_age
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Schedule the sweep loop on the running event loop. Idempotent."""
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="rate-limit-sweeper")
        logger.info(
            "Rate limit sweeper started",
            interval_s=self._interval,
            max_age_s=self._max_age,
        )

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Rate limit sweeper stopped")

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval)
                try:
                    self._limiter.sweep(max_age=self._max_age)
                except Exception as exc:  # noqa: BLE001
                    logger.error("Rate limit sweep failed (non-fatal)", error=str(exc))
        except asyncio.CancelledError:
            logger.debug("Rate limit sweeper cancelled")
            raise
