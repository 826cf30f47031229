"""Unit tests for SlidingWindowRateLimiter and RateLimitSweeper.

Covers:
  - remaining counts down max-1 … 0, then denial without incrementing
  - window expiry resets the record wholesale
  - independent identifiers
  - reset_time is window_start + window, reset_time_ms is integer epoch ms
  - sweep() evicts only records older than max_age
  - sweeper start()/stop() lifecycle
"""

from __future__ import annotations

import asyncio

import pytest

from marunose.ratelimit import RateLimitSweeper, SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(clock=clock)


class TestCheck:
    def test_remaining_counts_down_then_denies(self, limiter: SlidingWindowRateLimiter) -> None:
        remaining = [limiter.check("1.2.3.4", 5, 900).remaining for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

        denied = limiter.check("1.2.3.4", 5, 900)
        assert denied.allowed is False
        assert denied.remaining == 0

    def test_denied_call_does_not_increment(self, limiter: SlidingWindowRateLimiter) -> None:
        for _ in range(7):
            limiter.check("1.2.3.4", 5, 900)
        record = limiter.get_record("1.2.3.4")
        assert record is not None
        assert record.count == 5

    def test_reset_time_is_window_end(self, limiter: SlidingWindowRateLimiter, clock: FakeClock) -> None:
        start = clock.now
        first = limiter.check("ip", 3, 60)
        clock.advance(10)
        second = limiter.check("ip", 3, 60)
        assert first.reset_time == start + 60
        assert second.reset_time == start + 60
        assert first.reset_time_ms == int((start + 60) * 1000)

    def test_window_expiry_resets(self, limiter: SlidingWindowRateLimiter, clock: FakeClock) -> None:
        for _ in range(5):
            limiter.check("ip", 5, 900)
        assert limiter.check("ip", 5, 900).allowed is False

        clock.advance(901)
        result = limiter.check("ip", 5, 900)
        assert result.allowed is True
        assert result.remaining == 4
        assert result.reset_time == clock.now + 900

    def test_window_not_expired_at_exact_boundary(
        self, limiter: SlidingWindowRateLimiter, clock: FakeClock
    ) -> None:
        limiter.check("ip", 1, 900)
        clock.advance(900)
        assert limiter.check("ip", 1, 900).allowed is False

    def test_identifiers_are_independent(self, limiter: SlidingWindowRateLimiter) -> None:
        for _ in range(2):
            limiter.check("a", 2, 900)
        assert limiter.check("a", 2, 900).allowed is False
        assert limiter.check("b", 2, 900).allowed is True

    def test_len_and_reset(self, limiter: SlidingWindowRateLimiter) -> None:
        limiter.check("a", 2, 900)
        limiter.check("b", 2, 900)
        assert len(limiter) == 2
        limiter.reset()
        assert len(limiter) == 0
        assert limiter.get_record("a") is None


class TestSweep:
    def test_sweep_evicts_only_stale_records(
        self, limiter: SlidingWindowRateLimiter, clock: FakeClock
    ) -> None:
        limiter.check("old", 5, 900)
        clock.advance(600)
        limiter.check("new", 5, 900)
        clock.advance(400)

        evicted = limiter.sweep(max_age=900)

        assert evicted == 1
        assert limiter.get_record("old") is None
        assert limiter.get_record("new") is not None

    def test_sweep_with_explicit_now(self, limiter: SlidingWindowRateLimiter, clock: FakeClock) -> None:
        limiter.check("a", 5, 900)
        assert limiter.sweep(max_age=900, now=clock.now + 10) == 0
        assert limiter.sweep(max_age=900, now=clock.now + 901) == 1


class TestSweeper:
    async def test_start_and_stop(self, limiter: SlidingWindowRateLimiter) -> None:
        sweeper = RateLimitSweeper(limiter, interval=3600, max_age=900)
        assert sweeper.running is False

        sweeper.start()
        assert sweeper.running is True

        await sweeper.stop()
        assert sweeper.running is False

    async def test_stop_without_start_is_noop(self, limiter: SlidingWindowRateLimiter) -> None:
        sweeper = RateLimitSweeper(limiter)
        await sweeper.stop()
        assert sweeper.running is False

    async def test_sweeper_runs_sweep(self, clock: FakeClock) -> None:
        limiter = SlidingWindowRateLimiter(clock=clock)
        limiter.check("stale", 5, 900)
        clock.advance(1000)

        sweeper = RateLimitSweeper(limiter, interval=0.01, max_age=900)
        sweeper.start()
        for _ in range(100):
            if len(limiter) == 0:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

        assert len(limiter) == 0
