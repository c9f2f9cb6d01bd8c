"""Unit tests for RateLimitSweeper."""

from __future__ import annotations

import asyncio

from tests.fakes import FakeClock
from zyphon.config import RateLimitRule
from zyphon.services.ratelimit import InMemoryRateLimitStore, RateLimiter, RateLimitSweeper


def _limiter(clock: FakeClock) -> tuple[RateLimiter, InMemoryRateLimitStore]:
    store = InMemoryRateLimitStore()
    return RateLimiter(store, clock=clock), store


def test_sweep_once_removes_expired_windows():
    clock = FakeClock()
    limiter, store = _limiter(clock)
    rule = RateLimitRule(max_requests=5, window_seconds=60)
    limiter.check("a", "ip", rule, endpoint_class="chat")
    limiter.check("b", "ip", rule, endpoint_class="chat")

    sweeper = RateLimitSweeper(limiter, interval_seconds=60)
    assert sweeper.sweep_once() == 0

    clock.advance(61)
    assert sweeper.sweep_once() == 2
    assert len(store) == 0


async def test_start_stop():
    clock = FakeClock()
    limiter, store = _limiter(clock)
    limiter.check("a", "ip", RateLimitRule(max_requests=5, window_seconds=1), endpoint_class="chat")
    clock.advance(5)

    sweeper = RateLimitSweeper(limiter, interval_seconds=0.01)
    await sweeper.start()
    assert sweeper.is_running

    for _ in range(100):
        if len(store) == 0:
            break
        await asyncio.sleep(0.01)
    await sweeper.stop()

    assert not sweeper.is_running
    assert len(store) == 0


async def test_stop_without_start():
    sweeper = RateLimitSweeper(_limiter(FakeClock())[0], interval_seconds=1)
    await sweeper.stop()
    assert not sweeper.is_running
