"""Periodic purge of expired rate-limit windows."""

from __future__ import annotations

import asyncio

import structlog

from zyphon.services.ratelimit.limiter import RateLimiter

logger = structlog.get_logger()


class RateLimitSweeper:
    """Background loop that keeps the in-process counter map bounded.

    Usage:
        sweeper = RateLimitSweeper(limiter, interval_seconds=60)
        await sweeper.start()
        ...
        await sweeper.stop()
    """

    def __init__(self, limiter: RateLimiter, *, interval_seconds: float) -> None:
        self._limiter = limiter
        self._interval = interval_seconds
        self._log = logger.bind(service="ratelimit_sweeper")

        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._running

    def sweep_once(self) -> int:
        """Purge expired windows now. Returns the number removed."""
        removed = self._limiter.store.purge_expired(self._limiter.now())
        if removed:
            self._log.debug("ratelimit.sweep", removed=removed)
        return removed

    async def start(self) -> None:
        if self._running:
            self._log.warning("ratelimit.sweeper.already_running")
            return

        self._running = True
        self._task = asyncio.create_task(self._background_loop())
        self._log.info("ratelimit.sweeper.started", interval_seconds=self._interval)

    async def stop(self) -> None:
        if not self._running:
            return

        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        self._log.info("ratelimit.sweeper.stopped")

    async def _background_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self._interval)
            except asyncio.CancelledError:
                break
            try:
                self.sweep_once()
            except Exception as e:
                self._log.exception("ratelimit.sweep_failed", error=str(e))
