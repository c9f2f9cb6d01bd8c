"""Fire-and-forget background work.

Side effects that must not delay or fail the response (last-used bookkeeping,
audit writes) are dispatched here instead of being awaited on the request
path. The dispatcher keeps a strong reference to each task until it finishes
and logs every failure, so nothing is dropped silently.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

logger = structlog.get_logger()


class BackgroundDispatcher:
    """Schedules coroutines on the running loop and tracks them.

    Usage:
        dispatcher = BackgroundDispatcher()
        dispatcher.dispatch(write_something(), name="audit.write")
        ...
        await dispatcher.drain()  # at shutdown
    """

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._log = logger.bind(component="background")

    @property
    def pending(self) -> int:
        """Number of tasks not yet finished."""
        return len(self._tasks)

    def dispatch(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task:
        """Schedule ``coro`` without awaiting it.

        Must be called from inside a running event loop.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            self._log.warning("background.task_cancelled", task=task.get_name())
            return
        exc = task.exception()
        if exc is not None:
            self._log.error(
                "background.task_failed",
                task=task.get_name(),
                error=str(exc),
                exc_info=exc,
            )

    async def drain(self, timeout: float = 5.0) -> None:
        """Wait for outstanding tasks; cancel whatever is left after ``timeout``."""
        if not self._tasks:
            return

        pending = set(self._tasks)
        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)
            self._log.warning(
                "background.drain_timeout",
                cancelled=len(still_pending),
                completed=len(done),
            )
