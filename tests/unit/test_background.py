"""Unit tests for BackgroundDispatcher."""

from __future__ import annotations

import asyncio

from zyphon.services.background import BackgroundDispatcher


async def test_dispatch_runs_without_awaiting():
    dispatcher = BackgroundDispatcher()
    done = asyncio.Event()

    async def work():
        done.set()

    dispatcher.dispatch(work(), name="work")
    await dispatcher.drain()

    assert done.is_set()
    assert dispatcher.pending == 0


async def test_failures_are_contained():
    dispatcher = BackgroundDispatcher()

    async def boom():
        raise ValueError("boom")

    task = dispatcher.dispatch(boom(), name="boom")
    await dispatcher.drain()

    assert task.done()
    assert isinstance(task.exception(), ValueError)
    assert dispatcher.pending == 0


async def test_drain_cancels_stragglers():
    dispatcher = BackgroundDispatcher()

    async def slow():
        await asyncio.sleep(10)

    task = dispatcher.dispatch(slow(), name="slow")
    await dispatcher.drain(timeout=0.01)

    assert task.cancelled()
    assert dispatcher.pending == 0


async def test_drain_with_nothing_pending():
    await BackgroundDispatcher().drain()
