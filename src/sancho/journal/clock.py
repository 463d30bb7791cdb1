"""Timer abstraction for the sync engine.

The engine only ever needs "call this after N seconds" and "cancel that",
plus a millisecond wall clock. Keeping those behind a tiny protocol lets
the debounce/backoff state machine run on asyncio in production and on a
virtual clock in tests.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Protocol

from loguru import logger

TimerCallback = Callable[[], Awaitable[None] | None]
"""Sync function or coroutine function fired when a timer elapses."""


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    def now_ms(self) -> int: ...

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle: ...

    async def drain(self) -> None: ...


class _AsyncioTimer:
    """One ``loop.call_later`` registration; coroutine callbacks run as tasks.

    Cancelling only stops a timer that has not fired yet. Work already
    started (an in-flight save) runs to completion.
    """

    def __init__(self, clock: AsyncioClock, delay: float, callback: TimerCallback):
        self._clock = clock
        self._callback = callback
        self._handle = asyncio.get_running_loop().call_later(max(0.0, delay), self._fire)

    def _fire(self) -> None:
        result = self._callback()
        if inspect.isawaitable(result):
            self._clock._track(asyncio.ensure_future(result))

    def cancel(self) -> None:
        self._handle.cancel()


class AsyncioClock:
    """Production clock backed by the running event loop."""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()  # keep fired callbacks alive until done

    def now_ms(self) -> int:
        return int(time.time() * 1000)

    def call_later(self, delay: float, callback: TimerCallback) -> TimerHandle:
        return _AsyncioTimer(self, delay, callback)

    def _track(self, task: asyncio.Future) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._done)

    def _done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.opt(exception=task.exception()).error("Timer callback failed")

    async def drain(self) -> None:
        """Wait for callbacks that already fired, e.g. a save started by the debounce."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
