"""Cancelable asyncio timer handles used for debounced and periodic work."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Set

from .tracing import log_event

AsyncCallback = Callable[[], Awaitable[None]]

_LOGGER = logging.getLogger("pageeditor.timers")


class Debouncer:
    """Collapse bursts of :meth:`trigger` calls into one delayed callback.

    A trigger inside the window restarts the timer. Callbacks that already
    started keep running; only :meth:`close` cancels them.
    """

    def __init__(self, delay: float, callback: AsyncCallback, *, name: str = "debounce") -> None:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        self._delay = delay
        self._callback = callback
        self._name = name
        self._handle: asyncio.TimerHandle | None = None
        self._tasks: Set[asyncio.Task[None]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        return self._handle is not None

    @property
    def in_flight(self) -> bool:
        return bool(self._tasks)

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self._delay, self._fire)

    def cancel(self) -> None:
        """Cancel the pending timer, leaving any running callback alone."""

        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        log_event(_LOGGER, logging.DEBUG, "timers.debounce.fire", name=self._name)
        task = asyncio.get_running_loop().create_task(self._callback())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def close(self) -> None:
        self.cancel()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task


class IntervalTimer:
    """Run ``callback`` every ``interval`` seconds until stopped."""

    def __init__(self, interval: float, callback: AsyncCallback, *, name: str = "interval") -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._name = name
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self._callback()
            except Exception:
                log_event(_LOGGER, logging.ERROR, "timers.interval.failed", exc_info=True, name=self._name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


__all__ = ["AsyncCallback", "Debouncer", "IntervalTimer"]
