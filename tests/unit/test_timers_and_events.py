"""Tests for :mod:`pageeditor.timers` and :mod:`pageeditor.events`."""

from __future__ import annotations

import asyncio
import logging
from typing import List

import pytest

from pageeditor.events import ContentSaved, EditorEvent, EventEmitter
from pageeditor.timers import Debouncer, IntervalTimer


@pytest.mark.anyio
async def test_debouncer_restarts_window_on_trigger() -> None:
    calls: List[float] = []

    async def callback() -> None:
        calls.append(asyncio.get_running_loop().time())

    debouncer = Debouncer(0.02, callback)
    debouncer.trigger()
    await asyncio.sleep(0.01)
    debouncer.trigger()
    await asyncio.sleep(0.015)
    assert calls == []

    await asyncio.sleep(0.02)
    assert len(calls) == 1
    await debouncer.close()


@pytest.mark.anyio
async def test_debouncer_cancel_leaves_running_callback() -> None:
    """Given a callback already running When cancel is called Then only the timer is dropped."""

    started = asyncio.Event()
    release = asyncio.Event()
    finished: List[bool] = []

    async def callback() -> None:
        started.set()
        await release.wait()
        finished.append(True)

    debouncer = Debouncer(0, callback)
    debouncer.trigger()
    await started.wait()

    debouncer.cancel()
    assert debouncer.in_flight is True
    release.set()
    await asyncio.sleep(0.01)

    assert finished == [True]


@pytest.mark.anyio
async def test_debouncer_close_cancels_everything() -> None:
    async def callback() -> None:
        await asyncio.sleep(1)

    debouncer = Debouncer(0, callback)
    debouncer.trigger()
    await asyncio.sleep(0.005)

    await debouncer.close()

    assert debouncer.pending is False
    assert debouncer.in_flight is False


@pytest.mark.anyio
async def test_interval_timer_survives_failing_callback(caplog: pytest.LogCaptureFixture) -> None:
    calls: List[int] = []

    async def callback() -> None:
        calls.append(1)
        raise RuntimeError("boom")

    timer = IntervalTimer(0.01, callback, name="flaky")
    with caplog.at_level(logging.ERROR):
        timer.start()
        await asyncio.sleep(0.045)
        await timer.stop()

    assert len(calls) >= 2
    assert "timers.interval.failed" in caplog.text
    assert timer.running is False


def test_timers_validate_arguments() -> None:
    async def callback() -> None:
        return None

    with pytest.raises(ValueError):
        Debouncer(-1, callback)
    with pytest.raises(ValueError):
        IntervalTimer(0, callback)


def test_emitter_isolates_failing_listener() -> None:
    """Given a listener that raises When an event is emitted Then later listeners still receive it."""

    received: List[EditorEvent] = []

    def broken(event: EditorEvent) -> None:
        raise RuntimeError("listener bug")

    emitter = EventEmitter()
    emitter.subscribe(broken)
    unsubscribe = emitter.subscribe(received.append)

    emitter.emit(ContentSaved(document_id="page-1", version=2))
    unsubscribe()
    emitter.emit(ContentSaved(document_id="page-1", version=3))

    assert [event.version for event in received] == [2]
    assert len(emitter) == 1
