"""Load/save coordination against a versioned content store.

The coordinator is the only writer of the version counter and the dirty
flag. Store failures never escape it: they become the retained ``error``
string plus an event, and local edits are kept.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from typing import AsyncIterator, Callable

from .document import Document, StructuredContent, clone_content
from .errors import EditorError, VersionConflictError
from .events import (
    ContentLoaded,
    ContentSaved,
    EventEmitter,
    LoadFailed,
    RemoteConflictWarning,
    SaveFailed,
)
from .history import HistoryManager
from .store import ContentStore, RemoteUpdate
from .timers import Debouncer, IntervalTimer
from .tracing import log_event, trace

_LOGGER = logging.getLogger("pageeditor.persistence")


class PersistenceCoordinator:
    """Moves a document between the editor and its store.

    Loads are tagged with a token so a result that lands after a newer load
    (or a save that lands after a page switch) is thrown away. Saves are
    serialised: a save requested while one is outstanding becomes a single
    follow-up save instead of a second compare-and-swap with the same
    expected version.
    """

    def __init__(
        self,
        store: ContentStore,
        document: Document,
        history: HistoryManager,
        *,
        emitter: EventEmitter | None = None,
        on_loaded: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._store = store
        self._document = document
        self._history = history
        self._emitter = emitter or EventEmitter()
        self._on_loaded = on_loaded
        self._clock = clock

        self._document_id: str | None = None
        self._content_version = 0
        self._original_content: StructuredContent | None = None
        self._is_dirty = False
        self._is_loading = False
        self._error: str | None = None
        self._conflict_version: int | None = None
        self._remote_conflict_version: int | None = None

        self._load_token = 0
        self._save_task: asyncio.Task[bool] | None = None
        self._resave_requested = False
        self._force_requested = False
        self._deferred_remote_version: int | None = None
        self._last_save_attempt: float | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------
    @property
    def document_id(self) -> str | None:
        return self._document_id

    @property
    def content_version(self) -> int:
        return self._content_version

    @property
    def original_content(self) -> StructuredContent | None:
        return clone_content(self._original_content) if self._original_content is not None else None

    @property
    def is_dirty(self) -> bool:
        return self._is_dirty

    @property
    def is_loading(self) -> bool:
        return self._is_loading

    @property
    def is_saving(self) -> bool:
        return self._save_task is not None

    @property
    def error(self) -> str | None:
        return self._error

    @property
    def conflict_version(self) -> int | None:
        return self._conflict_version

    @property
    def remote_conflict_version(self) -> int | None:
        return self._remote_conflict_version

    def seconds_since_last_save(self) -> float | None:
        if self._last_save_attempt is None:
            return None
        return self._clock() - self._last_save_attempt

    def clear_error(self) -> None:
        self._error = None
        self._conflict_version = None
        self._remote_conflict_version = None

    def mark_changed(self) -> bool:
        """Recompute the dirty flag against the last loaded or saved snapshot."""

        content = self._document.content
        if content is None or self._original_content is None:
            self._is_dirty = False
        else:
            self._is_dirty = content != self._original_content
        return self._is_dirty

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------
    async def load_content(self, document_id: str) -> bool:
        """Fetch ``document_id`` and install it, resetting history.

        On failure the previous document, history and version stay as they were.
        """

        self._load_token += 1
        token = self._load_token
        self._is_loading = True
        try:
            with trace("persistence.load", logger=_LOGGER, document_id=document_id):
                loaded = await self._store.load_document(document_id)
        except EditorError as exc:
            if token != self._load_token:
                return False
            self._is_loading = False
            self._error = str(exc)
            self._emitter.emit(LoadFailed(document_id=document_id, error=self._error))
            return False

        if token != self._load_token:
            log_event(_LOGGER, logging.INFO, "persistence.load.stale", document_id=document_id)
            return False

        try:
            self._document.replace_content(loaded.content)
        except EditorError as exc:
            self._is_loading = False
            self._error = str(exc)
            self._emitter.emit(LoadFailed(document_id=document_id, error=self._error))
            return False

        self._history.reset(self._document.content)
        self._original_content = clone_content(self._document.content)
        self._document_id = document_id
        self._content_version = loaded.version
        self._is_dirty = False
        self._is_loading = False
        self._deferred_remote_version = None
        self.clear_error()
        log_event(
            _LOGGER,
            logging.INFO,
            "persistence.loaded",
            document_id=document_id,
            version=loaded.version,
            block_count=len(loaded.content.blocks),
        )
        self._emitter.emit(ContentLoaded(document_id=document_id, version=loaded.version))
        if self._on_loaded is not None:
            self._on_loaded()
        return True

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------
    async def save_content(self) -> bool:
        """Save with the current version as the expected one.

        Returns ``True`` when the store accepted the content. Does nothing when
        no document is loaded.
        """

        return await self._submit_save(force=False)

    async def force_save(self) -> bool:
        """Overwrite the stored document regardless of its version."""

        return await self._submit_save(force=True)

    async def _submit_save(self, *, force: bool) -> bool:
        if self._document.content is None or self._document_id is None:
            return False

        if self._save_task is not None:
            self._resave_requested = True
            self._force_requested = self._force_requested or force
            log_event(_LOGGER, logging.DEBUG, "persistence.save.coalesced", document_id=self._document_id)
            return await asyncio.shield(self._save_task)

        self._save_task = asyncio.get_running_loop().create_task(self._save_loop(force))
        return await asyncio.shield(self._save_task)

    async def _save_loop(self, force: bool) -> bool:
        try:
            token = self._load_token
            ok = await self._save_once(force=force)
            while self._resave_requested:
                self._resave_requested = False
                force, self._force_requested = self._force_requested, False
                # After a page switch the earlier outcome says nothing about the new page.
                switched = token != self._load_token
                if not force and (not self._is_dirty or (not ok and not switched)):
                    break
                token = self._load_token
                ok = await self._save_once(force=force)
        finally:
            self._resave_requested = False
            self._force_requested = False
            self._save_task = None

        deferred, self._deferred_remote_version = self._deferred_remote_version, None
        if deferred is not None and not self._closed:
            await self.on_remote_update(deferred)
        return ok

    async def _save_once(self, *, force: bool) -> bool:
        document_id = self._document_id
        content = self._document.content
        if document_id is None or content is None:
            return False

        token = self._load_token
        snapshot = clone_content(content)
        expected_version = None if force else self._content_version
        self._last_save_attempt = self._clock()
        try:
            with trace(
                "persistence.save",
                logger=_LOGGER,
                document_id=document_id,
                expected_version=expected_version,
                forced=force,
            ):
                new_version = await self._store.save_document(document_id, snapshot, expected_version)
        except VersionConflictError as exc:
            if token != self._load_token:
                return False
            self._error = str(exc)
            self._conflict_version = exc.current_version
            self._emitter.emit(
                SaveFailed(document_id=document_id, error=self._error, conflict_version=exc.current_version)
            )
            return False
        except EditorError as exc:
            if token != self._load_token:
                return False
            self._error = str(exc)
            self._emitter.emit(SaveFailed(document_id=document_id, error=self._error))
            return False

        if token != self._load_token:
            log_event(_LOGGER, logging.INFO, "persistence.save.stale", document_id=document_id, version=new_version)
            return False

        self._content_version = new_version
        self._original_content = snapshot
        self.clear_error()
        self.mark_changed()
        log_event(
            _LOGGER,
            logging.INFO,
            "persistence.saved",
            document_id=document_id,
            version=new_version,
            forced=force,
            still_dirty=self._is_dirty,
        )
        self._emitter.emit(ContentSaved(document_id=document_id, version=new_version, forced=force))
        return True

    # ------------------------------------------------------------------
    # Remote notifications
    # ------------------------------------------------------------------
    async def on_remote_update(self, remote_version: int) -> None:
        """React to the store reporting ``remote_version``.

        Not newer than ours: ignored. Newer while clean: reload. Newer while
        dirty: keep local edits and report a conflict warning. While a save is
        outstanding the decision waits until it completes.
        """

        if self._closed or self._document_id is None:
            return
        if self.is_saving:
            self._deferred_remote_version = max(self._deferred_remote_version or 0, remote_version)
            log_event(_LOGGER, logging.DEBUG, "persistence.remote.deferred", version=remote_version)
            return
        if remote_version <= self._content_version:
            log_event(
                _LOGGER,
                logging.DEBUG,
                "persistence.remote.ignored",
                version=remote_version,
                local_version=self._content_version,
            )
            return
        if self._is_dirty:
            self._remote_conflict_version = remote_version
            log_event(
                _LOGGER,
                logging.WARNING,
                "persistence.remote.conflict",
                document_id=self._document_id,
                local_version=self._content_version,
                remote_version=remote_version,
            )
            self._emitter.emit(
                RemoteConflictWarning(
                    document_id=self._document_id,
                    local_version=self._content_version,
                    remote_version=remote_version,
                )
            )
            return
        await self.load_content(self._document_id)

    async def close(self) -> None:
        """Stop reacting to remote notifications and wait for an outstanding save."""

        self._closed = True
        self._deferred_remote_version = None
        task = self._save_task
        if task is not None:
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.shield(task)

    async def watch_remote_updates(self, feed: AsyncIterator[RemoteUpdate]) -> None:
        """Consume ``feed`` until it ends or the task is cancelled."""

        async for update in feed:
            if update.document_id != self._document_id:
                continue
            await self.on_remote_update(update.version)


class Autosaver:
    """Periodic save that stays out of the way of explicit saves.

    With ``idle_delay`` set, :meth:`notify_edit` also schedules a save once
    edits have been quiet for that long. Both paths go through :meth:`tick`.
    """

    def __init__(
        self,
        coordinator: PersistenceCoordinator,
        *,
        interval: float,
        min_gap: float,
        idle_delay: float | None = None,
    ) -> None:
        self._coordinator = coordinator
        self._min_gap = min_gap
        self._timer = IntervalTimer(interval, self._on_tick, name="autosave")
        self._idle = Debouncer(idle_delay, self._on_tick, name="autosave.idle") if idle_delay is not None else None

    @property
    def running(self) -> bool:
        return self._timer.running

    @property
    def idle_save_pending(self) -> bool:
        return self._idle is not None and self._idle.pending

    def start(self) -> None:
        self._timer.start()

    async def stop(self) -> None:
        await self._timer.stop()
        if self._idle is not None:
            await self._idle.close()

    def notify_edit(self) -> None:
        if self._idle is None or not self.running:
            return
        self._idle.trigger()

    async def _on_tick(self) -> None:
        await self.tick()

    async def tick(self) -> bool:
        """Save if there is something to save; returns whether a save ran and succeeded."""

        coordinator = self._coordinator
        reason = None
        if coordinator.is_saving:
            reason = "saving"
        elif not coordinator.is_dirty:
            reason = "clean"
        else:
            elapsed = coordinator.seconds_since_last_save()
            if elapsed is not None and elapsed < self._min_gap:
                reason = "min_gap"
        if reason is not None:
            log_event(_LOGGER, logging.DEBUG, "autosave.skip", reason=reason)
            return False
        log_event(_LOGGER, logging.INFO, "autosave.run", document_id=coordinator.document_id)
        return await coordinator.save_content()


__all__ = ["Autosaver", "PersistenceCoordinator"]
