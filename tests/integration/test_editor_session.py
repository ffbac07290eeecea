"""End-to-end flows through :class:`pageeditor.session.EditorSession`."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import List

import httpx
import pytest

from app.main import create_app
from pageeditor.config import EditorConfig
from pageeditor.document import StructuredContent
from pageeditor.events import BlockUpdateRejected, EditorEvent, RemoteConflictWarning
from pageeditor.http import HttpContentStore
from pageeditor.session import EditorSession
from pageeditor.state import SqliteContentStore
from pageeditor.store import InMemoryContentStore


async def _wait_for(predicate, timeout: float = 0.5) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.mark.anyio
async def test_open_edit_save_cycle(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    """Given an opened session When blocks are edited and saved Then the store holds the new page."""

    async with EditorSession(memory_store, fast_config) as session:
        assert await session.open("page-1") is True
        assert session.preview_html is not None
        assert session.can_undo is False

        new_id = session.add_block("faq", after_id="A")
        session.update_block(new_id, {"question": "Is it fast?", "answer": "Yes."})
        assert session.is_dirty is True
        assert session.selected_block_id == new_id

        assert await session.save() is True

        assert session.content_version == 4
        assert session.is_dirty is False
        stored = memory_store.stored_content("page-1")
        assert [block.meta.id for block in stored.blocks] == ["A", new_id, "B"]
        assert stored.blocks[1].question == "Is it fast?"


@pytest.mark.anyio
async def test_undo_redo_through_session(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    """Given a move When undone and redone Then the document flips between the two states and dirty follows."""

    async with EditorSession(memory_store, fast_config) as session:
        await session.open("page-1")

        session.move_block(0, 1)
        assert [block.meta.id for block in session.blocks] == ["B", "A"]

        assert session.undo() is True
        assert [block.meta.id for block in session.blocks] == ["A", "B"]
        assert session.is_dirty is False

        assert session.redo() is True
        assert [block.meta.id for block in session.blocks] == ["B", "A"]
        assert session.is_dirty is True
        assert session.redo() is False


@pytest.mark.anyio
async def test_undo_prunes_selection_of_vanished_block(
    memory_store: InMemoryContentStore, fast_config: EditorConfig
) -> None:
    async with EditorSession(memory_store, fast_config) as session:
        await session.open("page-1")
        new_id = session.add_block("hero")
        assert session.selected_block.meta.id == new_id

        session.undo()

        assert session.selected_block_id is None
        assert session.block_count == 2


@pytest.mark.anyio
async def test_reset_content_is_undoable(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    async with EditorSession(memory_store, fast_config) as session:
        await session.open("page-1")
        session.delete_block("A")

        assert session.reset_content() is True
        assert session.block_count == 2
        assert session.is_dirty is False

        assert session.undo() is True
        assert session.block_count == 1
        assert session.reset_content() is True
        assert session.reset_content() is False


@pytest.mark.anyio
async def test_rejected_update_emits_event(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    events: List[EditorEvent] = []
    async with EditorSession(memory_store, fast_config) as session:
        session.subscribe(events.append)
        await session.open("page-1")

        assert session.update_block_json("A", '{"meta": {"type": "hero"}, "headline": "x"}') is False

    rejections = [event for event in events if isinstance(event, BlockUpdateRejected)]
    assert rejections and rejections[0].block_id == "A"
    assert rejections[0].document_id == "page-1"


@pytest.mark.anyio
async def test_remote_edit_reloads_clean_session(
    memory_store: InMemoryContentStore, fast_config: EditorConfig
) -> None:
    """Given a clean session When another client saves Then the session reloads the new version."""

    async with EditorSession(memory_store, fast_config) as session:
        await session.open("page-1")
        await asyncio.sleep(0)

        memory_store.put("page-1", StructuredContent(meta={"title": "From elsewhere"}))
        await _wait_for(lambda: session.content_version == 4)

        assert session.content.meta.title == "From elsewhere"
        assert session.can_undo is False


@pytest.mark.anyio
async def test_remote_edit_while_dirty_raises_conflict_warning(
    memory_store: InMemoryContentStore, fast_config: EditorConfig
) -> None:
    events: List[EditorEvent] = []
    async with EditorSession(memory_store, fast_config) as session:
        session.subscribe(events.append)
        await session.open("page-1")
        await asyncio.sleep(0)
        session.delete_block("B")

        memory_store.put("page-1", StructuredContent(meta={"title": "From elsewhere"}))
        await _wait_for(lambda: any(isinstance(event, RemoteConflictWarning) for event in events))

        assert session.block_count == 1
        assert session.content_version == 3
        assert await session.save() is False
        assert session.persistence.conflict_version == 4
        assert await session.force_save() is True
        assert session.content_version == 5


@pytest.mark.anyio
async def test_own_save_echo_does_not_conflict(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    events: List[EditorEvent] = []
    async with EditorSession(memory_store, fast_config) as session:
        session.subscribe(events.append)
        await session.open("page-1")
        await asyncio.sleep(0)
        session.add_block("faq")
        await session.save()
        session.add_block("hero")
        await asyncio.sleep(0.02)

    assert not any(isinstance(event, RemoteConflictWarning) for event in events)


@pytest.mark.anyio
async def test_edits_schedule_debounced_preview(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    async with EditorSession(memory_store, fast_config) as session:
        await session.open("page-1")
        renders_after_open = memory_store.render_calls

        for _ in range(3):
            session.add_block("faq")
        await _wait_for(lambda: memory_store.render_calls > renders_after_open)
        await asyncio.sleep(0.03)

        assert memory_store.render_calls == renders_after_open + 1
        assert session.preview_html.count('class="block block-faq"') == 3


@pytest.mark.anyio
async def test_autosave_flushes_dirty_session(memory_store: InMemoryContentStore) -> None:
    config = EditorConfig(autosave_enabled=True, autosave_interval_ms=20, autosave_min_gap_ms=0, live_preview_enabled=False)
    async with EditorSession(memory_store, config) as session:
        await session.open("page-1")
        session.add_block("intro")

        await _wait_for(lambda: session.content_version == 4)

        assert session.is_dirty is False
        assert memory_store.render_calls == 0


@pytest.mark.anyio
async def test_close_tears_down_background_work(memory_store: InMemoryContentStore) -> None:
    config = EditorConfig(autosave_enabled=True, autosave_interval_ms=20, preview_debounce_ms=10)
    session = EditorSession(memory_store, config)
    await session.open("page-1")
    session.add_block("intro")

    await session.close()

    assert session.autosaver.running is False
    assert session.preview.pending is False
    with pytest.raises(RuntimeError):
        await session.open("page-1")


@pytest.mark.anyio
async def test_open_missing_document_reports_error(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    async with EditorSession(memory_store, fast_config) as session:
        assert await session.open("ghost") is False
        assert session.error == "Document not found: ghost"
        assert session.add_block("intro") is None

        session.clear_error()
        assert session.error is None


@pytest.mark.anyio
async def test_session_modes_and_devices(memory_store: InMemoryContentStore, fast_config: EditorConfig) -> None:
    async with EditorSession(memory_store, fast_config) as session:
        session.set_mode("view")
        session.set_preview_device("mobile")

        assert session.mode == "view"
        assert session.preview_device_preset.width == "375px"
        with pytest.raises(ValueError):
            session.set_mode("draft")


@pytest.mark.anyio
async def test_session_over_http_and_sqlite(
    tmp_path: Path, sample_content: StructuredContent, fast_config: EditorConfig
) -> None:
    """Given the content service on SQLite When a session edits over HTTP Then saves and conflicts round-trip."""

    backend = SqliteContentStore(tmp_path / "content.db")
    await backend.save_document("page-1", sample_content, None)
    app = create_app(backend, EditorConfig())
    client_store = HttpContentStore(
        "http://testserver/api",
        poll_interval=10,
        transport=httpx.ASGITransport(app=app),
    )
    try:
        async with EditorSession(client_store, fast_config) as session:
            assert await session.open("page-1") is True
            assert "Best Project Tools" in session.preview_html

            session.duplicate_block("A")
            assert await session.save() is True
            assert session.content_version == 2

            await backend.save_document("page-1", sample_content, None)
            session.delete_block("B")
            assert await session.save() is False
            assert session.persistence.conflict_version == 3
            assert session.is_dirty is True
    finally:
        await client_store.aclose()

    assert [revision.version for revision in backend.list_revisions("page-1")] == [3, 2, 1]


@pytest.mark.anyio
async def test_edits_after_close_schedule_no_background_work(memory_store: InMemoryContentStore) -> None:
    """Given a closed session When it is edited Then no preview render or save reaches the store."""

    config = EditorConfig(autosave_enabled=True, autosave_idle_ms=0, preview_debounce_ms=10)
    session = EditorSession(memory_store, config)
    await session.open("page-1")
    await session.close()
    renders, saves = memory_store.render_calls, memory_store.save_calls

    session.add_block("intro")
    session.undo()
    await asyncio.sleep(0.05)

    assert memory_store.render_calls == renders
    assert memory_store.save_calls == saves
    assert session.autosaver.idle_save_pending is False


@pytest.mark.anyio
async def test_close_waits_for_in_flight_save(sample_content: StructuredContent, fast_config: EditorConfig) -> None:
    store = InMemoryContentStore(latency=0.02)
    store.seed("page-1", sample_content, version=3)
    session = EditorSession(store, fast_config)
    await session.open("page-1")
    session.add_block("faq")

    pending = asyncio.ensure_future(session.save())
    await asyncio.sleep(0.005)
    await session.close()

    assert pending.done() and pending.result() is True
    assert store.version_of("page-1") == 4
    assert session.is_saving is False
