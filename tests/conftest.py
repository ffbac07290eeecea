"""Shared pytest fixtures for the page editor test-suite."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Dict

import sys

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from pageeditor.blocks import BaseBlock, parse_block
from pageeditor.config import EditorConfig
from pageeditor.document import Document, StructuredContent
from pageeditor.history import HistoryManager
from pageeditor.store import InMemoryContentStore

DOCUMENT_ID = "page-1"


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def document_id() -> str:
    return DOCUMENT_ID


@pytest.fixture
def make_block() -> Callable[..., BaseBlock]:
    """Return a factory building a block of any type from keyword fields."""

    def _make(block_type: str, block_id: str, order: int = 0, **fields: Any) -> BaseBlock:
        return parse_block({"meta": {"id": block_id, "type": block_type, "order": order}, **fields})

    return _make


@pytest.fixture
def sample_content(make_block: Callable[..., BaseBlock]) -> StructuredContent:
    """Return a two block page: an intro ``A`` followed by a text section ``B``."""

    return StructuredContent(
        page_type="blog",
        meta={"title": "Best Project Tools", "slug": "best-project-tools"},
        global_settings={"show_toc": True, "layout": "default"},
        blocks=[
            make_block("intro", "A", 0, headline="Welcome", content="Why tools matter."),
            make_block("text_section", "B", 1, heading="Details", content="Plenty of details."),
        ],
    )


@pytest.fixture
def sample_payload(sample_content: StructuredContent) -> Dict[str, Any]:
    return sample_content.to_dict()


@pytest.fixture
def loaded_document(sample_content: StructuredContent) -> Document:
    return Document(sample_content)


@pytest.fixture
def history(loaded_document: Document) -> HistoryManager:
    manager = HistoryManager(max_length=50)
    manager.reset(loaded_document.content)
    return manager


@pytest.fixture
def memory_store(sample_content: StructuredContent) -> InMemoryContentStore:
    """Return an in-memory store holding ``page-1`` at version 3."""

    store = InMemoryContentStore()
    store.seed(DOCUMENT_ID, sample_content, version=3)
    return store


@pytest.fixture
def fast_config() -> EditorConfig:
    """Return a configuration with short timers and no autosave."""

    return EditorConfig(
        preview_debounce_ms=20,
        autosave_enabled=False,
        autosave_interval_ms=50,
        autosave_min_gap_ms=0,
        remote_poll_interval_ms=20,
    )
