"""Tests for :mod:`pageeditor.http` against the FastAPI content service."""

from __future__ import annotations

from typing import AsyncIterator

import httpx
import pytest

from app.main import create_app
from pageeditor.config import EditorConfig
from pageeditor.document import StructuredContent
from pageeditor.errors import DocumentNotFoundError, TransportError, VersionConflictError
from pageeditor.http import HttpContentStore
from pageeditor.store import InMemoryContentStore


@pytest.fixture
async def http_store(memory_store: InMemoryContentStore) -> AsyncIterator[HttpContentStore]:
    app = create_app(memory_store, EditorConfig())
    store = HttpContentStore(
        "http://testserver/api/",
        token="secret",
        poll_interval=0.01,
        transport=httpx.ASGITransport(app=app),
    )
    yield store
    await store.aclose()


@pytest.mark.anyio
async def test_load_document_over_http(http_store: HttpContentStore, sample_content: StructuredContent) -> None:
    """Given a seeded service When the client loads the page Then content and version match the store."""

    loaded = await http_store.load_document("page-1")

    assert loaded.version == 3
    assert loaded.content == sample_content
    assert http_store.base_url == "http://testserver/api"


@pytest.mark.anyio
async def test_missing_document_maps_to_not_found(http_store: HttpContentStore) -> None:
    with pytest.raises(DocumentNotFoundError):
        await http_store.load_document("ghost")


@pytest.mark.anyio
async def test_save_document_round_trips_version(
    http_store: HttpContentStore, memory_store: InMemoryContentStore, sample_content: StructuredContent
) -> None:
    sample_content.meta.title = "Renamed"

    version = await http_store.save_document("page-1", sample_content, 3)

    assert version == 4
    assert memory_store.stored_content("page-1").meta.title == "Renamed"
    assert await http_store.current_version("page-1") == 4


@pytest.mark.anyio
async def test_conflict_maps_to_version_conflict(
    http_store: HttpContentStore, sample_content: StructuredContent
) -> None:
    """Given a stale expected version When saving over HTTP Then VersionConflictError carries the server version."""

    with pytest.raises(VersionConflictError) as excinfo:
        await http_store.save_document("page-1", sample_content, 1)

    assert excinfo.value.current_version == 3
    assert excinfo.value.expected_version == 1


@pytest.mark.anyio
async def test_save_without_expected_version_overwrites(
    http_store: HttpContentStore, sample_content: StructuredContent
) -> None:
    assert await http_store.save_document("page-1", sample_content, None) == 4


@pytest.mark.anyio
async def test_render_preview_posts_unsaved_content(
    http_store: HttpContentStore, sample_content: StructuredContent
) -> None:
    sample_content.meta.title = "Draft title"

    html = await http_store.render_preview("page-1", sample_content)

    assert "<title>Draft title</title>" in html


@pytest.mark.anyio
async def test_stored_preview_route_returns_html(memory_store: InMemoryContentStore) -> None:
    app = create_app(memory_store, EditorConfig())
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.get("/api/content/page-1/preview")
        missing = await client.get("/api/content/ghost/preview")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert "Best Project Tools" in response.text
    assert missing.status_code == 404


@pytest.mark.anyio
async def test_invalid_block_payload_is_rejected_by_service(memory_store: InMemoryContentStore) -> None:
    app = create_app(memory_store, EditorConfig())
    body = {"structured_content": {"blocks": [{"meta": {"id": "x", "type": "intro"}, "headline": "no content"}]}}
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as client:
        response = await client.put("/api/content/page-1/structured", json=body)

    assert response.status_code == 422
    assert memory_store.version_of("page-1") == 3


@pytest.mark.anyio
async def test_server_errors_map_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"detail": "boom"})

    store = HttpContentStore("http://example.test/api", transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(TransportError):
            await store.load_document("page-1")
    finally:
        await store.aclose()


@pytest.mark.anyio
async def test_connection_failures_map_to_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    store = HttpContentStore("http://example.test/api", transport=httpx.MockTransport(handler))
    try:
        with pytest.raises(TransportError):
            await store.current_version("page-1")
    finally:
        await store.aclose()


@pytest.mark.anyio
async def test_token_is_sent_as_bearer_header() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["authorization"] = request.headers.get("authorization")
        return httpx.Response(200, json={"item_id": "page-1", "version": 9})

    store = HttpContentStore("http://example.test/api", token="abc", transport=httpx.MockTransport(handler))
    try:
        assert await store.current_version("page-1") == 9
    finally:
        await store.aclose()

    assert seen["authorization"] == "Bearer abc"
