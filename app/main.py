"""FastAPI application exposing structured content over HTTP."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field

from pageeditor.config import EditorConfig
from pageeditor.document import StructuredContent
from pageeditor.errors import (
    DocumentNotFoundError,
    MalformedBlockPayloadError,
    TransportError,
    VersionConflictError,
)
from pageeditor.logging_config import configure_logging
from pageeditor.state import SqliteContentStore
from pageeditor.store import ContentStore
from pageeditor.tracing import log_event

_LOGGER = logging.getLogger("pageeditor.api")


class SaveContentRequest(BaseModel):
    structured_content: StructuredContent
    expected_version: int | None = Field(default=None, ge=0)


class PreviewRequest(BaseModel):
    structured_content: StructuredContent


def _store(request: Request) -> ContentStore:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Content store is not ready")
    return store


def create_app(store: ContentStore | None = None, config: EditorConfig | None = None) -> FastAPI:
    """Build the content service over ``store``.

    Without an explicit store a :class:`SqliteContentStore` at
    ``config.database_path`` is opened on startup and closed on shutdown.
    """

    settings = config or EditorConfig.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings.log_level)
        owned: ContentStore | None = None
        if getattr(app.state, "store", None) is None:
            owned = SqliteContentStore(Path(settings.database_path))
            app.state.store = owned
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.store = None

    app = FastAPI(title="Structured Content Service", lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/api/content/{item_id}/structured")
    async def get_structured_content(item_id: str, request: Request) -> Dict[str, Any]:
        try:
            loaded = await _store(request).load_document(item_id)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except MalformedBlockPayloadError as exc:
            raise HTTPException(status_code=500, detail=str(exc)) from exc
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {
            "item_id": item_id,
            "structured_content": loaded.content.to_dict(),
            "version": loaded.version,
        }

    @app.put("/api/content/{item_id}/structured")
    async def put_structured_content(item_id: str, body: SaveContentRequest, request: Request) -> Dict[str, Any]:
        try:
            version = await _store(request).save_document(item_id, body.structured_content, body.expected_version)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except VersionConflictError as exc:
            log_event(
                _LOGGER,
                logging.INFO,
                "api.save.conflict",
                item_id=item_id,
                expected_version=body.expected_version,
                current_version=exc.current_version,
            )
            raise HTTPException(
                status_code=409,
                detail={"message": str(exc), "current_version": exc.current_version},
            ) from exc
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        log_event(_LOGGER, logging.INFO, "api.save", item_id=item_id, version=version)
        return {"item_id": item_id, "version": version}

    @app.get("/api/content/{item_id}/version")
    async def get_content_version(item_id: str, request: Request) -> Dict[str, Any]:
        try:
            version = await _store(request).current_version(item_id)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"item_id": item_id, "version": version}

    @app.get("/api/content/{item_id}/preview", response_class=HTMLResponse)
    async def get_content_preview(item_id: str, request: Request) -> HTMLResponse:
        """Render the stored version of the document."""

        store = _store(request)
        try:
            loaded = await store.load_document(item_id)
            html = await store.render_preview(item_id, loaded.content)
        except DocumentNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc
        except (MalformedBlockPayloadError, TransportError) as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return HTMLResponse(html)

    @app.post("/api/content/{item_id}/preview")
    async def post_content_preview(item_id: str, body: PreviewRequest, request: Request) -> Dict[str, Any]:
        """Render posted content, which may hold edits that are not saved yet."""

        try:
            html = await _store(request).render_preview(item_id, body.structured_content)
        except TransportError as exc:
            raise HTTPException(status_code=502, detail=str(exc)) from exc
        return {"item_id": item_id, "html": html}

    return app


load_dotenv()

app = create_app()
