"""HTTP client for the content API."""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Dict

import httpx

from .document import StructuredContent
from .errors import DocumentNotFoundError, TransportError, VersionConflictError
from .store import ContentStore, LoadedDocument, RemoteUpdate, poll_remote_updates
from .tracing import log_event

_LOGGER = logging.getLogger("pageeditor.http")


class HttpContentStore(ContentStore):
    """Talks to ``/content/{id}/...`` routes of the content service.

    404 answers become :class:`DocumentNotFoundError`, 409 answers become
    :class:`VersionConflictError` and anything else that goes wrong on the
    wire becomes :class:`TransportError`.
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout: float = 20.0,
        poll_interval: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def _request(self, method: str, path: str, document_id: str, **kwargs: Any) -> Dict[str, Any]:
        log_event(_LOGGER, logging.DEBUG, "http.request", method=method, path=path)
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} {path} failed: {exc}") from exc

        log_event(_LOGGER, logging.INFO, "http.response", method=method, path=path, status_code=response.status_code)
        if response.status_code == 404:
            raise DocumentNotFoundError(document_id)
        if response.status_code == 409:
            detail = _json_or_empty(response).get("detail")
            current = detail.get("current_version") if isinstance(detail, dict) else None
            expected = kwargs.get("json", {}).get("expected_version")
            if not isinstance(current, int):
                raise TransportError(f"Conflict answer without current_version for {document_id}")
            raise VersionConflictError(document_id, current, expected)
        if response.status_code >= 400:
            raise TransportError(f"{method} {path} returned HTTP {response.status_code}")

        data = _json_or_empty(response)
        if not data:
            raise TransportError(f"{method} {path} returned an empty or non-JSON body")
        return data

    async def load_document(self, document_id: str) -> LoadedDocument:
        data = await self._request("GET", f"/content/{document_id}/structured", document_id)
        payload = data.get("structured_content")
        if not isinstance(payload, dict):
            raise TransportError(f"Content answer for {document_id} carries no structured_content")
        content = StructuredContent.from_dict(payload)
        return LoadedDocument(content=content, version=_version_of(data, document_id))

    async def save_document(
        self,
        document_id: str,
        content: StructuredContent,
        expected_version: int | None,
    ) -> int:
        body: Dict[str, Any] = {"structured_content": content.to_dict()}
        if expected_version is not None:
            body["expected_version"] = expected_version
        data = await self._request("PUT", f"/content/{document_id}/structured", document_id, json=body)
        return _version_of(data, document_id)

    async def current_version(self, document_id: str) -> int:
        data = await self._request("GET", f"/content/{document_id}/version", document_id)
        return _version_of(data, document_id)

    async def render_preview(self, document_id: str, content: StructuredContent) -> str:
        data = await self._request(
            "POST",
            f"/content/{document_id}/preview",
            document_id,
            json={"structured_content": content.to_dict()},
        )
        html = data.get("html")
        if not isinstance(html, str):
            raise TransportError(f"Preview answer for {document_id} carries no html")
        return html

    def remote_updates(self, document_id: str) -> AsyncIterator[RemoteUpdate]:
        return poll_remote_updates(self.current_version, document_id, self._poll_interval)

    async def aclose(self) -> None:
        await self._client.aclose()


def _json_or_empty(response: httpx.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _version_of(data: Dict[str, Any], document_id: str) -> int:
    version = data.get("version")
    if not isinstance(version, int):
        raise TransportError(f"Answer for {document_id} carries no version")
    return version


__all__ = ["HttpContentStore"]
