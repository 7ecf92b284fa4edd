"""Minimal asynchronous Elasticsearch REST client."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ
from urllib.parse import quote

import httpx
import msgspec

from .errors import ElasticsearchError, IndexingError

_HTTP_ERROR_STATUS_THRESHOLD = 400
_HTTP_NOT_FOUND = 404
_JSON_HEADERS: typ.Final = {"Content-Type": "application/json"}


@dataclasses.dataclass(frozen=True, slots=True)
class ElasticsearchConfig:
    """Connection settings for the Elasticsearch backend."""

    url: str
    timeout_s: float = 10.0
    user_agent: str = "vossibility-collector/0.1"


def _segment(value: str) -> str:
    return quote(value, safe="")


class ElasticsearchClient:
    """Document and template operations used by the collector."""

    def __init__(
        self,
        config: ElasticsearchConfig,
        *,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialise the client; an injected ``http_client`` is not closed."""
        self.config = config
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=config.timeout_s,
            headers={
                "User-Agent": config.user_agent,
                "Accept": "application/json",
            },
        )

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _url(self, *segments: str) -> str:
        return "/".join((self.config.url.rstrip("/"), *segments))

    async def index_document(
        self,
        index: str,
        document_id: str,
        document: cabc.Mapping[str, typ.Any],
    ) -> None:
        """Create or overwrite ``document_id`` in ``index``.

        Raises
        ------
        IndexingError
            If the request fails or Elasticsearch rejects the document.

        """
        target = f"{index}/{document_id}"
        url = self._url(_segment(index), "_doc", _segment(document_id))
        try:
            response = await self._client.put(
                url,
                content=msgspec.json.encode(dict(document)),
                headers=_JSON_HEADERS,
            )
        except httpx.HTTPError as exc:
            raise IndexingError.unreachable(target, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise IndexingError.http_error(target, response.status_code, response.text)

    async def get_source(
        self, index: str, document_id: str
    ) -> dict[str, typ.Any] | None:
        """Return the stored source of a document, or None when it is absent."""
        target = f"{index}/{document_id}"
        url = self._url(_segment(index), "_source", _segment(document_id))
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise ElasticsearchError.unreachable(target, exc) from exc
        if response.status_code == _HTTP_NOT_FOUND:
            return None
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ElasticsearchError.http_error(
                target, response.status_code, response.text
            )
        payload = response.json()
        return payload if isinstance(payload, dict) else None

    async def put_index_template(
        self, name: str, template: cabc.Mapping[str, typ.Any]
    ) -> None:
        """Create or replace the composable index template ``name``."""
        target = f"_index_template/{name}"
        try:
            response = await self._client.put(
                self._url("_index_template", _segment(name)),
                content=msgspec.json.encode(dict(template)),
                headers=_JSON_HEADERS,
            )
        except httpx.HTTPError as exc:
            raise ElasticsearchError.unreachable(target, exc) from exc
        if response.status_code >= _HTTP_ERROR_STATUS_THRESHOLD:
            raise ElasticsearchError.http_error(
                target, response.status_code, response.text
            )
