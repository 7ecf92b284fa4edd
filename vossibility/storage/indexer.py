"""Low-level blob indexers."""

from __future__ import annotations

import typing as typ

from vossibility.common.time import format_utc

if typ.TYPE_CHECKING:
    from vossibility.blob import Blob

    from .elasticsearch import ElasticsearchClient

TIMESTAMP_FIELD = "@timestamp"
TYPE_FIELD = "@type"


class BlobIndexer(typ.Protocol):
    """Writes one blob into one destination index, overwriting by id."""

    async def index(self, destination: str, blob: Blob) -> None:
        """Store ``blob`` in ``destination``; raise IndexingError on failure."""
        ...


def document_for(blob: Blob) -> dict[str, typ.Any]:
    """Return the Elasticsearch source for ``blob``.

    Elasticsearch dropped mapping types and ``_timestamp``, so both travel in
    the source as ``@type`` and ``@timestamp``.
    """
    document = dict(blob.data)
    document[TIMESTAMP_FIELD] = format_utc(blob.timestamp)
    document[TYPE_FIELD] = blob.type
    return document


class ElasticsearchIndexer:
    """:class:`BlobIndexer` backed by the Elasticsearch document API."""

    def __init__(self, client: ElasticsearchClient) -> None:
        """Bind the indexer to a shared client."""
        self._client = client

    async def index(self, destination: str, blob: Blob) -> None:
        """Create or overwrite ``blob.id`` in ``destination``."""
        await self._client.index_document(destination, blob.id, document_for(blob))
