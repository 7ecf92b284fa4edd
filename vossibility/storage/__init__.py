"""Repositories, index naming and the tiered Elasticsearch blob store."""

from __future__ import annotations

from .blobstore import (
    BlobStore,
    Storage,
    TieredBlobStore,
    TransformingBlobStore,
    cascade_from,
    destination_for,
)
from .elasticsearch import ElasticsearchClient, ElasticsearchConfig
from .errors import ElasticsearchError, IndexingError, StorageError, StoreError
from .indexer import BlobIndexer, ElasticsearchIndexer, document_for
from .repository import (
    DEFAULT_EVENT_SET,
    EventSet,
    Periodicity,
    Repository,
    live_index_for_timestamp,
    snapshot_index,
    state_index_for_timestamp,
)
from .users import USERS_INDEX, ElasticsearchUserStore, UserData, UserStore

__all__ = [
    "DEFAULT_EVENT_SET",
    "USERS_INDEX",
    "BlobIndexer",
    "BlobStore",
    "ElasticsearchClient",
    "ElasticsearchConfig",
    "ElasticsearchError",
    "ElasticsearchIndexer",
    "ElasticsearchUserStore",
    "EventSet",
    "IndexingError",
    "Periodicity",
    "Repository",
    "Storage",
    "StorageError",
    "StoreError",
    "TieredBlobStore",
    "TransformingBlobStore",
    "UserData",
    "UserStore",
    "cascade_from",
    "destination_for",
    "document_for",
    "live_index_for_timestamp",
    "snapshot_index",
    "state_index_for_timestamp",
]
