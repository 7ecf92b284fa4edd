"""Tiered blob storage.

Storing a blob at a tier also stores it at every more durable tier, in
order: ``LIVE_EVENT`` then ``CURRENT_STATE`` then ``SNAPSHOT``. Writing
directly to a durable tier never touches a less durable one. After the live
write, the remaining tiers receive the blob's snapshot, and the cascade ends
when the blob carries no snapshot metadata.
"""

from __future__ import annotations

import enum
import logging
import typing as typ

from vossibility.github.events import SNAPSHOT_EVENT_FOR_ENTITY
from vossibility.transformation import EvaluationContext

from .errors import IndexingError, StoreError

if typ.TYPE_CHECKING:
    from vossibility.blob import Blob
    from vossibility.transformation import Transformation

    from .indexer import BlobIndexer
    from .repository import Repository

logger = logging.getLogger(__name__)


class Storage(enum.Enum):
    """Storage tiers, from most ephemeral to most durable."""

    LIVE_EVENT = "live_event"
    CURRENT_STATE = "current_state"
    SNAPSHOT = "snapshot"

    @property
    def label(self) -> str:
        """Return a human-readable tier name for messages."""
        return self.value.replace("_", " ")


_CASCADE: typ.Final[tuple[Storage, ...]] = (
    Storage.LIVE_EVENT,
    Storage.CURRENT_STATE,
    Storage.SNAPSHOT,
)


def cascade_from(storage: Storage) -> tuple[Storage, ...]:
    """Return the tiers written when storing at ``storage``, in order."""
    return _CASCADE[_CASCADE.index(storage) :]


def destination_for(storage: Storage, repository: Repository, blob: Blob) -> str:
    """Return the index ``blob`` is written to for ``storage``."""
    match storage:
        case Storage.LIVE_EVENT:
            return repository.live_index_for_timestamp(blob.timestamp)
        case Storage.CURRENT_STATE:
            return repository.state_index_for_timestamp(blob.timestamp)
        case Storage.SNAPSHOT:
            return repository.snapshot_index()


class BlobStore(typ.Protocol):
    """Stores a blob for a repository at a tier."""

    async def store(self, storage: Storage, repository: Repository, blob: Blob) -> None:
        """Persist ``blob``; raise on the first failed write."""
        ...


class TieredBlobStore:
    """Cascades writes across tiers through an injected indexer."""

    def __init__(self, indexer: BlobIndexer) -> None:
        """Bind the store to the indexer performing physical writes."""
        self._indexer = indexer

    async def store(self, storage: Storage, repository: Repository, blob: Blob) -> None:
        """Write ``blob`` at ``storage`` and every more durable tier.

        Raises
        ------
        StoreError
            If a write fails; remaining tiers are not written.
        InvalidSnapshotError
            If the blob's snapshot metadata points at unusable data.

        """
        current: Blob | None = blob
        for tier in cascade_from(storage):
            if current is None:
                return
            destination = destination_for(tier, repository, current)
            logger.debug(
                "store %s to %s/%s/%s",
                tier.label,
                destination,
                current.type,
                current.id,
            )
            try:
                await self._indexer.index(destination, current)
            except IndexingError as exc:
                raise StoreError(tier, destination, current.id) from exc
            if tier is Storage.LIVE_EVENT:
                current = current.snapshot()


class TransformingBlobStore:
    """Applies the repository's transformation before delegating."""

    def __init__(self, inner: BlobStore) -> None:
        """Wrap the store receiving transformed blobs."""
        self._inner = inner

    def transformation_for(
        self, storage: Storage, repository: Repository, blob_type: str
    ) -> Transformation | None:
        """Select the transformation for a blob type at a tier.

        Live events use the event set binding for their own type. Synced
        issues and pull requests share type names with live events, so other
        tiers use the fixed snapshot bindings instead.
        """
        if storage is Storage.LIVE_EVENT:
            return repository.event_set.transformation_for(blob_type)
        snapshot_event = SNAPSHOT_EVENT_FOR_ENTITY.get(blob_type)
        if snapshot_event is None:
            return None
        return repository.event_set.transformation_for(snapshot_event)

    async def store(self, storage: Storage, repository: Repository, blob: Blob) -> None:
        """Transform ``blob`` when a transformation is bound, then store it."""
        transformation = self.transformation_for(storage, repository, blob.type)
        if transformation is None:
            logger.warning(
                "no transformation found for event type %r in %s",
                blob.type,
                repository.pretty_name,
            )
        else:
            context = EvaluationContext(repository=repository)
            blob = await transformation.apply(blob, context=context)
        await self._inner.store(storage, repository, blob)
