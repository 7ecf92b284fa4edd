"""Storage errors."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .blobstore import Storage


class StorageError(RuntimeError):
    """Base class for storage failures."""


class ElasticsearchError(StorageError):
    """Raised when an Elasticsearch request fails."""

    def __init__(
        self,
        message: str,
        *,
        target: str,
        status_code: int | None = None,
    ) -> None:
        """Record the request target and the HTTP status when there is one."""
        super().__init__(message)
        self.target = target
        self.status_code = status_code

    @classmethod
    def http_error(cls, target: str, status_code: int, body: str) -> typ.Self:
        """Create an error for a non-2xx backend response."""
        detail = f": {body[:200]}" if body else ""
        return cls(
            f"{target}: Elasticsearch HTTP {status_code}{detail}",
            target=target,
            status_code=status_code,
        )

    @classmethod
    def unreachable(cls, target: str, detail: object) -> typ.Self:
        """Create an error for transport failures."""
        return cls(f"{target}: Elasticsearch unreachable: {detail}", target=target)


class IndexingError(ElasticsearchError):
    """Raised when a document cannot be written to its index."""


class StoreError(StorageError):
    """Raised when one step of a tiered store fails."""

    def __init__(self, tier: Storage, destination: str, blob_id: str) -> None:
        """Record which tier, index and document failed."""
        super().__init__(f"store {tier.label} {blob_id} data into {destination}")
        self.tier = tier
        self.destination = destination
        self.blob_id = blob_id
