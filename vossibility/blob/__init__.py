"""Blob document model and its dot-path helpers."""

from __future__ import annotations

from .errors import (
    BlobDecodeError,
    BlobEncodeError,
    BlobError,
    InvalidMetadataFieldError,
    InvalidSnapshotError,
    MetadataTypeMismatchError,
    PathConflictError,
)
from .model import METADATA_PREFIX, Blob, MetadataField, is_metadata_key
from .paths import Document, JSONValue, get_path, has_path, set_path

__all__ = [
    "METADATA_PREFIX",
    "Blob",
    "BlobDecodeError",
    "BlobEncodeError",
    "BlobError",
    "Document",
    "InvalidMetadataFieldError",
    "InvalidSnapshotError",
    "JSONValue",
    "MetadataField",
    "MetadataTypeMismatchError",
    "PathConflictError",
    "get_path",
    "has_path",
    "is_metadata_key",
    "set_path",
]
