"""Errors raised while building, mutating, or snapshotting blobs."""

from __future__ import annotations

import enum


class BlobErrorReason(enum.StrEnum):
    """Machine-readable reasons for blob failures."""

    INVALID_JSON = "invalid_json"
    NOT_AN_OBJECT = "not_an_object"
    INVALID_METADATA_FIELD = "invalid_metadata_field"
    BAD_METADATA_VALUE = "bad_metadata_value"
    PATH_CONFLICT = "path_conflict"
    INVALID_SNAPSHOT = "invalid_snapshot"
    UNENCODABLE = "unencodable"


class BlobError(Exception):
    """Base class for blob failures."""

    def __init__(self, message: str, reason: BlobErrorReason | None = None) -> None:
        """Store a machine-readable reason alongside the message."""
        super().__init__(message)
        self.reason = reason


class BlobDecodeError(BlobError):
    """Raised when a payload cannot be decoded into a blob document."""

    @classmethod
    def invalid_json(cls, detail: object) -> BlobDecodeError:
        """Create an error for payloads that are not valid JSON."""
        return cls(f"invalid JSON payload: {detail}", BlobErrorReason.INVALID_JSON)

    @classmethod
    def not_an_object(cls, kind: str) -> BlobDecodeError:
        """Create an error for JSON payloads whose root is not an object."""
        return cls(
            f"payload root must be a JSON object, got {kind}",
            BlobErrorReason.NOT_AN_OBJECT,
        )


class InvalidMetadataFieldError(BlobError):
    """Raised when a reserved key does not name a known metadata field."""

    @classmethod
    def unknown(cls, key: str) -> InvalidMetadataFieldError:
        """Create an error for an unrecognised reserved key."""
        return cls(
            f"invalid metadata field {key!r}",
            BlobErrorReason.INVALID_METADATA_FIELD,
        )


class MetadataTypeMismatchError(BlobError):
    """Raised when a metadata field receives a value of the wrong type."""

    @classmethod
    def bad_value(
        cls, key: str, value: object, expected: type
    ) -> MetadataTypeMismatchError:
        """Create an error naming the field, the value, and the expected type."""
        return cls(
            f"bad value {value!r} for metadata field {key!r} "
            f"(expected {expected.__name__}, got {type(value).__name__})",
            BlobErrorReason.BAD_METADATA_VALUE,
        )


class PathConflictError(BlobError):
    """Raised when a dot-path traverses a value that is not an object."""

    def __init__(self, path: str, segment: str) -> None:
        """Record the full path and the segment that hit a non-object."""
        super().__init__(
            f"cannot set {path!r}: {segment!r} is not an object",
            BlobErrorReason.PATH_CONFLICT,
        )
        self.path = path
        self.segment = segment


class InvalidSnapshotError(BlobError):
    """Raised when snapshot metadata points at unusable data."""

    @classmethod
    def field_not_object(cls, field: str) -> InvalidSnapshotError:
        """Create an error when the snapshot field is absent or not an object."""
        return cls(
            f"snapshot field {field!r} does not hold an object",
            BlobErrorReason.INVALID_SNAPSHOT,
        )

    @classmethod
    def bad_identifier(cls, path: str, value: object) -> InvalidSnapshotError:
        """Create an error when the snapshot identifier is not a scalar."""
        return cls(
            f"snapshot id at {path!r} must be a string or integer, got {value!r}",
            BlobErrorReason.INVALID_SNAPSHOT,
        )


class BlobEncodeError(BlobError):
    """Raised when a blob document holds values JSON cannot represent."""

    @classmethod
    def unencodable(cls, detail: object) -> BlobEncodeError:
        """Create an error wrapping the encoder failure."""
        return cls(f"failed to encode blob: {detail}", BlobErrorReason.UNENCODABLE)
