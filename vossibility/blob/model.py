"""The Blob: one typed, identified, timestamped JSON document."""

from __future__ import annotations

import copy
import dataclasses
import datetime as dt
import enum
import typing as typ

import msgspec

from vossibility.common.time import utcnow

from .errors import (
    BlobDecodeError,
    BlobEncodeError,
    InvalidMetadataFieldError,
    InvalidSnapshotError,
    MetadataTypeMismatchError,
)
from .paths import Document, get_path, has_path, lookup, set_path

METADATA_PREFIX = "_"


class MetadataField(enum.StrEnum):
    """Reserved keys routed to blob attributes instead of the document."""

    TYPE = "_type"
    SNAPSHOT_ID = "_snapshot_id"
    SNAPSHOT_FIELD = "_snapshot_field"


@dataclasses.dataclass(frozen=True, slots=True)
class _MetadataSlot:
    attribute: str
    expected: type


_METADATA_SLOTS: typ.Final[dict[MetadataField, _MetadataSlot]] = {
    MetadataField.TYPE: _MetadataSlot("type", str),
    MetadataField.SNAPSHOT_ID: _MetadataSlot("snapshot_id", str),
    MetadataField.SNAPSHOT_FIELD: _MetadataSlot("snapshot_field", str),
}


def is_metadata_key(key: str) -> bool:
    """Return True when ``key`` uses the reserved metadata prefix."""
    return key.startswith(METADATA_PREFIX)


def _snapshot_identifier(path: str, value: object) -> str:
    match value:
        case bool():
            raise InvalidSnapshotError.bad_identifier(path, value)
        case int():
            return str(value)
        case float() if value.is_integer():
            return str(int(value))
        case str() if value:
            return value
        case _:
            raise InvalidSnapshotError.bad_identifier(path, value)


@dataclasses.dataclass(slots=True, eq=False)
class Blob:
    """A GitHub event or entity document plus its storage metadata.

    ``type`` and ``id`` identify the document within a storage tier, and
    ``timestamp`` routes it to time-bucketed indices. ``snapshot_id`` and
    ``snapshot_field`` are only ever set through :meth:`push` with reserved
    keys; they tell the store how to derive a durable entity from an event.
    """

    type: str
    id: str
    timestamp: dt.datetime = dataclasses.field(default_factory=utcnow)
    data: Document = dataclasses.field(default_factory=dict)
    snapshot_id: str | None = None
    snapshot_field: str | None = None

    @classmethod
    def from_payload(cls, type_: str, id_: str, payload: bytes | str) -> Blob:
        """Build a blob whose document is the decoded JSON ``payload``.

        Raises
        ------
        BlobDecodeError
            If ``payload`` is not valid JSON or its root is not an object.

        """
        try:
            decoded = msgspec.json.decode(payload)
        except msgspec.DecodeError as exc:
            raise BlobDecodeError.invalid_json(exc) from exc
        if not isinstance(decoded, dict):
            raise BlobDecodeError.not_an_object(type(decoded).__name__)
        return cls(type=type_, id=id_, data=decoded)

    def push(self, key: str, value: object) -> None:
        """Set ``key`` to ``value``.

        Reserved keys update metadata attributes and must match a known field
        with a string value. Any other key is a dot-path into ``data``.

        Raises
        ------
        InvalidMetadataFieldError
            If a reserved key does not name a metadata field.
        MetadataTypeMismatchError
            If a metadata field receives a value of the wrong type.
        PathConflictError
            If the dot-path runs through a value that is not an object.

        """
        if is_metadata_key(key):
            self._push_metadata(key, value)
            return
        set_path(self.data, key, value)

    def _push_metadata(self, key: str, value: object) -> None:
        try:
            field = MetadataField(key)
        except ValueError:
            raise InvalidMetadataFieldError.unknown(key) from None
        slot = _METADATA_SLOTS[field]
        if not isinstance(value, slot.expected):
            raise MetadataTypeMismatchError.bad_value(key, value, slot.expected)
        setattr(self, slot.attribute, value)

    def has_attribute(self, path: str) -> bool:
        """Return True when ``path`` resolves in the document, even to null."""
        return has_path(self.data, path)

    def get(self, path: str, default: object = None) -> typ.Any:  # noqa: ANN401
        """Return the document value at ``path`` or ``default``."""
        return get_path(self.data, path, default)

    def encode(self) -> bytes:
        """Serialise the document to JSON with sorted keys."""
        try:
            return msgspec.json.encode(self.data, order="sorted")
        except (TypeError, msgspec.EncodeError) as exc:
            raise BlobEncodeError.unencodable(exc) from exc

    def snapshot(self) -> Blob | None:
        """Derive the durable entity blob described by the snapshot metadata.

        Returns None unless both ``snapshot_id`` and ``snapshot_field`` are
        set. The snapshot owns a copy of the sub-document, keeps this blob's
        type and timestamp, and takes its id from ``snapshot_id`` evaluated
        inside the sub-document.
        """
        if not self.snapshot_id or not self.snapshot_field:
            return None

        document = lookup(self.data, self.snapshot_field)
        if not isinstance(document, dict):
            raise InvalidSnapshotError.field_not_object(self.snapshot_field)

        identifier = lookup(document, self.snapshot_id)
        return Blob(
            type=self.type,
            id=_snapshot_identifier(self.snapshot_id, identifier),
            timestamp=self.timestamp,
            data=copy.deepcopy(document),
        )


__all__ = ["METADATA_PREFIX", "Blob", "MetadataField", "is_metadata_key"]
