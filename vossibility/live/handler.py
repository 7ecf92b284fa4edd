"""Handling of one live webhook message for one repository."""

from __future__ import annotations

import dataclasses
import enum
import types
import typing as typ

import msgspec

from vossibility.blob import Blob, BlobDecodeError
from vossibility.github.events import GitHubEvent
from vossibility.github.models import PartialMessage
from vossibility.logging import (
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)
from vossibility.storage.blobstore import Storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from vossibility.storage.blobstore import BlobStore
    from vossibility.storage.repository import Repository

    from .lock import PauseLock

logger = get_logger(__name__)

LABELS_ATTRIBUTE = "pull_request.labels"
EVENT_HEADER = "X-GitHub-Event"
DELIVERY_HEADER = "X-GitHub-Delivery"


class MessageDecodeError(ValueError):
    """Raised when a queue message does not carry a usable envelope."""

    @classmethod
    def invalid_envelope(cls, detail: object) -> MessageDecodeError:
        """Create an error for bodies whose envelope cannot be decoded."""
        return cls(f"invalid message envelope: {detail}")

    @classmethod
    def missing(cls, header: str) -> MessageDecodeError:
        """Create an error for a message lacking a required header."""
        return cls(f"message has no {header}")


class HandleOutcome(enum.StrEnum):
    """What happened to a message that was acknowledged."""

    STORED = "stored"
    IGNORED = "ignored"
    DROPPED = "dropped"


@dataclasses.dataclass(frozen=True, slots=True)
class QueueMessage:
    """A delivered message: raw body, enqueue time and transport headers."""

    body: bytes
    timestamp: dt.datetime | None = None
    headers: cabc.Mapping[str, str] = dataclasses.field(
        default_factory=lambda: types.MappingProxyType({})
    )


@dataclasses.dataclass(frozen=True, slots=True)
class Envelope:
    """Event type and delivery id of a webhook message."""

    event: str
    delivery: str


def decode_envelope(message: QueueMessage) -> Envelope:
    """Read the envelope from the body, falling back to transport headers.

    Raises
    ------
    MessageDecodeError
        If the body is not a JSON object or the event type or delivery id
        is missing.

    """
    try:
        partial = msgspec.json.decode(message.body, type=PartialMessage)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
        raise MessageDecodeError.invalid_envelope(exc) from exc
    event = partial.github_event or message.headers.get(EVENT_HEADER, "")
    delivery = partial.github_delivery or message.headers.get(DELIVERY_HEADER, "")
    if not event:
        raise MessageDecodeError.missing(EVENT_HEADER)
    if not delivery:
        raise MessageDecodeError.missing(DELIVERY_HEADER)
    return Envelope(event=event, delivery=delivery)


class LabelSource(typ.Protocol):
    """Fetches the labels of an issue or pull request."""

    async def list_issue_labels(
        self, repository: Repository, number: int
    ) -> list[dict[str, typ.Any]]:
        """Return the labels of issue ``number``."""
        ...


class MessageHandler:
    """Stores the live events of one repository.

    Returning normally acknowledges the message. Raising asks the transport
    to deliver it again, which is what transformation and storage failures
    do; malformed messages are acknowledged and dropped since redelivery
    cannot fix them.
    """

    def __init__(
        self,
        repository: Repository,
        store: BlobStore,
        labels: LabelSource,
        pause_lock: PauseLock,
    ) -> None:
        """Bind the handler to its repository and shared collaborators."""
        self.repository = repository
        self._store = store
        self._labels = labels
        self._pause_lock = pause_lock

    async def handle(self, message: QueueMessage) -> HandleOutcome:
        """Process one message while holding the pause lock shared."""
        async with self._pause_lock.shared():
            try:
                envelope = decode_envelope(message)
                if not self.repository.is_subscribed(envelope.event):
                    log_debug(
                        logger,
                        "ignoring event %r for repository %s",
                        envelope.event,
                        self.repository.pretty_name,
                    )
                    return HandleOutcome.IGNORED
                blob = Blob.from_payload(
                    envelope.event, envelope.delivery, message.body
                )
            except (MessageDecodeError, BlobDecodeError) as exc:
                log_error(
                    logger,
                    "dropping undecodable message for repository %s: %s",
                    self.repository.pretty_name,
                    exc,
                )
                return HandleOutcome.DROPPED

            log_info(
                logger,
                "receive event %r for repository %s (delivery %s)",
                envelope.event,
                self.repository.pretty_name,
                envelope.delivery,
            )
            try:
                await self._prepare_for_storage(blob)
                if message.timestamp is not None:
                    blob.timestamp = message.timestamp
                await self._store.store(Storage.LIVE_EVENT, self.repository, blob)
            except Exception as exc:
                log_error(
                    logger,
                    "failed to store event %r for repository %s (delivery %s): %s",
                    envelope.event,
                    self.repository.pretty_name,
                    envelope.delivery,
                    exc,
                    exc_info=exc,
                )
                raise
            return HandleOutcome.STORED

    async def _prepare_for_storage(self, blob: Blob) -> None:
        """Attach labels to pull request events that were delivered without."""
        if blob.type != GitHubEvent.PULL_REQUEST or blob.has_attribute(
            LABELS_ATTRIBUTE
        ):
            return
        number = blob.get("number")
        if not isinstance(number, int) or isinstance(number, bool):
            number = blob.get("pull_request.number")
        if not isinstance(number, int) or isinstance(number, bool):
            log_warning(
                logger,
                "pull request event %s for %s carries no number; labels not fetched",
                blob.id,
                self.repository.pretty_name,
            )
            return
        log_debug(
            logger,
            "fetching labels for %s #%d",
            self.repository.pretty_name,
            number,
        )
        labels = await self._labels.list_issue_labels(self.repository, number)
        blob.push(LABELS_ATTRIBUTE, labels)
