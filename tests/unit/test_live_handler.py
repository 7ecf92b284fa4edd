"""Unit tests for live webhook message handling."""

from __future__ import annotations

import datetime as dt
import json
import typing as typ

import pytest

from vossibility.live.handler import (
    HandleOutcome,
    MessageDecodeError,
    MessageHandler,
    QueueMessage,
    decode_envelope,
)
from vossibility.live.lock import PauseLock
from vossibility.storage import Storage, StoreError
from vossibility.transformation import FunctionRegistry, Transformation

from tests.helpers.fakes import FakeLogger, RecordingStore, make_repository

if typ.TYPE_CHECKING:
    from vossibility.storage import Repository


class _FakeLabels:
    def __init__(self, labels: list[dict[str, typ.Any]]) -> None:
        self.labels = labels
        self.requests: list[tuple[str, int]] = []

    async def list_issue_labels(
        self, repository: Repository, number: int
    ) -> list[dict[str, typ.Any]]:
        self.requests.append((repository.given_name, number))
        return self.labels


def _message(
    payload: dict[str, typ.Any],
    *,
    event: str | None = "issues",
    delivery: str | None = "delivery-1",
    headers: dict[str, str] | None = None,
    timestamp: dt.datetime | None = None,
) -> QueueMessage:
    body = dict(payload)
    if event is not None:
        body["X-GitHub-Event"] = event
    if delivery is not None:
        body["X-GitHub-Delivery"] = delivery
    return QueueMessage(
        body=json.dumps(body).encode(),
        timestamp=timestamp,
        headers=headers or {},
    )


def _subscribed_repository() -> Repository:
    registry = FunctionRegistry()
    return make_repository(
        bindings={
            "issues": Transformation.compile("issue_event", {}, registry),
            "pull_request": Transformation.compile("pr_event", {}, registry),
        }
    )


@pytest.fixture
def handler_logger(monkeypatch: pytest.MonkeyPatch) -> FakeLogger:
    """Capture handler logs."""
    fake = FakeLogger()
    monkeypatch.setattr("vossibility.live.handler.logger", fake)
    return fake


class TestDecodeEnvelope:
    """Tests for decode_envelope."""

    def test_body_fields_win(self) -> None:
        """Envelope fields in the body take precedence over headers."""
        message = _message(
            {}, headers={"X-GitHub-Event": "push", "X-GitHub-Delivery": "other"}
        )

        envelope = decode_envelope(message)

        assert (envelope.event, envelope.delivery) == ("issues", "delivery-1")

    def test_headers_fill_missing_fields(self) -> None:
        """Transport headers stand in for missing body fields."""
        message = _message(
            {},
            event=None,
            delivery=None,
            headers={"X-GitHub-Event": "push", "X-GitHub-Delivery": "d-2"},
        )

        envelope = decode_envelope(message)

        assert (envelope.event, envelope.delivery) == ("push", "d-2")

    @pytest.mark.parametrize(
        ("message", "error"),
        [
            (QueueMessage(body=b"not json"), "invalid message envelope"),
            (QueueMessage(body=b"[1, 2]"), "invalid message envelope"),
            (_message({}, event=None), "no X-GitHub-Event"),
            (_message({}, delivery=None), "no X-GitHub-Delivery"),
        ],
    )
    def test_unusable_envelopes(self, message: QueueMessage, error: str) -> None:
        """Bodies without an event type or delivery id are rejected."""
        with pytest.raises(MessageDecodeError, match=error):
            decode_envelope(message)


class TestMessageHandler:
    """Tests for MessageHandler."""

    @pytest.mark.asyncio
    async def test_subscribed_event_is_stored_as_live_event(
        self, handler_logger: FakeLogger
    ) -> None:
        """Subscribed events are stored at the live tier."""
        store = RecordingStore()
        handler = MessageHandler(
            _subscribed_repository(), store, _FakeLabels([]), PauseLock()
        )
        when = dt.datetime(2015, 6, 9, 12, tzinfo=dt.UTC)

        outcome = await handler.handle(
            _message({"action": "opened"}, timestamp=when)
        )

        assert outcome is HandleOutcome.STORED
        (call,) = store.calls
        assert call.storage is Storage.LIVE_EVENT
        assert (call.blob.type, call.blob.id) == ("issues", "delivery-1")
        assert call.blob.timestamp == when
        assert call.blob.data["action"] == "opened"
        assert any("receive event 'issues'" in m for m in handler_logger.messages())

    @pytest.mark.asyncio
    async def test_unsubscribed_event_is_ignored(
        self, handler_logger: FakeLogger
    ) -> None:
        """Events outside the event set are acknowledged without storing."""
        del handler_logger
        store = RecordingStore()
        handler = MessageHandler(
            _subscribed_repository(), store, _FakeLabels([]), PauseLock()
        )

        outcome = await handler.handle(_message({}, event="watch"))

        assert outcome is HandleOutcome.IGNORED
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_malformed_message_is_dropped(
        self, handler_logger: FakeLogger
    ) -> None:
        """Undecodable messages are acknowledged and logged."""
        store = RecordingStore()
        handler = MessageHandler(
            _subscribed_repository(), store, _FakeLabels([]), PauseLock()
        )

        outcome = await handler.handle(_message({}, delivery=None))

        assert outcome is HandleOutcome.DROPPED
        assert store.calls == []
        (error,) = handler_logger.messages("ERROR")
        assert "dropping undecodable message for repository docker" in error

    @pytest.mark.asyncio
    async def test_pull_request_without_labels_is_enriched(
        self, handler_logger: FakeLogger
    ) -> None:
        """Labels are fetched for pull request events lacking them."""
        del handler_logger
        store = RecordingStore()
        labels = _FakeLabels([{"name": "bug"}])
        handler = MessageHandler(_subscribed_repository(), store, labels, PauseLock())

        await handler.handle(
            _message(
                {"action": "opened", "number": 12, "pull_request": {"title": "Fix"}},
                event="pull_request",
            )
        )

        assert labels.requests == [("docker", 12)]
        assert store.calls[0].blob.get("pull_request.labels") == [{"name": "bug"}]

    @pytest.mark.asyncio
    async def test_pull_request_with_labels_is_not_enriched(
        self, handler_logger: FakeLogger
    ) -> None:
        """Existing labels are kept as delivered."""
        del handler_logger
        labels = _FakeLabels([{"name": "bug"}])
        handler = MessageHandler(
            _subscribed_repository(), RecordingStore(), labels, PauseLock()
        )

        await handler.handle(
            _message(
                {"number": 12, "pull_request": {"labels": []}}, event="pull_request"
            )
        )

        assert labels.requests == []

    @pytest.mark.asyncio
    async def test_pull_request_without_number_warns(
        self, handler_logger: FakeLogger
    ) -> None:
        """A pull request with no number is stored without labels."""
        store = RecordingStore()
        labels = _FakeLabels([{"name": "bug"}])
        handler = MessageHandler(_subscribed_repository(), store, labels, PauseLock())

        outcome = await handler.handle(
            _message({"pull_request": {"title": "Fix"}}, event="pull_request")
        )

        assert outcome is HandleOutcome.STORED
        assert labels.requests == []
        (warning,) = handler_logger.messages("WARNING")
        assert "carries no number" in warning

    @pytest.mark.asyncio
    async def test_store_failure_requests_redelivery(
        self, handler_logger: FakeLogger
    ) -> None:
        """Storage failures propagate so the message is delivered again."""
        error = StoreError(Storage.LIVE_EVENT, "docker-live-2015.06", "delivery-1")
        lock = PauseLock()
        handler = MessageHandler(
            _subscribed_repository(), RecordingStore(error), _FakeLabels([]), lock
        )

        with pytest.raises(StoreError):
            await handler.handle(_message({"action": "opened"}))

        assert lock.readers == 0, "The shared hold must be released"
        assert any(
            "failed to store event 'issues'" in message
            for message in handler_logger.messages("ERROR")
        )
