"""Unit tests for the AMQP live queue consumer."""

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import datetime as dt
import typing as typ

import aio_pika
import pytest

from vossibility.config.models import AMQPSettings
from vossibility.live.handler import HandleOutcome
from vossibility.live.queue import LiveQueue, queue_name, to_queue_message

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from vossibility.live.handler import QueueMessage


@dataclasses.dataclass
class _FakeMessage:
    body: bytes
    headers: dict[str, object] = dataclasses.field(default_factory=dict)
    timestamp: dt.datetime | None = None
    outcome: str | None = None

    @contextlib.asynccontextmanager
    async def process(self, *, requeue: bool = False) -> cabc.AsyncIterator[None]:
        try:
            yield
        except Exception:
            self.outcome = "requeued" if requeue else "rejected"
            raise
        self.outcome = "acked"


class _FakeQueue:
    def __init__(self) -> None:
        self.bindings: list[tuple[object, str]] = []
        self.callback: cabc.Callable[[typ.Any], cabc.Awaitable[None]] | None = None
        self.cancelled: list[str] = []

    async def bind(self, exchange: object, *, routing_key: str) -> None:
        self.bindings.append((exchange, routing_key))

    async def consume(
        self, callback: cabc.Callable[[typ.Any], cabc.Awaitable[None]]
    ) -> str:
        self.callback = callback
        return "ctag-1"

    async def cancel(self, consumer_tag: str) -> None:
        self.cancelled.append(consumer_tag)


class _FakeChannel:
    def __init__(self) -> None:
        self.queue = _FakeQueue()
        self.prefetch_count: int | None = None
        self.exchanges: list[tuple[str, object, bool]] = []
        self.queues: list[tuple[str, bool]] = []
        self.closed = False

    async def set_qos(self, *, prefetch_count: int) -> None:
        self.prefetch_count = prefetch_count

    async def declare_exchange(
        self, name: str, kind: object, *, durable: bool
    ) -> str:
        self.exchanges.append((name, kind, durable))
        return f"exchange:{name}"

    async def declare_queue(self, name: str, *, durable: bool) -> _FakeQueue:
        self.queues.append((name, durable))
        return self.queue

    async def close(self) -> None:
        self.closed = True


class _FakeConnection:
    def __init__(self) -> None:
        self.channels: list[_FakeChannel] = []

    async def channel(self) -> _FakeChannel:
        channel = _FakeChannel()
        self.channels.append(channel)
        return channel


class _RecordingHandler:
    def __init__(self, error: Exception | None = None) -> None:
        self.messages: list[QueueMessage] = []
        self.error = error
        self.release = asyncio.Event()
        self.release.set()

    async def handle(self, message: QueueMessage) -> HandleOutcome:
        self.messages.append(message)
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return HandleOutcome.STORED


def _settings() -> AMQPSettings:
    return AMQPSettings(exchange="github", prefetch_count=4)


async def _started(
    handler: _RecordingHandler,
) -> tuple[LiveQueue, _FakeChannel]:
    connection = _FakeConnection()
    queue = LiveQueue(
        connection,  # type: ignore[arg-type]
        _settings(),
        "docker-events",
        handler,
    )
    await queue.start()
    return queue, connection.channels[0]


def test_queue_name() -> None:
    """Queues are named after exchange and topic."""
    assert queue_name("github", "docker-events") == "github.docker-events"


def test_to_queue_message_keeps_text_headers() -> None:
    """Byte headers are decoded; other header values are dropped."""
    when = dt.datetime(2015, 6, 9, tzinfo=dt.UTC)
    message = _FakeMessage(
        body=b"{}",
        headers={"X-GitHub-Event": b"push", "X-GitHub-Delivery": "d-1", "n": 3},
        timestamp=when,
    )

    converted = to_queue_message(message)  # type: ignore[arg-type]

    assert converted.body == b"{}"
    assert converted.timestamp == when
    assert dict(converted.headers) == {
        "X-GitHub-Event": "push",
        "X-GitHub-Delivery": "d-1",
    }


@pytest.mark.asyncio
async def test_start_declares_and_binds_topic() -> None:
    """The durable queue is bound to the topic exchange."""
    queue, channel = await _started(_RecordingHandler())

    assert channel.prefetch_count == 4
    assert channel.exchanges == [("github", aio_pika.ExchangeType.TOPIC, True)]
    assert channel.queues == [("github.docker-events", True)]
    assert channel.queue.bindings == [("exchange:github", "docker-events")]
    assert queue.name == "github.docker-events"


@pytest.mark.asyncio
async def test_handled_message_is_acknowledged() -> None:
    """Messages handled without error are acked."""
    handler = _RecordingHandler()
    _, channel = await _started(handler)
    message = _FakeMessage(body=b'{"action": "opened"}')

    assert channel.queue.callback is not None
    await channel.queue.callback(message)

    assert message.outcome == "acked"
    assert handler.messages[0].body == b'{"action": "opened"}'


@pytest.mark.asyncio
async def test_handler_failure_requeues() -> None:
    """A raising handler sends the message back to the queue."""
    handler = _RecordingHandler(error=RuntimeError("store failed"))
    _, channel = await _started(handler)
    message = _FakeMessage(body=b"{}")

    assert channel.queue.callback is not None
    with pytest.raises(RuntimeError, match="store failed"):
        await channel.queue.callback(message)

    assert message.outcome == "requeued"


@pytest.mark.asyncio
async def test_stop_waits_for_in_flight_messages() -> None:
    """Stopping cancels the consumer and drains in-flight work."""
    handler = _RecordingHandler()
    handler.release.clear()
    queue, channel = await _started(handler)
    message = _FakeMessage(body=b"{}")

    assert channel.queue.callback is not None
    in_flight = asyncio.create_task(channel.queue.callback(message))
    await asyncio.sleep(0)
    stopping = asyncio.create_task(queue.stop())
    await asyncio.sleep(0)

    assert channel.queue.cancelled == ["ctag-1"]
    assert not channel.closed, "The channel stays open while work is in flight"
    handler.release.set()
    await asyncio.gather(in_flight, stopping)

    assert message.outcome == "acked"
    assert channel.closed
    assert queue.stopped
    await queue.stop()
    assert channel.queue.cancelled == ["ctag-1"], "A second stop is a no-op"
