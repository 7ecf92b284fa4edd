"""AMQP consumer feeding one repository's webhook messages to its handler."""

from __future__ import annotations

import asyncio
import typing as typ

import aio_pika

from vossibility.logging import get_logger, log_debug, log_info

from .handler import QueueMessage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from aio_pika.abc import (
        AbstractChannel,
        AbstractConnection,
        AbstractIncomingMessage,
        AbstractQueue,
    )

    from vossibility.config.models import AMQPSettings

    from .handler import HandleOutcome

logger = get_logger(__name__)


class MessageHandlerLike(typ.Protocol):
    """Processes one decoded queue message."""

    async def handle(self, message: QueueMessage) -> HandleOutcome:
        """Handle ``message``; raising requests redelivery."""
        ...


def queue_name(exchange: str, topic: str) -> str:
    """Return the durable queue consuming ``topic`` from ``exchange``."""
    return f"{exchange}.{topic}"


def _headers(message: AbstractIncomingMessage) -> dict[str, str]:
    headers: dict[str, str] = {}
    for key, value in (message.headers or {}).items():
        if isinstance(value, bytes):
            headers[key] = value.decode(errors="replace")
        elif isinstance(value, str):
            headers[key] = value
    return headers


def to_queue_message(message: AbstractIncomingMessage) -> QueueMessage:
    """Convert an AMQP delivery into the transport-neutral message."""
    return QueueMessage(
        body=message.body,
        timestamp=message.timestamp,
        headers=_headers(message),
    )


class LiveQueue:
    """Consumes the messages of one topic until stopped.

    Successful handling acknowledges the message; a raising handler rejects
    it with requeue so the broker delivers it again. Stopping cancels the
    consumer, lets in-flight messages finish, then closes the channel.
    """

    def __init__(
        self,
        connection: AbstractConnection,
        settings: AMQPSettings,
        topic: str,
        handler: MessageHandlerLike,
    ) -> None:
        """Bind the consumer to a shared connection and one topic."""
        self.topic = topic
        self._connection = connection
        self._settings = settings
        self._handler = handler
        self._channel: AbstractChannel | None = None
        self._queue: AbstractQueue | None = None
        self._consumer_tag: str | None = None
        self._in_flight = 0
        self._idle = asyncio.Event()
        self._idle.set()
        self._stopped = asyncio.Event()

    @property
    def name(self) -> str:
        """Return the queue name."""
        return queue_name(self._settings.exchange, self.topic)

    @property
    def stopped(self) -> bool:
        """Return True once the consumer has fully stopped."""
        return self._stopped.is_set()

    async def start(self) -> None:
        """Declare the exchange and queue, bind the topic and start consuming."""
        channel = await self._connection.channel()
        await channel.set_qos(prefetch_count=self._settings.prefetch_count)
        exchange = await channel.declare_exchange(
            self._settings.exchange, aio_pika.ExchangeType.TOPIC, durable=True
        )
        queue = await channel.declare_queue(self.name, durable=True)
        await queue.bind(exchange, routing_key=self.topic)
        self._channel = channel
        self._queue = queue
        self._consumer_tag = await queue.consume(self._on_message)
        log_info(logger, "consuming %s (topic %s)", self.name, self.topic)

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        self._in_flight += 1
        self._idle.clear()
        try:
            async with message.process(requeue=True):
                outcome = await self._handler.handle(to_queue_message(message))
                log_debug(logger, "message on %s %s", self.name, outcome)
        finally:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.set()

    async def stop(self) -> None:
        """Stop consuming and release the channel; safe to call twice."""
        if self._stopped.is_set():
            return
        if self._queue is not None and self._consumer_tag is not None:
            await self._queue.cancel(self._consumer_tag)
            self._consumer_tag = None
        await self._idle.wait()
        if self._channel is not None:
            await self._channel.close()
        log_info(logger, "stopped consuming %s", self.name)
        self._stopped.set()

    async def wait_stopped(self) -> None:
        """Wait until :meth:`stop` has completed."""
        await self._stopped.wait()


class Stoppable(typ.Protocol):
    """Anything whose shutdown can be awaited."""

    async def wait_stopped(self) -> None:
        """Wait until stopped."""
        ...


async def wait_all_stopped(queues: cabc.Iterable[Stoppable]) -> None:
    """Wait until every queue has stopped."""
    await asyncio.gather(*(queue.wait_stopped() for queue in queues))
