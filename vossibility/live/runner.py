"""Control loop of the ``run`` command.

The loop waits for the first of three things: a shutdown request, the next
periodic sync boundary, or every queue having stopped on its own. A sync
holds the pause lock exclusively, so live processing is suspended until it
completes.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import typing as typ

from vossibility.common.time import format_utc, utcnow
from vossibility.logging import get_logger, log_debug, log_error, log_info
from vossibility.sync.job import SyncJob, periodic_sync_options
from vossibility.sync.periodic import next_tick

from .handler import MessageHandler
from .lock import PauseLock
from .queue import LiveQueue, wait_all_stopped

if typ.TYPE_CHECKING:
    import datetime as dt

    from aio_pika.abc import AbstractConnection

    from vossibility.factory import Runtime
    from vossibility.storage.repository import Periodicity

logger = get_logger(__name__)

type PeriodicSync = cabc.Callable[[], cabc.Awaitable[object]]
type Sleep = cabc.Callable[[float], cabc.Awaitable[None]]


class QueueLike(typ.Protocol):
    """The lifecycle of a live queue as seen by the control loop."""

    async def start(self) -> None:
        """Begin consuming."""
        ...

    async def stop(self) -> None:
        """Stop consuming once in-flight messages are handled."""
        ...

    async def wait_stopped(self) -> None:
        """Wait until the queue has stopped."""
        ...


class LiveRunner:
    """Runs live queues and schedules periodic syncs until shut down."""

    def __init__(  # noqa: PLR0913
        self,
        queues: cabc.Sequence[QueueLike],
        pause_lock: PauseLock,
        periodicity: Periodicity,
        periodic_sync: PeriodicSync,
        *,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Bind the loop to its queues, lock and periodic sync callable."""
        self.queues = list(queues)
        self.pause_lock = pause_lock
        self._periodicity = periodicity
        self._periodic_sync = periodic_sync
        self._clock = clock
        self._sleep = sleep
        self.syncs_run = 0

    async def run(self, shutdown: asyncio.Event) -> None:
        """Start every queue, then loop until shutdown or all queues stop."""
        await self._start_queues()

        stopped = asyncio.create_task(wait_all_stopped(self.queues))
        shutdown_requested = asyncio.create_task(shutdown.wait())
        try:
            while True:
                timer = asyncio.create_task(self._sleep_until_next_tick())
                done, _ = await asyncio.wait(
                    {stopped, shutdown_requested, timer},
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if stopped in done:
                    timer.cancel()
                    log_debug(logger, "all queues exited")
                    return
                if shutdown_requested in done:
                    timer.cancel()
                    log_info(logger, "shutdown requested, stopping queues")
                    await asyncio.gather(*(queue.stop() for queue in self.queues))
                    await stopped
                    return
                await self._run_periodic_sync()
        finally:
            for task in (stopped, shutdown_requested):
                if not task.done():
                    task.cancel()

    async def _start_queues(self) -> None:
        """Start the queues in order; stop the started ones if one fails."""
        started: list[QueueLike] = []
        try:
            for queue in self.queues:
                await queue.start()
                started.append(queue)
        except Exception as exc:
            log_error(
                logger,
                "failed to start queue %d of %d: %s",
                len(started) + 1,
                len(self.queues),
                exc,
                exc_info=exc,
            )
            await asyncio.gather(*(queue.stop() for queue in started))
            raise

    async def _sleep_until_next_tick(self) -> None:
        now = self._clock()
        delay = next_tick(now, self._periodicity)
        log_info(
            logger,
            "next sync in %s (%s)",
            delay,
            format_utc(now + delay),
        )
        await self._sleep(delay.total_seconds())

    async def _run_periodic_sync(self) -> None:
        async with self.pause_lock.exclusive():
            log_info(logger, "starting periodic sync")
            try:
                await self._periodic_sync()
            except Exception as exc:
                log_error(logger, "periodic sync failed: %s", exc, exc_info=exc)
            self.syncs_run += 1


def build_live_runner(runtime: Runtime, connection: AbstractConnection) -> LiveRunner:
    """Create one queue per repository topic sharing a single pause lock."""
    pause_lock = PauseLock()
    queues = [
        LiveQueue(
            connection,
            runtime.config.amqp,
            repository.topic,
            MessageHandler(repository, runtime.store, runtime.github, pause_lock),
        )
        for repository in runtime.repositories.values()
    ]
    job = SyncJob(runtime.github, runtime.store, periodic_sync_options())

    async def periodic_sync() -> None:
        await job.run(runtime.repositories.values())

    return LiveRunner(queues, pause_lock, runtime.config.periodicity, periodic_sync)
