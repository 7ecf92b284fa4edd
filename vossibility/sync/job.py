"""Bulk synchronisation of repository issues and pull requests.

One repository at a time, a producer lists issue pages oldest first. Plain
issues go straight to the index queue; pull requests go to the fetch queue,
where fetch workers resolve the full pull request before handing it to the
index workers. Both queues are bounded and closed with one sentinel per
worker, so every listed item is stored before the repository is done.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses
import typing as typ

from vossibility.blob import Blob
from vossibility.common.time import utcnow
from vossibility.github.client import DEFAULT_PER_PAGE, IssueState
from vossibility.github.errors import GitHubAPIError, GitHubResponseShapeError
from vossibility.github.models import (
    IndexedItem,
    enriched_pull_request,
    is_pull_request,
    issue_item,
)
from vossibility.logging import get_logger, log_debug, log_error, log_info
from vossibility.storage.blobstore import Storage

from .observability import SyncEventLogger, SyncRunContext

if typ.TYPE_CHECKING:
    from vossibility.github.client import GitHubClient
    from vossibility.github.models import IssuePage
    from vossibility.storage.blobstore import BlobStore
    from vossibility.storage.repository import Repository

logger = get_logger(__name__)

DEFAULT_FROM = 1
DEFAULT_NUM_FETCH_WORKERS = 20
DEFAULT_NUM_INDEX_WORKERS = 5
PERIODIC_SLEEP_PER_PAGE = 10.0

type Sleep = cabc.Callable[[float], cabc.Awaitable[None]]


class IssueSource(typ.Protocol):
    """The GitHub calls a sync job depends on."""

    async def list_issues_page(
        self,
        repository: Repository,
        *,
        page: int,
        state: str = ...,
        per_page: int = ...,
    ) -> IssuePage:
        """List one page of issues."""
        ...

    async def get_pull_request(
        self, repository: Repository, number: int
    ) -> dict[str, typ.Any]:
        """Fetch one pull request."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class SyncOptions:
    """Tunables of a sync job.

    Attributes
    ----------
    from_index : int
        Issue number to start from; ``0`` uses each repository's
        ``start_index``.
    num_fetch_workers : int
        Concurrent pull request fetches.
    num_index_workers : int
        Concurrent blob store writes.
    per_page : int
        Items requested per listing page.
    sleep_per_page : float
        Seconds to pause after each page, to stay clear of abuse detection.
    storage : Storage
        Tier synced items are stored at.
    state : str
        Issue state filter (``all`` or ``open``).

    """

    from_index: int = DEFAULT_FROM
    num_fetch_workers: int = DEFAULT_NUM_FETCH_WORKERS
    num_index_workers: int = DEFAULT_NUM_INDEX_WORKERS
    per_page: int = DEFAULT_PER_PAGE
    sleep_per_page: float = 0.0
    storage: Storage = Storage.SNAPSHOT
    state: str = IssueState.ALL

    def __post_init__(self) -> None:
        """Reject option values that would stall the pipeline."""
        if self.from_index < 0:
            msg = "from_index must be >= 0"
            raise ValueError(msg)
        if self.num_fetch_workers < 1 or self.num_index_workers < 1:
            msg = "worker counts must be >= 1"
            raise ValueError(msg)
        if self.per_page < 1:
            msg = "per_page must be >= 1"
            raise ValueError(msg)
        if self.sleep_per_page < 0:
            msg = "sleep_per_page must be >= 0"
            raise ValueError(msg)

    def first_page(self, repository: Repository) -> int:
        """Return the listing page holding the first issue to sync."""
        start = self.from_index or repository.start_index
        return start // self.per_page + 1


def periodic_sync_options() -> SyncOptions:
    """Options of the scheduled sync: open issues into the rolling state tier."""
    return SyncOptions(
        sleep_per_page=PERIODIC_SLEEP_PER_PAGE,
        storage=Storage.CURRENT_STATE,
        state=IssueState.OPEN,
    )


@dataclasses.dataclass(slots=True)
class SyncResult:
    """Counters of one repository sync."""

    repository: str
    pages: int = 0
    items_listed: int = 0
    items_indexed: int = 0
    items_failed: int = 0
    fetch_fallbacks: int = 0
    error: BaseException | None = None

    @property
    def succeeded(self) -> bool:
        """Return True when every page was listed."""
        return self.error is None


class SyncJob:
    """Lists, enriches and stores every issue and pull request of repositories."""

    def __init__(
        self,
        client: IssueSource | GitHubClient,
        store: BlobStore,
        options: SyncOptions | None = None,
        *,
        event_logger: SyncEventLogger | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        """Bind the job to its GitHub source and destination store."""
        self._client = client
        self._store = store
        self.options = options or SyncOptions()
        self._events = event_logger or SyncEventLogger()
        self._sleep = sleep

    async def run(self, repositories: cabc.Iterable[Repository]) -> list[SyncResult]:
        """Sync each repository in turn.

        A listing failure aborts only the affected repository; the job then
        moves on to the next one.
        """
        return [await self.sync_repository(repository) for repository in repositories]

    async def sync_repository(self, repository: Repository) -> SyncResult:
        """Sync one repository and return its counters."""
        result = SyncResult(repository=repository.pretty_name)
        context = SyncRunContext(
            repository=repository.pretty_name,
            storage=self.options.storage.label,
            state=self.options.state,
            started_at=utcnow(),
        )
        first_page = self.options.first_page(repository)
        self._events.log_run_started(context, first_page)

        fetch_queue: asyncio.Queue[dict[str, typ.Any] | None] = asyncio.Queue(
            maxsize=self.options.num_fetch_workers
        )
        index_queue: asyncio.Queue[IndexedItem | None] = asyncio.Queue(
            maxsize=self.options.num_index_workers
        )
        index_workers = [
            asyncio.create_task(self._index_worker(repository, index_queue, result))
            for _ in range(self.options.num_index_workers)
        ]
        fetch_workers = [
            asyncio.create_task(
                self._fetch_worker(repository, fetch_queue, index_queue, result)
            )
            for _ in range(self.options.num_fetch_workers)
        ]

        try:
            await self._list_items(
                repository, first_page, fetch_queue, index_queue, result, context
            )
        except (GitHubAPIError, GitHubResponseShapeError) as exc:
            result.error = exc
        finally:
            await _close(fetch_queue, len(fetch_workers))
            await asyncio.gather(*fetch_workers)
            log_info(logger, "done fetching GitHub data for %s", repository.pretty_name)
            await _close(index_queue, len(index_workers))
            await asyncio.gather(*index_workers)
            log_info(logger, "done indexing documents for %s", repository.pretty_name)

        duration = utcnow() - context.started_at
        if result.error is not None:
            self._events.log_run_failed(context, result.error, duration)
        else:
            self._events.log_run_completed(context, result, duration)
        return result

    async def _list_items(  # noqa: PLR0913
        self,
        repository: Repository,
        first_page: int,
        fetch_queue: asyncio.Queue[dict[str, typ.Any] | None],
        index_queue: asyncio.Queue[IndexedItem | None],
        result: SyncResult,
        context: SyncRunContext,
    ) -> None:
        page: int | None = first_page
        while page is not None:
            listing = await self._client.list_issues_page(
                repository,
                page=page,
                state=self.options.state,
                per_page=self.options.per_page,
            )
            result.pages += 1
            result.items_listed += len(listing.items)
            self._events.log_page_listed(
                context, page, len(listing.items), result.items_listed
            )
            for issue in listing.items:
                if is_pull_request(issue):
                    await fetch_queue.put(issue)
                else:
                    await index_queue.put(issue_item(issue))
            page = listing.next_page
            if self.options.sleep_per_page > 0:
                await self._sleep(self.options.sleep_per_page)

    async def _fetch_worker(
        self,
        repository: Repository,
        fetch_queue: asyncio.Queue[dict[str, typ.Any] | None],
        index_queue: asyncio.Queue[IndexedItem | None],
        result: SyncResult,
    ) -> None:
        while (issue := await fetch_queue.get()) is not None:
            number = issue.get("number")
            log_debug(logger, "fetching pull request for issue %s", number)
            try:
                pull_request = await self._client.get_pull_request(
                    repository, int(number)
                )
            except (
                GitHubAPIError,
                GitHubResponseShapeError,
                TypeError,
                ValueError,
            ) as exc:
                log_error(
                    logger,
                    "failed to retrieve pull request %s for %s: %s",
                    number,
                    repository.pretty_name,
                    exc,
                )
                result.fetch_fallbacks += 1
                await index_queue.put(issue_item(issue))
            else:
                await index_queue.put(enriched_pull_request(pull_request, issue))

    async def _index_worker(
        self,
        repository: Repository,
        index_queue: asyncio.Queue[IndexedItem | None],
        result: SyncResult,
    ) -> None:
        while (item := await index_queue.get()) is not None:
            try:
                blob = Blob(type=item.type, id=item.id, data=item.payload)
                await self._store.store(self.options.storage, repository, blob)
            except Exception as exc:
                result.items_failed += 1
                log_error(
                    logger,
                    "failed to store %s %s for %s: %s",
                    item.type,
                    item.payload.get("number"),
                    repository.pretty_name,
                    exc,
                    exc_info=exc,
                )
            else:
                result.items_indexed += 1


async def _close[T](queue: asyncio.Queue[T | None], workers: int) -> None:
    for _ in range(workers):
        await queue.put(None)
