"""Dramatiq actor running a bulk sync outside the CLI process.

Usage
-----
Queue a sync of two repositories from issue 1:

>>> sync_repositories_job.send(
...     config_path="/etc/vossibility/config.yaml",
...     repositories=["docker", "compose"],
... )

"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import typing as typ

import dramatiq

from vossibility.config import load_config
from vossibility.factory import build_runtime

from ._broker import ensure_broker_configured
from .job import DEFAULT_FROM, SyncJob, SyncOptions

if typ.TYPE_CHECKING:
    from .job import SyncResult


async def run_sync_for_config(
    config_path: str,
    repositories: cabc.Sequence[str],
    options: SyncOptions,
) -> list[SyncResult]:
    """Load ``config_path`` and sync the named repositories (all when empty).

    Raises
    ------
    ConfigValidationError
        If the configuration is invalid or names an unknown repository.

    """
    config = load_config(config_path)
    runtime = build_runtime(config)
    try:
        selected = runtime.select_repositories(repositories)
        job = SyncJob(runtime.github, runtime.store, options)
        return await job.run(selected)
    finally:
        await runtime.aclose()


@dramatiq.actor
def sync_repositories_job(
    config_path: str,
    repositories: list[str] | None = None,
    *,
    from_index: int = DEFAULT_FROM,
    sleep_per_page: float = 0.0,
) -> list[dict[str, typ.Any]]:
    """Dramatiq actor syncing repositories into the snapshot tier.

    Parameters
    ----------
    config_path
        Path of the collector configuration file on the worker.
    repositories
        Given names to sync; all configured repositories when empty.
    from_index
        Issue number to start from; ``0`` uses each repository's start index.
    sleep_per_page
        Seconds to pause after each listed page.

    Returns
    -------
    list[dict[str, typing.Any]]
        Per-repository counters, with the error message of aborted syncs.

    """
    ensure_broker_configured()
    options = SyncOptions(from_index=from_index, sleep_per_page=sleep_per_page)
    results = asyncio.run(
        run_sync_for_config(config_path, repositories or [], options)
    )
    return [_summary(result) for result in results]


def _summary(result: SyncResult) -> dict[str, typ.Any]:
    return {
        "repository": result.repository,
        "pages": result.pages,
        "items_listed": result.items_listed,
        "items_indexed": result.items_indexed,
        "items_failed": result.items_failed,
        "fetch_fallbacks": result.fetch_fallbacks,
        "error": None if result.error is None else str(result.error),
    }
