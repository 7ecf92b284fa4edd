"""Command-line entry point of the collector.

Subcommands:

- ``run``: consume live webhook messages and run the periodic sync;
- ``sync``: bulk sync repositories into the snapshot tier;
- ``sync-mapping``: provision the index templates of every repository;
- ``sync-users``: index a YAML file of user profiles;
- ``limits``: print the GitHub API rate limits.
"""

from __future__ import annotations

import argparse
import asyncio
import collections.abc as cabc
import datetime as dt
import signal
import typing as typ
from pathlib import Path

import aio_pika

from vossibility.common.time import format_utc
from vossibility.config import ConfigValidationError, load_config, resolve_config_path
from vossibility.factory import build_runtime
from vossibility.github.errors import GitHubAPIError, GitHubResponseShapeError
from vossibility.live import build_live_runner
from vossibility.logging import (
    LOG_LEVEL_ENV,
    configure_logging,
    get_logger,
    log_info,
    log_warning,
    resolve_log_level,
)
from vossibility.mapping import sync_mappings
from vossibility.storage.errors import StorageError
from vossibility.sync import DEFAULT_FROM, SyncJob, SyncOptions
from vossibility.users import DEFAULT_USERS_PATH, UserFileError, load_users, sync_users

if typ.TYPE_CHECKING:
    from vossibility.config import CollectorConfig
    from vossibility.factory import Runtime
    from vossibility.github.models import RateLimit

logger = get_logger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for every subcommand."""
    parser = argparse.ArgumentParser(
        prog="vossibility", description="Collect GitHub activity into Elasticsearch."
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="configuration file (default: $VOSSIBILITY_CONFIG or config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help=f"log level (default: ${LOG_LEVEL_ENV} or INFO)",
    )
    parser.add_argument(
        "--debug", action="store_true", help="shorthand for --log-level DEBUG"
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("run", help="listen and process GitHub events")

    sync = commands.add_parser(
        "sync", help="sync storage with the GitHub repositories"
    )
    sync.add_argument(
        "repositories",
        nargs="*",
        help="given names of the repositories to sync (default: all)",
    )
    sync.add_argument(
        "--from",
        dest="from_index",
        type=int,
        default=DEFAULT_FROM,
        help="issue number to start from; 0 uses each repository's start_index",
    )
    sync.add_argument(
        "--sleep",
        type=float,
        default=0.0,
        help="seconds to sleep after each GitHub page queried",
    )
    sync.add_argument(
        "--enqueue",
        action="store_true",
        help="queue the sync on the Dramatiq broker instead of running it here",
    )

    commands.add_parser(
        "sync-mapping", help="sync the configured mappings with the index templates"
    )

    users = commands.add_parser(
        "sync-users", help="sync the user store with a users file"
    )
    users.add_argument(
        "-f",
        "--file",
        type=Path,
        default=Path(DEFAULT_USERS_PATH),
        help="users description file",
    )

    commands.add_parser("limits", help="print the GitHub API rate limits")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run a collector subcommand.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when the configuration is invalid or the
        command failed.

    """
    args = build_parser().parse_args(argv)

    raw_level = resolve_log_level(args.log_level, debug=args.debug)
    normalized_level, invalid_level = configure_logging(raw_level)
    if invalid_level:
        log_warning(
            logger,
            "Invalid log level %r, falling back to %s",
            raw_level,
            normalized_level,
        )

    config_path = resolve_config_path(args.config)
    try:
        config = load_config(config_path)
    except ConfigValidationError as exc:
        print(f"Configuration validation failed for {config_path}:")
        for issue in exc.issues:
            print(f"  - {issue}")
        return 1

    try:
        return _dispatch(args, config, config_path)
    except ConfigValidationError as exc:
        for issue in exc.issues:
            print(f"error: {issue}")
        return 1


def _dispatch(
    args: argparse.Namespace, config: CollectorConfig, config_path: Path
) -> int:
    match args.command:
        case "run":
            return asyncio.run(_with_runtime(config, _run_live))
        case "sync" if args.enqueue:
            return _enqueue_sync(args, config, config_path)
        case "sync":
            options = SyncOptions(
                from_index=args.from_index, sleep_per_page=args.sleep
            )
            return asyncio.run(
                _with_runtime(
                    config,
                    lambda runtime: _run_sync(runtime, args.repositories, options),
                )
            )
        case "sync-mapping":
            return asyncio.run(_with_runtime(config, _run_sync_mapping))
        case "sync-users":
            return asyncio.run(
                _with_runtime(
                    config, lambda runtime: _run_sync_users(runtime, args.file)
                )
            )
        case "limits":
            return asyncio.run(_with_runtime(config, _run_limits))
        case _:
            msg = f"unknown command {args.command!r}"
            raise AssertionError(msg)


async def _with_runtime(
    config: CollectorConfig,
    command: cabc.Callable[[Runtime], cabc.Awaitable[int]],
) -> int:
    runtime = build_runtime(config)
    try:
        return await command(runtime)
    finally:
        await runtime.aclose()


async def _run_live(runtime: Runtime) -> int:
    connection = await aio_pika.connect_robust(runtime.config.amqp.url)
    shutdown = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in _SHUTDOWN_SIGNALS:
        loop.add_signal_handler(sig, shutdown.set)
    try:
        runner = build_live_runner(runtime, connection)
        await runner.run(shutdown)
    finally:
        for sig in _SHUTDOWN_SIGNALS:
            loop.remove_signal_handler(sig)
        await connection.close()
    return 0


async def _run_sync(
    runtime: Runtime, names: list[str], options: SyncOptions
) -> int:
    repositories = runtime.select_repositories(names)
    log_warning(
        logger,
        "running sync jobs on repositories %s",
        ", ".join(repository.given_name for repository in repositories),
    )
    results = await SyncJob(runtime.github, runtime.store, options).run(repositories)
    for result in results:
        status = "ok" if result.succeeded else f"aborted: {result.error}"
        print(
            f"{result.repository}: {result.items_indexed}/{result.items_listed} "
            f"items indexed, {result.items_failed} failed ({status})"
        )
    return 0 if all(result.succeeded for result in results) else 1


def _enqueue_sync(
    args: argparse.Namespace, config: CollectorConfig, config_path: Path
) -> int:
    from vossibility.sync.actor import sync_repositories_job

    unknown = [name for name in args.repositories if name not in config.repositories]
    if unknown:
        raise ConfigValidationError(
            [f"unknown repository '{name}'" for name in unknown]
        )
    message = sync_repositories_job.send(
        str(config_path.resolve()),
        list(args.repositories),
        from_index=args.from_index,
        sleep_per_page=args.sleep,
    )
    log_info(logger, "queued sync job %s", message.message_id)
    print(f"queued sync job {message.message_id}")
    return 0


async def _run_sync_mapping(runtime: Runtime) -> int:
    try:
        written = await sync_mappings(
            runtime.elasticsearch,
            runtime.repositories.values(),
            runtime.config.mapping.not_analyzed,
        )
    except StorageError as exc:
        print(f"error: {exc}")
        return 1
    for name in written:
        print(f"updated index template {name}")
    return 0


async def _run_sync_users(runtime: Runtime, path: Path) -> int:
    try:
        users = load_users(path)
    except UserFileError as exc:
        print(f"error: {exc}")
        return 1
    result = await sync_users(runtime.users, users)
    print(f"saved {len(result.saved)} users, {len(result.failed)} failed")
    return 0 if not result.failed else 1


def _format_limit(title: str, limit: RateLimit) -> str:
    reset = format_utc(dt.datetime.fromtimestamp(limit.reset, dt.UTC))
    return (
        f"{title}:\n"
        f"  Limit:     {limit.limit}\n"
        f"  Remaining: {limit.remaining}\n"
        f"  Reset:     {reset}\n"
    )


async def _run_limits(runtime: Runtime) -> int:
    try:
        limits = await runtime.github.rate_limits()
    except (GitHubAPIError, GitHubResponseShapeError) as exc:
        print(f"error: {exc}")
        return 1
    print(_format_limit("Core", limits.core))
    print(_format_limit("Search", limits.search), end="")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
