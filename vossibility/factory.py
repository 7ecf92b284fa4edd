"""Assemble the collector's services from a loaded configuration.

Every component that talks to Elasticsearch or GitHub receives its client
explicitly; nothing here is stored in module-level state.

Usage
-----
Build the runtime for a configuration file::

    from vossibility.config import load_config
    from vossibility.factory import build_runtime

    runtime = build_runtime(load_config("config.yaml"))
    try:
        ...
    finally:
        await runtime.aclose()

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

from vossibility.config import ConfigValidationError
from vossibility.functions import build_function_registry
from vossibility.github.client import GitHubClient, GitHubConfig
from vossibility.storage import (
    ElasticsearchClient,
    ElasticsearchConfig,
    ElasticsearchIndexer,
    ElasticsearchUserStore,
    EventSet,
    Repository,
    TieredBlobStore,
    TransformingBlobStore,
)
from vossibility.transformation import compile_transformations

if typ.TYPE_CHECKING:
    import httpx

    from vossibility.config import CollectorConfig
    from vossibility.storage import BlobStore
    from vossibility.transformation import FunctionRegistry, Transformations

__all__ = ["Runtime", "build_repositories", "build_runtime"]


@dataclasses.dataclass(slots=True)
class Runtime:
    """Services shared by every command for one configuration load."""

    config: CollectorConfig
    elasticsearch: ElasticsearchClient
    users: ElasticsearchUserStore
    functions: FunctionRegistry
    transformations: Transformations
    repositories: dict[str, Repository]
    store: BlobStore
    github: GitHubClient

    def select_repositories(self, names: cabc.Sequence[str]) -> list[Repository]:
        """Return the named repositories, or all of them when ``names`` is empty.

        Raises
        ------
        ConfigValidationError
            If a name is not a configured repository.

        """
        if not names:
            return list(self.repositories.values())
        unknown = [name for name in names if name not in self.repositories]
        if unknown:
            raise ConfigValidationError(
                [f"unknown repository '{name}'" for name in unknown]
            )
        return [self.repositories[name] for name in names]

    async def aclose(self) -> None:
        """Close the HTTP clients owned by the runtime."""
        await self.github.aclose()
        await self.elasticsearch.aclose()


def build_repositories(
    config: CollectorConfig, transformations: Transformations
) -> dict[str, Repository]:
    """Bind every configured repository to its event set."""
    event_sets = {
        name: EventSet(
            name=name,
            bindings={
                event: transformations[transformation]
                for event, transformation in bindings.items()
            },
        )
        for name, bindings in config.event_set.items()
    }
    return {
        given_name: Repository(
            given_name=given_name,
            user=settings.user,
            repo=settings.repo,
            topic=settings.topic,
            event_set=event_sets[settings.event_set],
            periodicity=config.periodicity,
            start_index=settings.start_index,
        )
        for given_name, settings in config.repositories.items()
    }


def build_runtime(
    config: CollectorConfig,
    *,
    elasticsearch_http: httpx.AsyncClient | None = None,
    github_http: httpx.AsyncClient | None = None,
) -> Runtime:
    """Construct the collector services for a validated configuration."""
    elasticsearch = ElasticsearchClient(
        ElasticsearchConfig(url=config.elasticsearch), http_client=elasticsearch_http
    )
    users = ElasticsearchUserStore(elasticsearch)
    functions = build_function_registry(
        users=users,
        executables=config.functions,
        elasticsearch_url=config.elasticsearch,
    )
    transformations = compile_transformations(config.transformations, functions)
    store = TransformingBlobStore(TieredBlobStore(ElasticsearchIndexer(elasticsearch)))
    github = GitHubClient(
        GitHubConfig(token=config.github_api_token), http_client=github_http
    )
    return Runtime(
        config=config,
        elasticsearch=elasticsearch,
        users=users,
        functions=functions,
        transformations=transformations,
        repositories=build_repositories(config, transformations),
        store=store,
        github=github,
    )
