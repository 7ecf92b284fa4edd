"""Index templates provisioned by ``sync-mapping``."""

from __future__ import annotations

import collections.abc as cabc
import typing as typ

from vossibility.storage.indexer import TIMESTAMP_FIELD, TYPE_FIELD

if typ.TYPE_CHECKING:
    from vossibility.storage.elasticsearch import ElasticsearchClient
    from vossibility.storage.repository import Repository

TEMPLATE_PREFIX = "vossibility-"
TEMPLATE_PRIORITY = 1


def template_name(given_name: str) -> str:
    """Return the index template name of a repository."""
    return f"{TEMPLATE_PREFIX}{given_name}"


def keyword_template(pattern: str) -> dict[str, typ.Any]:
    """Map string fields matching ``pattern`` as exact-match keywords."""
    return {
        pattern: {
            "match": pattern,
            "match_mapping_type": "string",
            "mapping": {"type": "keyword"},
        }
    }


def build_index_template(
    index_prefix: str, not_analyzed: cabc.Iterable[str]
) -> dict[str, typ.Any]:
    """Return the composable index template covering ``index_prefix``."""
    return {
        "index_patterns": [f"{index_prefix}*"],
        "priority": TEMPLATE_PRIORITY,
        "template": {
            "mappings": {
                "properties": {
                    TIMESTAMP_FIELD: {"type": "date"},
                    TYPE_FIELD: {"type": "keyword"},
                },
                "dynamic_templates": [
                    keyword_template(pattern) for pattern in not_analyzed
                ],
            }
        },
    }


async def sync_mappings(
    client: ElasticsearchClient,
    repositories: cabc.Iterable[Repository],
    not_analyzed: cabc.Sequence[str],
) -> list[str]:
    """Create or replace the index template of every repository.

    Returns the template names written; the first failure propagates.
    """
    written: list[str] = []
    for repository in repositories:
        name = template_name(repository.given_name)
        await client.put_index_template(
            name, build_index_template(repository.index_prefix, not_analyzed)
        )
        written.append(name)
    return written
