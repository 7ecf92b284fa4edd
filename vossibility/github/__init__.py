"""GitHub REST client, webhook event catalogue and payload views."""

from __future__ import annotations

from .client import DEFAULT_PER_PAGE, GitHubClient, GitHubConfig, IssueState
from .errors import GitHubAPIError, GitHubRateLimitError, GitHubResponseShapeError
from .events import (
    GITHUB_EVENT_TYPES,
    SNAPSHOT_EVENT_FOR_ENTITY,
    EntityType,
    GitHubEvent,
    SnapshotEvent,
    is_valid_event_set_key,
    is_valid_event_type,
)
from .models import (
    IndexedItem,
    IssuePage,
    PartialMessage,
    RateLimit,
    RateLimits,
    enriched_pull_request,
    is_pull_request,
    issue_item,
)

__all__ = [
    "DEFAULT_PER_PAGE",
    "GITHUB_EVENT_TYPES",
    "SNAPSHOT_EVENT_FOR_ENTITY",
    "EntityType",
    "GitHubAPIError",
    "GitHubClient",
    "GitHubConfig",
    "GitHubEvent",
    "GitHubRateLimitError",
    "GitHubResponseShapeError",
    "IndexedItem",
    "IssuePage",
    "IssueState",
    "PartialMessage",
    "RateLimit",
    "RateLimits",
    "enriched_pull_request",
    "is_pull_request",
    "issue_item",
    "is_valid_event_set_key",
    "is_valid_event_type",
]
