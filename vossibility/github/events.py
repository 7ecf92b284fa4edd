"""GitHub webhook event names and the fixed entity kinds used by syncs."""

from __future__ import annotations

import enum
import typing as typ


class GitHubEvent(enum.StrEnum):
    """Webhook event types GitHub delivers."""

    COMMIT_COMMENT = "commit_comment"
    CREATE = "create"
    DELETE = "delete"
    DEPLOYMENT = "deployment"
    DEPLOYMENT_STATUS = "deployment_status"
    FOLLOW = "follow"
    FORK = "fork"
    FORK_APPLY = "fork_apply"
    GOLLUM = "gollum"
    ISSUE_COMMENT = "issue_comment"
    ISSUES = "issues"
    MEMBER = "member"
    MEMBERSHIP = "membership"
    PAGE_BUILD = "page_build"
    PUBLIC = "public"
    PULL_REQUEST = "pull_request"
    PULL_REQUEST_REVIEW = "pull_request_review"
    PULL_REQUEST_REVIEW_COMMENT = "pull_request_review_comment"
    PUSH = "push"
    RELEASE = "release"
    REPOSITORIES = "repositories"
    STATUS = "status"
    TEAM_ADD = "team_add"
    WATCH = "watch"


class EntityType(enum.StrEnum):
    """Blob types produced by bulk syncs."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"


class SnapshotEvent(enum.StrEnum):
    """Event-set keys binding the transformations applied to synced entities."""

    ISSUE = "snapshot_issue"
    PULL_REQUEST = "snapshot_pull_request"


SNAPSHOT_EVENT_FOR_ENTITY: typ.Final[dict[str, SnapshotEvent]] = {
    EntityType.ISSUE: SnapshotEvent.ISSUE,
    EntityType.PULL_REQUEST: SnapshotEvent.PULL_REQUEST,
}

GITHUB_EVENT_TYPES: typ.Final = frozenset(event.value for event in GitHubEvent)


def is_valid_event_type(event: str) -> bool:
    """Return True when ``event`` is a GitHub webhook event type."""
    return event in GITHUB_EVENT_TYPES


def is_valid_event_set_key(key: str) -> bool:
    """Return True when ``key`` may appear in an event set."""
    return is_valid_event_type(key) or key in {item.value for item in SnapshotEvent}
