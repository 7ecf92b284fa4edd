"""Typed views over GitHub payloads used by the collector."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

import msgspec

from .events import EntityType


class PartialMessage(msgspec.Struct):
    """Envelope headers carried alongside each webhook payload."""

    github_event: str = msgspec.field(name="X-GitHub-Event", default="")
    github_delivery: str = msgspec.field(name="X-GitHub-Delivery", default="")
    hub_signature: str = msgspec.field(name="X-Hub-Signature", default="")


@dataclasses.dataclass(frozen=True, slots=True)
class IssuePage:
    """One page of the issue listing."""

    items: list[dict[str, typ.Any]]
    next_page: int | None

    @property
    def has_next_page(self) -> bool:
        """Return True when another page follows."""
        return self.next_page is not None


@dataclasses.dataclass(frozen=True, slots=True)
class IndexedItem:
    """An issue or pull request ready to be stored."""

    type: EntityType
    payload: dict[str, typ.Any]

    @property
    def id(self) -> str:
        """Return the entity number used as snapshot document id."""
        return str(self.payload["number"])


def is_pull_request(issue: cabc.Mapping[str, typ.Any]) -> bool:
    """Return True when an issue listing entry is a pull request."""
    return issue.get("pull_request") is not None


def issue_item(issue: dict[str, typ.Any]) -> IndexedItem:
    """Wrap an issue listing entry."""
    return IndexedItem(type=EntityType.ISSUE, payload=issue)


def enriched_pull_request(
    pull_request: dict[str, typ.Any], issue: cabc.Mapping[str, typ.Any]
) -> IndexedItem:
    """Combine a pull request with the labels only its issue carries."""
    payload = dict(pull_request)
    payload["labels"] = list(issue.get("labels") or [])
    return IndexedItem(type=EntityType.PULL_REQUEST, payload=payload)


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimit:
    """One GitHub rate-limit bucket."""

    limit: int
    remaining: int
    reset: int


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimits:
    """The rate-limit buckets reported by ``/rate_limit``."""

    core: RateLimit
    search: RateLimit
