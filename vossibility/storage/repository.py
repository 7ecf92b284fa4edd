"""Repositories, their event sets, and time-bucketed index names.

Data for a repository named ``docker`` lands in three families of indices:

- ``docker-live-YYYY.MM``: every webhook event, one index per month;
- ``docker-state-YYYY.MM.DD-HH`` or ``docker-state-YYYY.MM.DD``: the state of
  each issue and pull request as of the last periodic sync;
- ``docker-snapshot``: the latest known state of every issue and pull
  request.

Bucket names are always computed in UTC, which is what Kibana and
Elasticsearch assume, even if that puts index names ahead of local time.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import enum
import types
import typing as typ

from vossibility.common.time import ensure_utc, utcnow

if typ.TYPE_CHECKING:
    from vossibility.transformation import Transformation

DEFAULT_EVENT_SET = "default"

_MONTHLY_FORMAT = "%Y.%m"
_DAILY_FORMAT = "%Y.%m.%d"
_HOURLY_FORMAT = "%Y.%m.%d-%H"


class Periodicity(enum.StrEnum):
    """How often the periodic sync runs, and how wide state buckets are."""

    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"


def _bucket(timestamp: dt.datetime, fmt: str) -> str:
    return ensure_utc(timestamp).strftime(fmt)


def index_prefix(given_name: str) -> str:
    """Return the prefix shared by every index of a repository."""
    return f"{given_name}-"


def live_index_for_timestamp(given_name: str, timestamp: dt.datetime) -> str:
    """Return the monthly live-event index holding ``timestamp``."""
    return f"{index_prefix(given_name)}live-{_bucket(timestamp, _MONTHLY_FORMAT)}"


def state_index_for_timestamp(
    given_name: str, periodicity: Periodicity, timestamp: dt.datetime
) -> str:
    """Return the current-state index holding ``timestamp``.

    Hourly syncs use hourly buckets; daily and weekly syncs use daily ones.
    """
    fmt = _HOURLY_FORMAT if periodicity is Periodicity.HOURLY else _DAILY_FORMAT
    return f"{index_prefix(given_name)}state-{_bucket(timestamp, fmt)}"


def snapshot_index(given_name: str) -> str:
    """Return the time-invariant snapshot index."""
    return f"{index_prefix(given_name)}snapshot"


@dataclasses.dataclass(frozen=True, slots=True)
class EventSet:
    """Subscribed event types bound to the transformation applied to each."""

    name: str
    bindings: cabc.Mapping[str, Transformation]

    def __post_init__(self) -> None:
        """Freeze the bindings table."""
        object.__setattr__(
            self, "bindings", types.MappingProxyType(dict(self.bindings))
        )

    def __contains__(self, event: object) -> bool:
        """Return True when ``event`` has a binding."""
        return event in self.bindings

    def transformation_for(self, event: str) -> Transformation | None:
        """Return the transformation bound to ``event``, if any."""
        return self.bindings.get(event)


@dataclasses.dataclass(frozen=True, slots=True)
class Repository:
    """A GitHub repository tracked under an operator-chosen given name."""

    given_name: str
    user: str
    repo: str
    topic: str
    event_set: EventSet
    periodicity: Periodicity = Periodicity.DAILY
    start_index: int = 1

    @property
    def full_name(self) -> str:
        """Return the ``user/repo`` GitHub identifier."""
        return f"{self.user}/{self.repo}"

    @property
    def pretty_name(self) -> str:
        """Return a readable identifier including the given name."""
        return f"{self.given_name} ({self.user}:{self.repo})"

    @property
    def index_prefix(self) -> str:
        """Return the prefix of every index holding this repository's data."""
        return index_prefix(self.given_name)

    def is_subscribed(self, event: str) -> bool:
        """Return True when live events of type ``event`` are collected."""
        return event in self.event_set

    def live_index_for_timestamp(self, timestamp: dt.datetime) -> str:
        """Return the live index for ``timestamp``."""
        return live_index_for_timestamp(self.given_name, timestamp)

    def state_index_for_timestamp(self, timestamp: dt.datetime) -> str:
        """Return the current-state index for ``timestamp``."""
        return state_index_for_timestamp(self.given_name, self.periodicity, timestamp)

    def live_index(self) -> str:
        """Return the live index for the current time."""
        return self.live_index_for_timestamp(utcnow())

    def state_index(self) -> str:
        """Return the current-state index for the current time."""
        return self.state_index_for_timestamp(utcnow())

    def snapshot_index(self) -> str:
        """Return the snapshot index."""
        return snapshot_index(self.given_name)
