"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def ensure_utc(value: dt.datetime) -> dt.datetime:
    """Return ``value`` converted to UTC, treating naive values as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=dt.UTC)
    return value.astimezone(dt.UTC)


def format_utc(value: dt.datetime) -> str:
    """Format a timestamp as RFC 3339 seconds with a ``Z`` zone designator.

    Elasticsearch date fields in the collector indices only accept the ``Z``
    suffix, never a numeric offset.
    """
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_rfc3339(value: str) -> dt.datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime.

    Raises
    ------
    ValueError
        If ``value`` is not a timestamp or carries no zone designator.

    """
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = f"timestamp missing timezone: {value}"
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)
