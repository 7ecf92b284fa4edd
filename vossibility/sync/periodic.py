"""Scheduling of the periodic sync."""

from __future__ import annotations

import datetime as dt

from vossibility.common.time import ensure_utc
from vossibility.storage.repository import Periodicity

_DAYS_PER_WEEK = 7
_SUNDAY = 6


def next_tick_at(now: dt.datetime, periodicity: Periodicity) -> dt.datetime:
    """Return the first aligned boundary strictly after ``now``, in UTC.

    Hourly syncs run at the top of each hour, daily syncs at midnight and
    weekly syncs at midnight between Saturday and Sunday. Boundaries missed
    while the process was down are never caught up.
    """
    now = ensure_utc(now)
    if periodicity is Periodicity.HOURLY:
        return now.replace(minute=0, second=0, microsecond=0) + dt.timedelta(hours=1)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    if periodicity is Periodicity.DAILY:
        return midnight + dt.timedelta(days=1)
    days_ahead = (_SUNDAY - now.weekday()) % _DAYS_PER_WEEK or _DAYS_PER_WEEK
    return midnight + dt.timedelta(days=days_ahead)


def next_tick(now: dt.datetime, periodicity: Periodicity) -> dt.timedelta:
    """Return the delay from ``now`` until the next sync boundary."""
    return next_tick_at(now, periodicity) - ensure_utc(now)
