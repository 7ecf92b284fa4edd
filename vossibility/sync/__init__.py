"""Bulk synchronisation of issues and pull requests from GitHub."""

from __future__ import annotations

from .job import (
    DEFAULT_FROM,
    DEFAULT_NUM_FETCH_WORKERS,
    DEFAULT_NUM_INDEX_WORKERS,
    PERIODIC_SLEEP_PER_PAGE,
    SyncJob,
    SyncOptions,
    SyncResult,
    periodic_sync_options,
)
from .observability import (
    ErrorCategory,
    SyncEventLogger,
    SyncEventType,
    SyncRunContext,
    categorize_error,
)
from .periodic import next_tick, next_tick_at

__all__ = [
    "DEFAULT_FROM",
    "DEFAULT_NUM_FETCH_WORKERS",
    "DEFAULT_NUM_INDEX_WORKERS",
    "PERIODIC_SLEEP_PER_PAGE",
    "ErrorCategory",
    "SyncEventLogger",
    "SyncEventType",
    "SyncJob",
    "SyncOptions",
    "SyncResult",
    "SyncRunContext",
    "categorize_error",
    "next_tick",
    "next_tick_at",
    "periodic_sync_options",
]
