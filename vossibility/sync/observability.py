"""Structured log events for bulk sync runs.

Every event is one line of the form ``[event] key=value ...`` so log
aggregators can count runs, pages and failures per repository without a
metrics backend.
"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

from vossibility.config.validation import ConfigValidationError
from vossibility.github.errors import (
    GitHubAPIError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
)
from vossibility.logging import get_logger, log_error, log_info
from vossibility.storage.errors import StorageError

if typ.TYPE_CHECKING:
    import datetime as dt

    from .job import SyncResult

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class SyncEventType(enum.StrEnum):
    """Structured log event types for bulk sync runs."""

    RUN_STARTED = "sync.run.started"
    RUN_COMPLETED = "sync.run.completed"
    RUN_FAILED = "sync.run.failed"
    PAGE_LISTED = "sync.page.listed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    RATE_LIMITED = "rate_limited"
    CONFIGURATION = "configuration"
    STORAGE = "storage"
    UNKNOWN = "unknown"


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitHubResponseShapeError, ErrorCategory.CLIENT_ERROR),
    (ConfigValidationError, ErrorCategory.CONFIGURATION),
    (StorageError, ErrorCategory.STORAGE),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alert routing."""
    if isinstance(exc, GitHubRateLimitError):
        return ErrorCategory.RATE_LIMITED
    if isinstance(exc, GitHubAPIError):
        if exc.status_code is None or exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD:
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


@dataclasses.dataclass(frozen=True, slots=True)
class SyncRunContext:
    """Shared context for one repository sync run."""

    repository: str
    storage: str
    state: str
    started_at: dt.datetime


class SyncEventLogger:
    """Emit structured sync events via femtologging."""

    def log_run_started(self, context: SyncRunContext, first_page: int) -> None:
        """Log the start of a repository sync."""
        log_info(
            logger,
            "[%s] repository=%s storage=%s state=%s first_page=%d started_at=%s",
            SyncEventType.RUN_STARTED,
            context.repository,
            context.storage,
            context.state,
            first_page,
            context.started_at.isoformat(),
        )

    def log_page_listed(
        self, context: SyncRunContext, page: int, items: int, total: int
    ) -> None:
        """Log one listed page of issues."""
        log_info(
            logger,
            "[%s] repository=%s page=%d items=%d total_items=%d",
            SyncEventType.PAGE_LISTED,
            context.repository,
            page,
            items,
            total,
        )

    def log_run_completed(
        self,
        context: SyncRunContext,
        result: SyncResult,
        duration: dt.timedelta,
    ) -> None:
        """Log successful completion with item counters."""
        log_info(
            logger,
            "[%s] repository=%s duration_seconds=%.3f pages=%d items_listed=%d "
            "items_indexed=%d items_failed=%d fetch_fallbacks=%d",
            SyncEventType.RUN_COMPLETED,
            context.repository,
            duration.total_seconds(),
            result.pages,
            result.items_listed,
            result.items_indexed,
            result.items_failed,
            result.fetch_fallbacks,
        )

    def log_run_failed(
        self,
        context: SyncRunContext,
        error: BaseException,
        duration: dt.timedelta,
    ) -> None:
        """Log an aborted repository sync with its error category."""
        log_error(
            logger,
            "[%s] repository=%s duration_seconds=%.3f error_type=%s "
            "error_category=%s error_message=%s",
            SyncEventType.RUN_FAILED,
            context.repository,
            duration.total_seconds(),
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
