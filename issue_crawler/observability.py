"""Structured log events for crawl and reconciliation runs.

Events are single log lines of the form ``[event.type] key=value ...`` so log
aggregators can parse them. Success events are emitted at INFO, per-item and
per-issue problems at WARNING, and run failures at ERROR with an
``error_category`` from :func:`categorize_error`.

Usage
-----
>>> import datetime as dt
>>> event_logger = SyncEventLogger()
>>> context = SyncRunContext(
...     repo_slug="octo/reef",
...     index_name="issues-octo-reef",
...     started_at=dt.datetime(2024, 1, 1, tzinfo=dt.UTC),
... )
>>> event_logger.log_run_started(context, mode="timestamp", since=None)

"""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

import httpx
from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)

from issue_crawler.documents.errors import IssueNormalizationError
from issue_crawler.errors import CrawlerConfigError
from issue_crawler.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    GitHubRetryExhaustedError,
)
from issue_crawler.index.errors import ElasticsearchError, ElasticsearchResponseError
from issue_crawler.logging import (
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_warning,
)

if typ.TYPE_CHECKING:
    import datetime as dt

    from issue_crawler.index.models import BulkItemResult

logger = get_logger(__name__)

_HTTP_SERVER_ERROR_THRESHOLD = 500


class SyncEventType(enum.StrEnum):
    """Structured log event types for repository sync runs."""

    RUN_STARTED = "sync.run.started"
    RUN_COMPLETED = "sync.run.completed"
    RUN_FAILED = "sync.run.failed"
    PAGE_COMMITTED = "sync.page.committed"
    PAGE_ITEM_FAILED = "sync.page.item_failed"


class ReconcileEventType(enum.StrEnum):
    """Structured log event types for reconciliation sweeps."""

    SWEEP_COMPLETED = "reconcile.sweep.completed"
    SWEEP_FAILED = "reconcile.sweep.failed"
    ISSUE_TRANSFERRED = "reconcile.issue.transferred"
    ISSUE_UNCHANGED = "reconcile.issue.unchanged"
    ISSUE_PROBE_FAILED = "reconcile.issue.probe_failed"
    ISSUE_UPDATE_FAILED = "reconcile.issue.update_failed"


class ErrorCategory(enum.StrEnum):
    """Categories for error classification in alerts."""

    TRANSIENT = "transient"
    CLIENT_ERROR = "client_error"
    SCHEMA_DRIFT = "schema_drift"
    MALFORMED_RECORD = "malformed_record"
    CONFIGURATION = "configuration"
    SINK_ERROR = "sink_error"
    DATABASE_CONNECTIVITY = "database_connectivity"
    DATA_INTEGRITY = "data_integrity"
    DATABASE_ERROR = "database_error"
    UNKNOWN = "unknown"


@dataclasses.dataclass(frozen=True, slots=True)
class SyncRunContext:
    """Shared context for a single repository run."""

    repo_slug: str
    index_name: str
    started_at: dt.datetime


_EXCEPTION_CATEGORY_MAP: tuple[tuple[type[BaseException], ErrorCategory], ...] = (
    (GitHubRetryExhaustedError, ErrorCategory.TRANSIENT),
    (httpx.TransportError, ErrorCategory.TRANSIENT),
    (GitHubResponseShapeError, ErrorCategory.SCHEMA_DRIFT),
    (ElasticsearchResponseError, ErrorCategory.SCHEMA_DRIFT),
    (IssueNormalizationError, ErrorCategory.MALFORMED_RECORD),
    (GitHubConfigError, ErrorCategory.CONFIGURATION),
    (CrawlerConfigError, ErrorCategory.CONFIGURATION),
    (ElasticsearchError, ErrorCategory.SINK_ERROR),
    (OperationalError, ErrorCategory.DATABASE_CONNECTIVITY),
    (InterfaceError, ErrorCategory.DATABASE_CONNECTIVITY),
    (IntegrityError, ErrorCategory.DATA_INTEGRITY),
    (SQLAlchemyError, ErrorCategory.DATABASE_ERROR),
)


def categorize_error(exc: BaseException) -> ErrorCategory:
    """Categorize an exception for alerting purposes.

    Wrapper errors raised ``from`` an underlying failure are categorized by
    their cause.

    Returns:
        ErrorCategory indicating the type of failure for alert routing.

    """
    if exc.__cause__ is not None and not isinstance(
        exc, GitHubRetryExhaustedError | GitHubAPIError | ElasticsearchError
    ):
        return categorize_error(exc.__cause__)

    # 5xx responses are transient; every other GitHub status is the caller's.
    if isinstance(exc, GitHubAPIError):
        if (
            exc.status_code is not None
            and exc.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        ):
            return ErrorCategory.TRANSIENT
        return ErrorCategory.CLIENT_ERROR

    for exc_type, category in _EXCEPTION_CATEGORY_MAP:
        if isinstance(exc, exc_type):
            return category

    return ErrorCategory.UNKNOWN


class SyncEventLogger:
    """Emit structured sync events via femtologging."""

    def log_run_started(
        self,
        context: SyncRunContext,
        *,
        mode: str,
        since: dt.datetime | None,
    ) -> None:
        """Log a repository run start."""
        log_info(
            logger,
            "[%s] repo_slug=%s index=%s mode=%s since=%s started_at=%s",
            SyncEventType.RUN_STARTED,
            context.repo_slug,
            context.index_name,
            mode,
            since.isoformat() if since is not None else None,
            context.started_at.isoformat(),
        )

    def log_run_completed(  # noqa: PLR0913
        self,
        context: SyncRunContext,
        *,
        pages: int,
        issues_fetched: int,
        documents_written: int,
        failed_items: int,
        duration: dt.timedelta,
    ) -> None:
        """Log a successful repository run with its totals."""
        log_info(
            logger,
            "[%s] repo_slug=%s index=%s duration_seconds=%.3f pages=%d "
            "issues_fetched=%d documents_written=%d failed_items=%d",
            SyncEventType.RUN_COMPLETED,
            context.repo_slug,
            context.index_name,
            duration.total_seconds(),
            pages,
            issues_fetched,
            documents_written,
            failed_items,
        )

    def log_run_failed(
        self,
        context: SyncRunContext,
        error: BaseException,
        *,
        page: int | None,
        duration: dt.timedelta,
    ) -> None:
        """Log a failed repository run with error categorization."""
        category = categorize_error(error)
        log_error(
            logger,
            "[%s] repo_slug=%s index=%s page=%s duration_seconds=%.3f "
            "error_type=%s error_category=%s error_message=%s",
            SyncEventType.RUN_FAILED,
            context.repo_slug,
            context.index_name,
            page,
            duration.total_seconds(),
            type(error).__name__,
            category,
            str(error),
            exc_info=error,
        )

    def log_page_committed(  # noqa: PLR0913
        self,
        *,
        repo_slug: str,
        index_name: str,
        page: int,
        written: int,
        failed: int,
        not_modified: bool,
        watermark_advanced: bool,
    ) -> None:
        """Log one committed page."""
        log_info(
            logger,
            "[%s] repo_slug=%s index=%s page=%d written=%d failed=%d "
            "not_modified=%s watermark_advanced=%s",
            SyncEventType.PAGE_COMMITTED,
            repo_slug,
            index_name,
            page,
            written,
            failed,
            not_modified,
            watermark_advanced,
        )

    def log_item_failed(
        self,
        *,
        repo_slug: str,
        index_name: str,
        page: int,
        item: BulkItemResult,
    ) -> None:
        """Log a bulk item Elasticsearch rejected."""
        log_warning(
            logger,
            "[%s] repo_slug=%s index=%s page=%d doc_id=%s status=%d reason=%s",
            SyncEventType.PAGE_ITEM_FAILED,
            repo_slug,
            index_name,
            page,
            item.doc_id,
            item.status,
            item.reason,
        )


class ReconcileEventLogger:
    """Emit structured reconciliation events via femtologging."""

    def log_issue_transferred(
        self,
        *,
        repo_slug: str,
        index_name: str,
        doc_id: str,
        number: int | None,
        status_code: int | None,
    ) -> None:
        """Log a document moved to the ``transferred`` state."""
        log_info(
            logger,
            "[%s] repo_slug=%s index=%s doc_id=%s number=%s status_code=%s",
            ReconcileEventType.ISSUE_TRANSFERRED,
            repo_slug,
            index_name,
            doc_id,
            number,
            status_code,
        )

    def log_issue_unchanged(
        self,
        *,
        repo_slug: str,
        doc_id: str,
        number: int | None,
        status_code: int | None,
    ) -> None:
        """Log a candidate that still resolves in its repository."""
        log_debug(
            logger,
            "[%s] repo_slug=%s doc_id=%s number=%s status_code=%s",
            ReconcileEventType.ISSUE_UNCHANGED,
            repo_slug,
            doc_id,
            number,
            status_code,
        )

    def log_probe_failed(
        self,
        *,
        repo_slug: str,
        doc_id: str,
        number: int | None,
        error: BaseException,
    ) -> None:
        """Log a probe that produced no usable answer."""
        log_warning(
            logger,
            "[%s] repo_slug=%s doc_id=%s number=%s error_type=%s "
            "error_category=%s error_message=%s",
            ReconcileEventType.ISSUE_PROBE_FAILED,
            repo_slug,
            doc_id,
            number,
            type(error).__name__,
            categorize_error(error),
            str(error),
        )

    def log_update_failed(
        self,
        *,
        repo_slug: str,
        index_name: str,
        doc_id: str,
        error: BaseException,
    ) -> None:
        """Log a transition update Elasticsearch refused."""
        log_warning(
            logger,
            "[%s] repo_slug=%s index=%s doc_id=%s error_type=%s error_message=%s",
            ReconcileEventType.ISSUE_UPDATE_FAILED,
            repo_slug,
            index_name,
            doc_id,
            type(error).__name__,
            str(error),
        )

    def log_sweep_completed(  # noqa: PLR0913
        self,
        *,
        repo_slug: str,
        index_name: str,
        candidates: int,
        transferred: int,
        unchanged: int,
        errors: int,
        duration: dt.timedelta,
    ) -> None:
        """Log a finished sweep with its counts."""
        log_info(
            logger,
            "[%s] repo_slug=%s index=%s duration_seconds=%.3f candidates=%d "
            "transferred=%d unchanged=%d errors=%d",
            ReconcileEventType.SWEEP_COMPLETED,
            repo_slug,
            index_name,
            duration.total_seconds(),
            candidates,
            transferred,
            unchanged,
            errors,
        )

    def log_sweep_failed(
        self,
        *,
        repo_slug: str,
        index_name: str,
        error: BaseException,
    ) -> None:
        """Log a sweep that could not run at all."""
        log_error(
            logger,
            "[%s] repo_slug=%s index=%s error_type=%s error_category=%s "
            "error_message=%s",
            ReconcileEventType.SWEEP_FAILED,
            repo_slug,
            index_name,
            type(error).__name__,
            categorize_error(error),
            str(error),
            exc_info=error,
        )
