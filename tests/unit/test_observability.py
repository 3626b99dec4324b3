"""Unit tests for crawl and reconciliation log events."""

from __future__ import annotations

import datetime as dt

import httpx
import pytest
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError

from issue_crawler.documents.errors import IssueNormalizationError
from issue_crawler.errors import CrawlerConfigError
from issue_crawler.github.errors import (
    GitHubAPIError,
    GitHubConfigError,
    GitHubResponseShapeError,
    GitHubRetryExhaustedError,
)
from issue_crawler.index.errors import ElasticsearchError, ElasticsearchResponseError
from issue_crawler.index.models import BulkItemResult
from issue_crawler.observability import (
    ErrorCategory,
    ReconcileEventLogger,
    ReconcileEventType,
    SyncEventLogger,
    SyncEventType,
    SyncRunContext,
    categorize_error,
)
from issue_crawler.sync.errors import RepositorySyncError
from tests.helpers.femtologging_capture import capture_femto_logs

STARTED_AT = dt.datetime(2024, 3, 1, 9, 30, tzinfo=dt.UTC)


def _wrapped(cause: BaseException) -> RepositorySyncError:
    error = RepositorySyncError("octo/reef", "issues-octo-reef", 2)
    error.__cause__ = cause
    return error


class TestCategorizeError:
    """Tests for error categorization."""

    @pytest.mark.parametrize("status_code", [500, 502, 503])
    def test_github_5xx_is_transient(self, status_code: int) -> None:
        """Server errors from GitHub are worth retrying later."""
        exc = GitHubAPIError.http_error(status_code, "https://api.github.com/x")
        assert categorize_error(exc) == ErrorCategory.TRANSIENT

    @pytest.mark.parametrize("status_code", [401, 403, 422])
    def test_github_4xx_is_client_error(self, status_code: int) -> None:
        """Client errors point at credentials or request shape."""
        exc = GitHubAPIError.http_error(status_code, "https://api.github.com/x")
        assert categorize_error(exc) == ErrorCategory.CLIENT_ERROR

    @pytest.mark.parametrize(
        ("exc", "expected"),
        [
            (
                GitHubRetryExhaustedError("https://api.github.com/x", 3),
                ErrorCategory.TRANSIENT,
            ),
            (httpx.ConnectError("refused"), ErrorCategory.TRANSIENT),
            (GitHubResponseShapeError.missing("items"), ErrorCategory.SCHEMA_DRIFT),
            (
                ElasticsearchResponseError.undecodable("POST", "/_bulk"),
                ErrorCategory.SCHEMA_DRIFT,
            ),
            (IssueNormalizationError.missing_id(7), ErrorCategory.MALFORMED_RECORD),
            (GitHubConfigError.empty_token(), ErrorCategory.CONFIGURATION),
            (CrawlerConfigError.missing("ES_HOST"), ErrorCategory.CONFIGURATION),
            (
                ElasticsearchError.transport("POST", "/_bulk"),
                ErrorCategory.SINK_ERROR,
            ),
            (
                OperationalError("SELECT 1", {}, Exception("down")),
                ErrorCategory.DATABASE_CONNECTIVITY,
            ),
            (
                InterfaceError("SELECT 1", {}, Exception("closed")),
                ErrorCategory.DATABASE_CONNECTIVITY,
            ),
            (
                IntegrityError("INSERT", {}, Exception("dup")),
                ErrorCategory.DATA_INTEGRITY,
            ),
            (RuntimeError("surprise"), ErrorCategory.UNKNOWN),
        ],
    )
    def test_exception_types(
        self, exc: BaseException, expected: ErrorCategory
    ) -> None:
        """Each failure family maps to its alert category."""
        assert categorize_error(exc) == expected

    def test_wrapper_is_categorised_by_its_cause(self) -> None:
        """A repository failure takes the category of what went wrong."""
        error = _wrapped(GitHubAPIError.http_error(503, "https://api.github.com/x"))
        assert categorize_error(error) == ErrorCategory.TRANSIENT

    def test_sink_error_keeps_its_own_category(self) -> None:
        """Elasticsearch errors are not re-categorised by their transport cause."""
        error = ElasticsearchError.transport("POST", "/_bulk")
        error.__cause__ = httpx.ReadTimeout("slow")
        assert categorize_error(_wrapped(error)) == ErrorCategory.SINK_ERROR


class TestSyncEventLogger:
    """Tests for sync run log lines."""

    def test_run_started(self) -> None:
        """Start events name the repository, mode and watermark."""
        context = SyncRunContext(
            repo_slug="octo/reef", index_name="issues-octo-reef", started_at=STARTED_AT
        )
        with capture_femto_logs("issue_crawler.observability") as capture:
            SyncEventLogger().log_run_started(
                context, mode="timestamp", since=STARTED_AT - dt.timedelta(days=1)
            )
            record = capture.wait_for_message(f"[{SyncEventType.RUN_STARTED}]")

        assert record.level == "INFO"
        assert "repo_slug=octo/reef" in record.message
        assert "mode=timestamp" in record.message
        assert "since=2024-02-29T09:30:00+00:00" in record.message

    def test_run_failed_carries_category_and_page(self) -> None:
        """Failure events are errors with the category of the root cause."""
        context = SyncRunContext(
            repo_slug="octo/reef", index_name="issues-octo-reef", started_at=STARTED_AT
        )
        error = _wrapped(IssueNormalizationError.missing_id(9))
        with capture_femto_logs("issue_crawler.observability") as capture:
            SyncEventLogger().log_run_failed(
                context, error, page=2, duration=dt.timedelta(seconds=1.5)
            )
            record = capture.wait_for_message(f"[{SyncEventType.RUN_FAILED}]")

        assert record.level == "ERROR"
        assert "page=2" in record.message
        assert "duration_seconds=1.500" in record.message
        assert "error_type=RepositorySyncError" in record.message
        assert "error_category=malformed_record" in record.message

    def test_item_failed(self) -> None:
        """Rejected bulk items are warnings naming the document."""
        item = BulkItemResult(
            index="issues-octo-reef",
            doc_id="42",
            status=400,
            error={"type": "mapper_parsing_exception", "reason": "bad date"},
        )
        with capture_femto_logs("issue_crawler.observability") as capture:
            SyncEventLogger().log_item_failed(
                repo_slug="octo/reef", index_name="issues-octo-reef", page=1, item=item
            )
            record = capture.wait_for_message(f"[{SyncEventType.PAGE_ITEM_FAILED}]")

        assert record.level in {"WARN", "WARNING"}
        assert "doc_id=42 status=400 reason=bad date" in record.message


class TestReconcileEventLogger:
    """Tests for reconciliation log lines."""

    def test_sweep_completed_counts(self) -> None:
        """Sweep summaries carry every outcome count."""
        with capture_femto_logs("issue_crawler.observability") as capture:
            ReconcileEventLogger().log_sweep_completed(
                repo_slug="octo/reef",
                index_name="issues-octo-reef",
                candidates=5,
                transferred=2,
                unchanged=2,
                errors=1,
                duration=dt.timedelta(seconds=3),
            )
            record = capture.wait_for_message(
                f"[{ReconcileEventType.SWEEP_COMPLETED}]"
            )

        assert (
            "candidates=5 transferred=2 unchanged=2 errors=1" in record.message
        )

    def test_issue_transferred(self) -> None:
        """Transitions record the status code that triggered them."""
        with capture_femto_logs("issue_crawler.observability") as capture:
            ReconcileEventLogger().log_issue_transferred(
                repo_slug="octo/reef",
                index_name="issues-octo-reef",
                doc_id="42",
                number=7,
                status_code=301,
            )
            record = capture.wait_for_message(
                f"[{ReconcileEventType.ISSUE_TRANSFERRED}]"
            )

        assert "doc_id=42 number=7 status_code=301" in record.message
