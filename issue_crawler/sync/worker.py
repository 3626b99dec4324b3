"""Synchronise one repository's issues into its index."""

from __future__ import annotations

import collections.abc as cabc
import contextlib
import dataclasses
import datetime as dt
import typing as typ

from issue_crawler.common.time import utcnow
from issue_crawler.documents.normalize import normalize_issue
from issue_crawler.github.enrichment import TimelineEnricher
from issue_crawler.github.pagination import IssuePaginator
from issue_crawler.index.writer import BulkWriter
from issue_crawler.observability import SyncEventLogger, SyncRunContext
from issue_crawler.watermarks.models import PageWatermark, TimestampWatermark

from .errors import RepositorySyncError

if typ.TYPE_CHECKING:
    from issue_crawler.documents.models import IssueDocument
    from issue_crawler.github.client import IssueSource
    from issue_crawler.github.models import IssuePage
    from issue_crawler.index.client import SearchIndex
    from issue_crawler.index.writer import PageCommitResult
    from issue_crawler.repositories import RepositoryTarget
    from issue_crawler.watermarks.models import Watermark, WatermarkMode
    from issue_crawler.watermarks.store import WatermarkStore


@dataclasses.dataclass(frozen=True, slots=True)
class IssueSyncConfig:
    """Runtime knobs for repository sync runs."""

    mode: WatermarkMode = "timestamp"
    enrichment_concurrency: int = 8


@dataclasses.dataclass(frozen=True, slots=True)
class RepositorySyncResult:
    """Summary of a single repository sync run."""

    repo_slug: str
    index_name: str
    pages: int = 0
    not_modified_pages: int = 0
    issues_fetched: int = 0
    documents_written: int = 0
    failed_items: int = 0
    watermark: Watermark | None = None


@dataclasses.dataclass(slots=True)
class _RunTally:
    page: int | None = None
    pages: int = 0
    not_modified_pages: int = 0
    issues_fetched: int = 0
    documents_written: int = 0
    failed_items: int = 0
    watermark: Watermark | None = None

    def add(self, page: IssuePage, commit: PageCommitResult) -> None:
        self.pages += 1
        self.not_modified_pages += int(page.not_modified)
        self.issues_fetched += len(page.records)
        self.documents_written += commit.written
        self.failed_items += commit.failed


class IssueSyncWorker:
    """Run the paginate, enrich, normalise and commit loop for a repository.

    Pages are processed strictly in order. In ``timestamp`` mode the run's
    start instant is saved as the repository watermark once the last page is
    committed; in ``etag`` mode each page's watermark is saved as part of its
    commit. Any unrecovered error aborts the run as a
    :class:`RepositorySyncError` raised from the original failure.
    """

    def __init__(  # noqa: PLR0913
        self,
        client: IssueSource,
        index: SearchIndex,
        store: WatermarkStore,
        *,
        config: IssueSyncConfig | None = None,
        event_logger: SyncEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        enricher: TimelineEnricher | None = None,
    ) -> None:
        """Create a worker bound to the shared clients and watermark store."""
        self._config = config or IssueSyncConfig()
        self._store = store
        self._event_logger = event_logger or SyncEventLogger()
        self._clock = clock
        self._paginator = IssuePaginator(client, store, mode=self._config.mode)
        self._enricher = enricher or TimelineEnricher(
            client, concurrency=self._config.enrichment_concurrency
        )
        self._writer = BulkWriter(index, store, event_logger=self._event_logger)

    async def sync_repository(self, target: RepositoryTarget) -> RepositorySyncResult:
        """Synchronise one repository and return its totals."""
        started_at = self._clock()
        context = SyncRunContext(
            repo_slug=target.slug,
            index_name=target.index_name,
            started_at=started_at,
        )
        tally = _RunTally()
        try:
            since = await self._since(target)
            self._event_logger.log_run_started(
                context, mode=self._config.mode, since=since
            )
            await self._run(target, started_at, since, tally)
        except Exception as exc:
            self._event_logger.log_run_failed(
                context, exc, page=tally.page, duration=self._clock() - started_at
            )
            raise RepositorySyncError.for_target(target, page=tally.page) from exc

        self._event_logger.log_run_completed(
            context,
            pages=tally.pages,
            issues_fetched=tally.issues_fetched,
            documents_written=tally.documents_written,
            failed_items=tally.failed_items,
            duration=self._clock() - started_at,
        )
        return RepositorySyncResult(
            repo_slug=target.slug,
            index_name=target.index_name,
            pages=tally.pages,
            not_modified_pages=tally.not_modified_pages,
            issues_fetched=tally.issues_fetched,
            documents_written=tally.documents_written,
            failed_items=tally.failed_items,
            watermark=tally.watermark,
        )

    async def _since(self, target: RepositoryTarget) -> dt.datetime | None:
        if self._config.mode != "timestamp":
            return None
        stored = await self._store.load_timestamp(target.owner, target.name)
        return stored.timestamp if stored is not None else None

    async def _run(
        self,
        target: RepositoryTarget,
        started_at: dt.datetime,
        since: dt.datetime | None,
        tally: _RunTally,
    ) -> None:
        # tally.page tracks the page in flight, including one still being
        # fetched.
        tally.page = 1
        async with contextlib.aclosing(
            self._paginator.iter_pages(target, since=since)
        ) as pages:
            async for page in pages:
                tally.page = page.number
                watermark = self._page_watermark(target, page)
                commit = await self._writer.commit_page(
                    target,
                    page,
                    await self._normalise(target, page),
                    watermark=watermark,
                )
                tally.add(page, commit)
                if watermark is not None:
                    tally.watermark = watermark
                tally.page = page.number + 1

        tally.page = None
        if self._config.mode == "timestamp":
            final = TimestampWatermark(
                owner=target.owner, repo=target.name, timestamp=started_at
            )
            await self._store.save_timestamp(final)
            tally.watermark = final

    async def _normalise(
        self, target: RepositoryTarget, page: IssuePage
    ) -> list[IssueDocument]:
        if not page.records:
            return []
        enriched = await self._enricher.enrich(target, page.records)
        crawled_at = self._clock()
        return [
            normalize_issue(
                target, issue.raw, transfer=issue.transfer, crawled_at=crawled_at
            )
            for issue in enriched
        ]

    def _page_watermark(
        self, target: RepositoryTarget, page: IssuePage
    ) -> PageWatermark | None:
        if self._config.mode != "etag":
            return None
        return PageWatermark(
            owner=target.owner,
            repo=target.name,
            page=page.number,
            etag=page.etag,
            next_url=page.next_url,
        )
