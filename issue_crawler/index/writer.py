"""Commit normalised pages to the sink and advance their watermarks."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import typing as typ

from issue_crawler.observability import SyncEventLogger
from issue_crawler.watermarks.models import PageWatermark, TimestampWatermark

from .models import IndexOperation

if typ.TYPE_CHECKING:
    from issue_crawler.documents.models import IssueDocument
    from issue_crawler.github.models import IssuePage
    from issue_crawler.repositories import RepositoryTarget
    from issue_crawler.watermarks.models import Watermark
    from issue_crawler.watermarks.store import WatermarkStore

    from .client import SearchIndex


@dataclasses.dataclass(frozen=True, slots=True)
class PageCommitResult:
    """What one page commit wrote and whether its watermark moved."""

    page: int
    written: int
    failed: int
    watermark_advanced: bool


class BulkWriter:
    """Write one page of documents with a single bulk request.

    Items Elasticsearch rejects are logged and counted but not retried, and
    the page's watermark is saved regardless. A page without documents
    sends no bulk request yet still saves its watermark. A bulk request
    that fails as a whole raises before the watermark is touched.
    """

    def __init__(
        self,
        index: SearchIndex,
        store: WatermarkStore | None = None,
        *,
        event_logger: SyncEventLogger | None = None,
    ) -> None:
        """Bind the writer to the sink and the watermark store."""
        self._index = index
        self._store = store
        self._event_logger = event_logger or SyncEventLogger()

    async def commit_page(
        self,
        target: RepositoryTarget,
        page: IssuePage,
        documents: cabc.Sequence[IssueDocument],
        *,
        watermark: Watermark | None = None,
    ) -> PageCommitResult:
        """Write ``documents`` to the target's index, then save ``watermark``."""
        failed = 0
        if documents:
            response = await self._index.bulk(
                [
                    IndexOperation(
                        index=target.index_name,
                        doc_id=str(document.id),
                        source=document.to_source(),
                    )
                    for document in documents
                ]
            )
            for item in response.failed_items:
                self._event_logger.log_item_failed(
                    repo_slug=target.slug,
                    index_name=target.index_name,
                    page=page.number,
                    item=item,
                )
            failed = len(response.failed_items)

        advanced = await self._save_watermark(watermark)
        result = PageCommitResult(
            page=page.number,
            written=len(documents) - failed,
            failed=failed,
            watermark_advanced=advanced,
        )
        self._event_logger.log_page_committed(
            repo_slug=target.slug,
            index_name=target.index_name,
            page=page.number,
            written=result.written,
            failed=result.failed,
            not_modified=page.not_modified,
            watermark_advanced=advanced,
        )
        return result

    async def _save_watermark(self, watermark: Watermark | None) -> bool:
        if watermark is None:
            return False
        if self._store is None:
            msg = "BulkWriter was given a watermark but has no store"
            raise ValueError(msg)
        match watermark:
            case TimestampWatermark():
                await self._store.save_timestamp(watermark)
            case PageWatermark():
                await self._store.save_page(watermark)
        return True
