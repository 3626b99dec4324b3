"""Watermarks kept as documents in the ``crawler-cache`` index."""

from __future__ import annotations

import typing as typ

from issue_crawler.common.time import parse_github_datetime
from issue_crawler.index.naming import CACHE_INDEX

from .models import PageWatermark, TimestampWatermark

if typ.TYPE_CHECKING:
    from issue_crawler.index.client import SearchIndex


def timestamp_key(owner: str, repo: str) -> str:
    """Return the cache document id of a repository's timestamp watermark.

    >>> timestamp_key("elastic", "kibana")
    'elastic_kibana'

    """
    return f"{owner}_{repo}"


def page_key(owner: str, repo: str, page: int) -> str:
    """Return the cache document id of one page watermark.

    >>> page_key("elastic", "kibana", 3)
    'elastic_kibana_3'

    """
    return f"{owner}_{repo}_{page}"


class ElasticsearchWatermarkStore:
    """:class:`~issue_crawler.watermarks.store.WatermarkStore` on the sink itself."""

    def __init__(self, index: SearchIndex, *, cache_index: str = CACHE_INDEX) -> None:
        """Bind the store to a search index client and the cache index name."""
        self._index = index
        self._cache_index = cache_index

    async def load_timestamp(
        self, owner: str, repo: str
    ) -> TimestampWatermark | None:
        """Return the stored timestamp watermark, if any."""
        source = await self._index.get_document(
            self._cache_index, timestamp_key(owner, repo)
        )
        if not source or not isinstance(source.get("timestamp"), str):
            return None
        return TimestampWatermark(
            owner=owner,
            repo=repo,
            timestamp=parse_github_datetime(source["timestamp"]),
        )

    async def save_timestamp(self, watermark: TimestampWatermark) -> None:
        """Store the watermark unless a newer one is already recorded."""
        current = await self.load_timestamp(watermark.owner, watermark.repo)
        if current is not None and current.timestamp >= watermark.timestamp:
            return
        await self._index.index_document(
            self._cache_index,
            timestamp_key(watermark.owner, watermark.repo),
            {
                "owner": watermark.owner,
                "repo": watermark.repo,
                "timestamp": watermark.timestamp.isoformat(),
            },
        )

    async def load_page(self, owner: str, repo: str, page: int) -> PageWatermark | None:
        """Return the stored watermark for one listing page, if any."""
        source = await self._index.get_document(
            self._cache_index, page_key(owner, repo, page)
        )
        if not source:
            return None
        return PageWatermark(
            owner=owner,
            repo=repo,
            page=page,
            etag=source.get("etag"),
            next_url=source.get("next_url"),
        )

    async def save_page(self, watermark: PageWatermark) -> None:
        """Replace the stored watermark for one listing page."""
        await self._index.index_document(
            self._cache_index,
            page_key(watermark.owner, watermark.repo, watermark.page),
            {
                "owner": watermark.owner,
                "repo": watermark.repo,
                "page": watermark.page,
                "etag": watermark.etag,
                "next_url": watermark.next_url,
            },
        )
