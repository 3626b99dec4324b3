"""Walk the issues listing of one repository page by page."""

from __future__ import annotations

import typing as typ

from issue_crawler.logging import get_logger, log_debug

from .errors import GitHubResponseShapeError
from .models import IssuePage

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from issue_crawler.repositories import RepositoryTarget
    from issue_crawler.watermarks import PageWatermark, WatermarkMode, WatermarkStore

    from .client import IssueSource
    from .models import IssueListing

logger = get_logger(__name__)


class IssuePaginator:
    """Yield :class:`IssuePage` values until the listing has no next link.

    In ``etag`` mode each page's stored :class:`PageWatermark` is read before
    the page is requested so the request can be conditional. A ``304`` yields
    an empty page whose cursor is the one remembered with that etag, and the
    walk continues from it.
    """

    def __init__(
        self,
        client: IssueSource,
        store: WatermarkStore | None = None,
        *,
        mode: WatermarkMode = "timestamp",
    ) -> None:
        """Bind the paginator to a client and, for etag mode, a store."""
        self._client = client
        self._store = store
        self._mode = mode

    async def iter_pages(
        self, target: RepositoryTarget, *, since: dt.datetime | None = None
    ) -> cabc.AsyncIterator[IssuePage]:
        """Yield numbered pages, starting at 1, in listing order."""
        number = 1
        url: str | None = None
        seen: set[str] = set()
        while True:
            cached = await self._cached_page(target, number)
            listing = await self._client.list_issues(
                target,
                url=url,
                since=since,
                etag=cached.etag if cached is not None else None,
            )
            page = self._to_page(number, listing, cached)
            self._log_page(target, page)
            yield page

            if page.next_url is None:
                return
            if page.next_url in seen:
                raise GitHubResponseShapeError.repeated_cursor(page.next_url)
            seen.add(page.next_url)
            url = page.next_url
            number += 1

    async def _cached_page(
        self, target: RepositoryTarget, number: int
    ) -> PageWatermark | None:
        if self._mode != "etag" or self._store is None:
            return None
        return await self._store.load_page(target.owner, target.name, number)

    @staticmethod
    def _to_page(
        number: int, listing: IssueListing, cached: PageWatermark | None
    ) -> IssuePage:
        if not listing.not_modified:
            return IssuePage(
                number=number,
                records=listing.records,
                next_url=listing.next_url,
                etag=listing.etag,
                rate_limit=listing.rate_limit,
            )
        if cached is None:
            raise GitHubResponseShapeError.missing(f"cached cursor for page {number}")
        return IssuePage(
            number=number,
            records=(),
            next_url=cached.next_url,
            etag=cached.etag,
            not_modified=True,
            rate_limit=listing.rate_limit,
        )

    @staticmethod
    def _log_page(target: RepositoryTarget, page: IssuePage) -> None:
        status = page.rate_limit
        log_debug(
            logger,
            "[%s#%d] %d issues, not_modified=%s, rate limit remaining=%s/%s "
            "reset=%s",
            target.slug,
            page.number,
            len(page.records),
            page.not_modified,
            status.remaining if status else None,
            status.limit if status else None,
            status.reset_at.isoformat() if status and status.reset_at else None,
        )
