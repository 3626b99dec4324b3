"""Unit tests for walking the issues listing."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from issue_crawler.github.errors import GitHubResponseShapeError
from issue_crawler.github.models import IssueListing, IssuePage, RateLimitStatus
from issue_crawler.github.pagination import IssuePaginator
from issue_crawler.repositories import RepositoryTarget
from issue_crawler.watermarks import ElasticsearchWatermarkStore, PageWatermark
from tests.helpers.fake_github import FakeIssueSource
from tests.helpers.fake_index import InMemorySearchIndex
from tests.helpers.issue_builders import TARGET, issue_payload, listing, page_url


async def _collect(paginator: IssuePaginator, **kwargs: object) -> list[IssuePage]:
    return [page async for page in paginator.iter_pages(TARGET, **kwargs)]


@pytest.mark.asyncio
async def test_follows_next_links_until_exhausted(github: FakeIssueSource) -> None:
    """Pages are numbered from one and the walk ends without a next link."""
    github.add_listing(
        TARGET, listing([issue_payload(1), issue_payload(2)], next_url=page_url(2))
    )
    github.add_listing(
        TARGET,
        listing([issue_payload(3)], url=page_url(2), next_url=page_url(3)),
        url=page_url(2),
    )
    github.add_listing(TARGET, listing([], url=page_url(3)), url=page_url(3))

    pages = await _collect(IssuePaginator(github))

    assert [page.number for page in pages] == [1, 2, 3]
    assert [len(page.records) for page in pages] == [2, 1, 0]
    assert [call.url for call in github.list_calls] == [
        None,
        page_url(2),
        page_url(3),
    ]


@pytest.mark.asyncio
async def test_since_is_passed_to_every_request(github: FakeIssueSource) -> None:
    """The changed-since filter reaches the client."""
    since = dt.datetime(2023, 6, 1, tzinfo=dt.UTC)
    github.add_listing(TARGET, listing([issue_payload(1)]))

    await _collect(IssuePaginator(github), since=since)

    assert github.list_calls[0].since == since
    assert github.list_calls[0].etag is None


@pytest.mark.asyncio
async def test_timestamp_mode_never_sends_etags(github: FakeIssueSource) -> None:
    """Without etag mode no cached page is consulted."""
    index = InMemorySearchIndex()
    store = ElasticsearchWatermarkStore(index)
    await store.save_page(
        PageWatermark(owner="octo", repo="reef", page=1, etag='"a"', next_url=None)
    )
    github.add_listing(TARGET, listing([issue_payload(1)], etag='"a"'))

    pages = await _collect(IssuePaginator(github, store, mode="timestamp"))

    assert github.list_calls[0].etag is None
    assert pages[0].not_modified is False


@pytest.mark.asyncio
async def test_etag_mode_sends_cached_etag_and_reuses_cursor(
    github: FakeIssueSource,
) -> None:
    """A not-modified page continues from the cursor stored with its etag."""
    store = ElasticsearchWatermarkStore(InMemorySearchIndex())
    await store.save_page(
        PageWatermark(
            owner="octo", repo="reef", page=1, etag='"one"', next_url=page_url(2)
        )
    )
    github.add_listing(
        TARGET, listing([issue_payload(1)], next_url=page_url(2), etag='"one"')
    )
    github.add_listing(
        TARGET,
        listing([issue_payload(2)], url=page_url(2), etag='"two"'),
        url=page_url(2),
    )

    pages = await _collect(IssuePaginator(github, store, mode="etag"))

    assert [call.etag for call in github.list_calls] == ['"one"', None]
    first, second = pages
    assert first.not_modified is True
    assert first.records == ()
    assert first.next_url == page_url(2)
    assert first.etag == '"one"'
    assert second.not_modified is False
    assert second.etag == '"two"'


@pytest.mark.asyncio
async def test_not_modified_without_cache_is_rejected() -> None:
    """A 304 for a page with no stored cursor cannot be continued."""

    class _NotModifiedSource(FakeIssueSource):
        async def list_issues(
            self, target: RepositoryTarget, **kwargs: typ.Any
        ) -> IssueListing:
            await super().list_issues(target, **kwargs)
            return IssueListing(
                url=page_url(1),
                records=(),
                next_url=None,
                etag='"x"',
                not_modified=True,
            )

    github = _NotModifiedSource()
    github.add_listing(TARGET, listing([]))

    with pytest.raises(GitHubResponseShapeError, match="cached cursor for page 1"):
        await _collect(IssuePaginator(github, None, mode="etag"))


@pytest.mark.asyncio
async def test_repeated_cursor_is_rejected(github: FakeIssueSource) -> None:
    """A next link pointing at the current page would loop forever."""
    github.add_listing(TARGET, listing([issue_payload(1)], next_url=page_url(2)))
    github.add_listing(
        TARGET,
        listing([issue_payload(2)], url=page_url(2), next_url=page_url(2)),
        url=page_url(2),
    )

    with pytest.raises(GitHubResponseShapeError, match="already visited"):
        await _collect(IssuePaginator(github))


@pytest.mark.asyncio
async def test_cursor_cycle_across_pages_is_rejected(github: FakeIssueSource) -> None:
    """A next link back to an earlier page stops the walk."""
    github.add_listing(TARGET, listing([issue_payload(1)], next_url=page_url(2)))
    github.add_listing(
        TARGET,
        listing([issue_payload(2)], url=page_url(2), next_url=page_url(3)),
        url=page_url(2),
    )
    github.add_listing(
        TARGET,
        listing([issue_payload(3)], url=page_url(3), next_url=page_url(2)),
        url=page_url(3),
    )

    with pytest.raises(GitHubResponseShapeError, match=r"issues\?page=2"):
        await _collect(IssuePaginator(github))

    assert [call.url for call in github.list_calls] == [
        None,
        page_url(2),
        page_url(3),
    ]


@pytest.mark.asyncio
async def test_rate_limit_status_is_carried_on_the_page(
    github: FakeIssueSource,
) -> None:
    """Pages keep the quota figures of the response that produced them."""
    status = RateLimitStatus(remaining=10, limit=5000, reset_at=None)
    github.add_listing(TARGET, listing([issue_payload(1)], rate_limit=status))

    (page,) = await _collect(IssuePaginator(github))

    assert page.rate_limit == status
