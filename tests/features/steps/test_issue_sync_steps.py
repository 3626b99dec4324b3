"""Behavioural tests for incremental issue sync."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest
from pytest_bdd import given, parsers, scenario, then, when

from issue_crawler.github.errors import GitHubAPIError
from issue_crawler.repositories import RepositoryTarget
from issue_crawler.sync import IssueSyncConfig, IssueSyncWorker, SyncOrchestrator
from issue_crawler.watermarks import (
    ElasticsearchWatermarkStore,
    PageWatermark,
    TimestampWatermark,
)
from tests.helpers import run_async
from tests.helpers.issue_builders import issue_payload, listing, transferred_event

if typ.TYPE_CHECKING:
    from issue_crawler.sync.orchestrator import SyncRunReport
    from tests.helpers.fake_github import FakeIssueSource
    from tests.helpers.fake_index import InMemorySearchIndex

RUN_AT = dt.datetime(2024, 5, 1, 8, tzinfo=dt.UTC)


class SyncContext(typ.TypedDict, total=False):
    """Shared state used by issue sync steps."""

    targets: list[RepositoryTarget]
    report: SyncRunReport


@pytest.fixture
def sync_context() -> SyncContext:
    """Return an empty context for one scenario."""
    return {"targets": []}


def _target(context: SyncContext, slug: str) -> RepositoryTarget:
    target = RepositoryTarget.from_slug(slug)
    if target not in context["targets"]:
        context["targets"].append(target)
    return target


@scenario(
    "../issue_sync.feature", "Transferred issues record their previous repository"
)
def test_transferred_issues_record_previous_repository() -> None:
    """Behavioural test: transfer events enrich the stored document."""


@scenario(
    "../issue_sync.feature", "An empty page advances the watermark without writing"
)
def test_empty_page_advances_watermark() -> None:
    """Behavioural test: empty pages are committed without a bulk request."""


@scenario("../issue_sync.feature", "Partial bulk failures still advance the watermark")
def test_partial_bulk_failures_advance_watermark() -> None:
    """Behavioural test: rejected items do not hold the watermark back."""


@scenario("../issue_sync.feature", "One failing repository does not stop the others")
def test_failing_repository_is_isolated() -> None:
    """Behavioural test: failures are reported per repository."""


@given(
    parsers.parse(
        'repository "{slug}" lists open issue {number:d} transferred from "{previous}"'
    )
)
def given_transferred_issue(
    sync_context: SyncContext,
    github: FakeIssueSource,
    slug: str,
    number: int,
    previous: str,
) -> None:
    """Serve one open issue whose timeline holds a transfer event."""
    target = _target(sync_context, slug)
    github.add_listing(target, listing([issue_payload(number)]))
    github.timelines[number] = [[transferred_event(previous)]]


@given(parsers.parse('repository "{slug}" lists an empty page with etag "{etag}"'))
def given_empty_page(
    sync_context: SyncContext, github: FakeIssueSource, slug: str, etag: str
) -> None:
    """Serve a first page with no issues."""
    github.add_listing(_target(sync_context, slug), listing([], etag=etag))


@given(parsers.parse('repository "{slug}" lists {count:d} open issues'))
def given_open_issues(
    sync_context: SyncContext, github: FakeIssueSource, slug: str, count: int
) -> None:
    """Serve ``count`` open issues on a single page."""
    records = [issue_payload(number) for number in range(1, count + 1)]
    github.add_listing(_target(sync_context, slug), listing(records))


@given(parsers.parse('the index rejects document "{doc_id}"'))
def given_rejected_document(search_index: InMemorySearchIndex, doc_id: str) -> None:
    """Make one bulk item fail."""
    search_index.fail_ids[doc_id] = (400, "failed to parse field [created_at]")


@given(parsers.parse('listing repository "{slug}" fails with status {status:d}'))
def given_failing_listing(
    sync_context: SyncContext, github: FakeIssueSource, slug: str, status: int
) -> None:
    """Make the first listing request of a repository fail."""
    target = _target(sync_context, slug)
    github.listing_errors[(target.slug, None)] = GitHubAPIError(
        "request failed", status_code=status
    )


@when(parsers.parse('the repositories are synced in "{mode}" mode'))
def when_synced(
    sync_context: SyncContext,
    github: FakeIssueSource,
    search_index: InMemorySearchIndex,
    mode: str,
) -> None:
    """Run one sync over every repository named by the scenario."""
    worker = IssueSyncWorker(
        github,
        search_index,
        ElasticsearchWatermarkStore(search_index),
        config=IssueSyncConfig(mode=mode),  # type: ignore[arg-type]
        clock=lambda: RUN_AT,
    )
    orchestrator = SyncOrchestrator(worker, max_concurrency=2)
    sync_context["report"] = run_async(
        lambda: orchestrator.run(sync_context["targets"])
    )


@then(
    parsers.parse(
        'document "{doc_id}" in "{index}" records a transfer from "{previous}"'
    )
)
def then_transfer_recorded(
    search_index: InMemorySearchIndex, doc_id: str, index: str, previous: str
) -> None:
    """The stored document carries the relocation fields."""
    document = search_index.documents(index)[doc_id]
    assert document["is_transferred"] is True
    assert document["moved_from"] == previous


@then(parsers.parse('the timestamp watermark for "{slug}" is the run start'))
def then_timestamp_watermark(search_index: InMemorySearchIndex, slug: str) -> None:
    """The run's start instant was saved for the repository."""
    target = RepositoryTarget.from_slug(slug)
    store = ElasticsearchWatermarkStore(search_index)
    saved = run_async(lambda: store.load_timestamp(target.owner, target.name))
    assert saved == TimestampWatermark(
        owner=target.owner, repo=target.name, timestamp=RUN_AT
    )


@then("no bulk request was sent")
def then_no_bulk(search_index: InMemorySearchIndex) -> None:
    """Nothing was written to the index."""
    assert search_index.bulk_calls == []


@then(
    parsers.parse('the page {page:d} watermark for "{slug}" has etag "{etag}"')
)
def then_page_watermark(
    search_index: InMemorySearchIndex, page: int, slug: str, etag: str
) -> None:
    """The page's fingerprint was saved."""
    target = RepositoryTarget.from_slug(slug)
    store = ElasticsearchWatermarkStore(search_index)
    saved = run_async(lambda: store.load_page(target.owner, target.name, page))
    assert saved == PageWatermark(
        owner=target.owner, repo=target.name, page=page, etag=etag, next_url=None
    )


@then(parsers.parse('documents "{doc_ids}" are stored in "{index}"'))
def then_documents_stored(
    search_index: InMemorySearchIndex, doc_ids: str, index: str
) -> None:
    """Exactly the listed documents are in the index."""
    assert sorted(search_index.documents(index)) == sorted(doc_ids.split(","))


@then(parsers.parse('"{succeeded}" succeeded and "{failed}" failed'))
def then_outcomes(sync_context: SyncContext, succeeded: str, failed: str) -> None:
    """The report names each repository's outcome."""
    report = sync_context["report"]
    assert [s.target.slug for s in report.successes] == [succeeded]
    assert [f.target.slug for f in report.failures] == [failed]
