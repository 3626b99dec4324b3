"""issue-crawler entrypoint.

Runs one crawl: every configured repository is synchronised into its index,
then (unless skipped) every index is swept for transferred issues.
Configuration comes from the environment; see
:meth:`issue_crawler.config.CrawlerConfig.from_env`.

Exit status is 0 when every repository succeeded, 1 when at least one
repository failed, and 2 when the configuration is unusable.

Run it with ``python -m issue_crawler`` or the ``issue-crawler`` script.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import dataclasses
import os
import typing as typ

from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from issue_crawler.config import CrawlerConfig
from issue_crawler.errors import CrawlerConfigError
from issue_crawler.github.auth import InstallationTokenAuth, build_github_auth
from issue_crawler.github.client import GitHubRestClient, GitHubRestConfig
from issue_crawler.github.throttle import RequestThrottle
from issue_crawler.index.client import ElasticsearchClient
from issue_crawler.logging import (
    configure_logging,
    get_logger,
    log_error,
    log_info,
    log_warning,
)
from issue_crawler.reconcile.service import TransferReconciler
from issue_crawler.sync.orchestrator import ReconcileOrchestrator, SyncOrchestrator
from issue_crawler.sync.worker import IssueSyncConfig, IssueSyncWorker
from issue_crawler.watermarks.elasticsearch import ElasticsearchWatermarkStore
from issue_crawler.watermarks.sql import SqlWatermarkStore, init_watermark_storage

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from issue_crawler.github.client import IssueSource
    from issue_crawler.index.client import SearchIndex
    from issue_crawler.sync.orchestrator import RunReport
    from issue_crawler.watermarks.store import WatermarkStore

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_REPOSITORY_FAILED = 1
EXIT_CONFIG_ERROR = 2


@dataclasses.dataclass(frozen=True, slots=True)
class CrawlerClients:
    """Clients shared by every repository task of a run."""

    github: IssueSource
    index: SearchIndex
    store: WatermarkStore


@contextlib.asynccontextmanager
async def build_clients(
    config: CrawlerConfig,
) -> cabc.AsyncIterator[CrawlerClients]:
    """Construct the shared clients once and close them on exit."""
    async with contextlib.AsyncExitStack() as stack:
        github_auth = build_github_auth(config.auth, api_url=config.github_api_url)
        if isinstance(github_auth, InstallationTokenAuth):
            stack.push_async_callback(github_auth.aclose)
        github = GitHubRestClient(
            GitHubRestConfig(api_url=config.github_api_url),
            auth=github_auth,
            throttle=RequestThrottle(requests_per_second=config.requests_per_second),
        )
        stack.push_async_callback(github.aclose)
        index = ElasticsearchClient(config.elasticsearch)
        stack.push_async_callback(index.aclose)

        store: WatermarkStore
        if config.watermark_database_url is None:
            store = ElasticsearchWatermarkStore(index)
        else:
            engine = create_async_engine(config.watermark_database_url)
            stack.push_async_callback(engine.dispose)
            await init_watermark_storage(engine)
            store = SqlWatermarkStore(
                async_sessionmaker(engine, expire_on_commit=False)
            )

        yield CrawlerClients(github=github, index=index, store=store)


def exit_status(*reports: RunReport[typ.Any] | None) -> int:
    """Return 1 when any report recorded a failed repository, else 0."""
    if any(report is not None and report.failed for report in reports):
        return EXIT_REPOSITORY_FAILED
    return EXIT_OK


def _log_failures(stage: str, report: RunReport[typ.Any]) -> None:
    for failure in report.failures:
        log_error(
            logger,
            "%s failed for %s (index %s): %s",
            stage,
            failure.target.slug,
            failure.target.index_name,
            failure.error,
        )


async def run_crawl(
    config: CrawlerConfig,
    clients: CrawlerClients,
    *,
    skip_reconcile: bool = False,
    reconcile_only: bool = False,
) -> int:
    """Run the sync pass and the reconciliation pass with shared clients."""
    sync_report = None
    if not reconcile_only:
        worker = IssueSyncWorker(
            clients.github,
            clients.index,
            clients.store,
            config=IssueSyncConfig(mode=config.watermark_mode),
        )
        sync_report = await SyncOrchestrator(
            worker, max_concurrency=config.max_concurrency
        ).run(config.targets)
        _log_failures("Sync", sync_report)

    reconcile_report = None
    if not skip_reconcile:
        reconciler = TransferReconciler(
            clients.github, clients.index, config=config.reconcile
        )
        reconcile_report = await ReconcileOrchestrator(
            reconciler, max_concurrency=config.max_concurrency
        ).run(config.targets)
        _log_failures("Reconciliation", reconcile_report)

    return exit_status(sync_report, reconcile_report)


async def _run_with_clients(
    config: CrawlerConfig, *, skip_reconcile: bool, reconcile_only: bool
) -> int:
    async with build_clients(config) as clients:
        return await run_crawl(
            config,
            clients,
            skip_reconcile=skip_reconcile,
            reconcile_only=reconcile_only,
        )


def _parse_args(argv: cabc.Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="issue-crawler",
        description="Sync GitHub issues into Elasticsearch.",
    )
    stages = parser.add_mutually_exclusive_group()
    stages.add_argument(
        "--skip-reconcile",
        action="store_true",
        help="Only sync; do not sweep for transferred issues",
    )
    stages.add_argument(
        "--reconcile-only",
        action="store_true",
        help="Only sweep for transferred issues; do not sync",
    )
    return parser.parse_args(argv)


def main(argv: cabc.Sequence[str] | None = None) -> int:
    """Run one crawl and return the process exit status."""
    args = _parse_args(argv)

    log_level_str = os.environ.get("CRAWLER_LOG_LEVEL", "INFO")
    normalized_level, invalid_level = configure_logging(log_level_str)
    if invalid_level:
        log_warning(
            logger,
            "Invalid CRAWLER_LOG_LEVEL %r, falling back to %s",
            log_level_str,
            normalized_level,
        )

    try:
        config = CrawlerConfig.from_env()
    except CrawlerConfigError as exc:
        log_error(logger, "Invalid configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    log_info(
        logger,
        "Starting crawl of %d repositories (mode=%s, concurrency=%d)",
        len(config.targets),
        config.watermark_mode,
        config.max_concurrency,
    )
    return asyncio.run(
        _run_with_clients(
            config,
            skip_reconcile=args.skip_reconcile,
            reconcile_only=args.reconcile_only,
        )
    )


if __name__ == "__main__":
    raise SystemExit(main())
