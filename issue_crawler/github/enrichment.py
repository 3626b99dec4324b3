"""Attach relocation facts from issue timelines to raw issues."""

from __future__ import annotations

import asyncio
import contextlib
import typing as typ

from issue_crawler.common.time import parse_github_datetime
from issue_crawler.logging import get_logger, log_warning

from .models import EnrichedIssue, TransferEvent

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from issue_crawler.repositories import RepositoryTarget

    from .client import IssueSource
    from .models import RawIssue

logger = get_logger(__name__)

_TRANSFERRED = "transferred"


def _full_name(container: object) -> str | None:
    if not isinstance(container, dict):
        return None
    name = container.get("full_name")
    return name if isinstance(name, str) and name else None


def transfer_from_event(
    target: RepositoryTarget, event: cabc.Mapping[str, typ.Any]
) -> TransferEvent | None:
    """Return the relocation described by a timeline event, if it is one."""
    if event.get("event") != _TRANSFERRED:
        return None
    source = event.get("source")
    moved_from = _full_name(event.get("previous_repository"))
    if moved_from is None and isinstance(source, dict):
        moved_from = _full_name(source.get("repository"))
    moved_to = _full_name(event.get("repository")) or target.slug
    created_at = event.get("created_at")
    occurred_at = (
        parse_github_datetime(created_at) if isinstance(created_at, str) else None
    )
    return TransferEvent(
        moved_from=moved_from, moved_to=moved_to, occurred_at=occurred_at
    )


class TimelineEnricher:
    """Look up transfer events for the open issues of one page.

    Closed issues and pull requests that are not open cost no request.
    Lookups run concurrently up to ``concurrency`` and the result list keeps
    the input order. A failed lookup is logged and leaves that issue without
    transfer data.
    """

    def __init__(self, client: IssueSource, *, concurrency: int = 8) -> None:
        """Bind the enricher to a client and a concurrency bound."""
        if concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency}"
            raise ValueError(msg)
        self._client = client
        self._concurrency = concurrency

    async def enrich(
        self, target: RepositoryTarget, records: cabc.Sequence[RawIssue]
    ) -> list[EnrichedIssue]:
        """Return one :class:`EnrichedIssue` per record, in input order."""
        semaphore = asyncio.Semaphore(self._concurrency)

        async def enrich_one(raw: RawIssue) -> EnrichedIssue:
            if raw.get("state") != "open" or not isinstance(raw.get("number"), int):
                return EnrichedIssue(raw=raw)
            async with semaphore:
                transfer = await self._lookup_transfer(target, raw["number"])
            return EnrichedIssue(raw=raw, transfer=transfer)

        return list(await asyncio.gather(*(enrich_one(raw) for raw in records)))

    async def _lookup_transfer(
        self, target: RepositoryTarget, number: int
    ) -> TransferEvent | None:
        try:
            async with contextlib.aclosing(
                self._client.iter_timeline(target, number)
            ) as pages:
                async for events in pages:
                    for event in events:
                        transfer = transfer_from_event(target, event)
                        if transfer is not None:
                            return transfer
        except Exception as exc:  # noqa: BLE001
            log_warning(
                logger,
                "[%s#%d] timeline lookup failed, indexing without transfer data: %s",
                target.slug,
                number,
                exc,
            )
        return None
