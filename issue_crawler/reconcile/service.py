"""Detect indexed issues that left their repository without notice.

GitHub does not tell the crawler when an issue is transferred or deleted; the
issues listing simply stops returning it, so its document stays ``open``
forever. A sweep picks open documents that have not changed for a while,
asks GitHub for each one without following redirects, and marks the
document ``transferred`` when the answer is one of the relocation statuses.
"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import typing as typ

import httpx

from issue_crawler.common.time import utcnow
from issue_crawler.github.errors import (
    GitHubAPIError,
    GitHubResponseShapeError,
    GitHubRetryExhaustedError,
)
from issue_crawler.github.models import (
    DEFAULT_RELOCATION_STATUSES,
    ProbeOutcome,
    ProbeResult,
)
from issue_crawler.index.errors import ElasticsearchError
from issue_crawler.observability import ReconcileEventLogger

if typ.TYPE_CHECKING:
    from issue_crawler.github.client import IssueSource
    from issue_crawler.index.client import SearchIndex
    from issue_crawler.index.models import SearchHit
    from issue_crawler.repositories import RepositoryTarget

TRANSFERRED_PATCH: cabc.Mapping[str, typ.Any] = {
    "state": "transferred",
    "is_transferred": True,
}

_PROBE_ERRORS = (
    GitHubAPIError,
    GitHubRetryExhaustedError,
    GitHubResponseShapeError,
    httpx.HTTPError,
)


@dataclasses.dataclass(frozen=True, slots=True)
class ReconcileConfig:
    """Knobs for reconciliation sweeps."""

    stale_after: dt.timedelta = dt.timedelta(days=60)
    max_batch: int = 2000
    relocation_statuses: frozenset[int] = DEFAULT_RELOCATION_STATUSES


@dataclasses.dataclass(frozen=True, slots=True)
class ReconcileResult:
    """Counts from one repository sweep."""

    repo_slug: str
    index_name: str
    candidates: int = 0
    transferred: int = 0
    unchanged: int = 0
    errors: int = 0


@dataclasses.dataclass(slots=True)
class _SweepTally:
    transferred: int = 0
    unchanged: int = 0
    errors: int = 0


class TransferReconciler:
    """Sweep one repository index for issues that no longer resolve."""

    def __init__(
        self,
        client: IssueSource,
        index: SearchIndex,
        *,
        config: ReconcileConfig | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
        event_logger: ReconcileEventLogger | None = None,
    ) -> None:
        """Bind the reconciler to the shared clients."""
        self._client = client
        self._index = index
        self._config = config or ReconcileConfig()
        self._clock = clock
        self._event_logger = event_logger or ReconcileEventLogger()

    def candidate_query(self, now: dt.datetime) -> dict[str, typ.Any]:
        """Return the query selecting open documents untouched since the cutoff."""
        cutoff = (now - self._config.stale_after).astimezone(dt.UTC)
        return {
            "bool": {
                "filter": [
                    {"term": {"state": "open"}},
                    {"range": {"updated_at.time": {"lt": cutoff.isoformat()}}},
                ]
            }
        }

    async def sweep(self, target: RepositoryTarget) -> ReconcileResult:
        """Probe each stale open document and transition the relocated ones.

        Probe and update failures are logged and counted; only a failed
        candidate search raises.
        """
        started_at = self._clock()
        hits = await self._index.search(
            target.index_name,
            query=self.candidate_query(started_at),
            size=self._config.max_batch,
            source=["number", "updated_at"],
            sort=[{"updated_at.time": {"order": "asc"}}],
        )
        tally = _SweepTally()
        for hit in hits:
            await self._reconcile_hit(target, hit, tally)

        result = ReconcileResult(
            repo_slug=target.slug,
            index_name=target.index_name,
            candidates=len(hits),
            transferred=tally.transferred,
            unchanged=tally.unchanged,
            errors=tally.errors,
        )
        self._event_logger.log_sweep_completed(
            repo_slug=result.repo_slug,
            index_name=result.index_name,
            candidates=result.candidates,
            transferred=result.transferred,
            unchanged=result.unchanged,
            errors=result.errors,
            duration=self._clock() - started_at,
        )
        return result

    async def _reconcile_hit(
        self, target: RepositoryTarget, hit: SearchHit, tally: _SweepTally
    ) -> None:
        number = hit.source.get("number")
        probe = await self._probe(target, hit.doc_id, number)
        match probe.outcome:
            case ProbeOutcome.ERROR:
                tally.errors += 1
            case ProbeOutcome.RELOCATED:
                await self._relocate(target, hit.doc_id, number, probe, tally)
            case ProbeOutcome.FOUND:
                tally.unchanged += 1
                self._event_logger.log_issue_unchanged(
                    repo_slug=target.slug,
                    doc_id=hit.doc_id,
                    number=number,
                    status_code=probe.status_code,
                )

    async def _relocate(  # noqa: PLR0913
        self,
        target: RepositoryTarget,
        doc_id: str,
        number: int | None,
        probe: ProbeResult,
        tally: _SweepTally,
    ) -> None:
        if not await self._mark_transferred(target, doc_id):
            tally.errors += 1
            return
        tally.transferred += 1
        self._event_logger.log_issue_transferred(
            repo_slug=target.slug,
            index_name=target.index_name,
            doc_id=doc_id,
            number=number,
            status_code=probe.status_code,
        )

    async def _probe(
        self, target: RepositoryTarget, doc_id: str, number: object
    ) -> ProbeResult:
        if not isinstance(number, int) or isinstance(number, bool):
            error = GitHubResponseShapeError.missing("number")
            self._event_logger.log_probe_failed(
                repo_slug=target.slug, doc_id=doc_id, number=None, error=error
            )
            return ProbeResult(outcome=ProbeOutcome.ERROR)
        try:
            return await self._client.probe_issue(
                target, number, relocation_statuses=self._config.relocation_statuses
            )
        except _PROBE_ERRORS as exc:
            self._event_logger.log_probe_failed(
                repo_slug=target.slug, doc_id=doc_id, number=number, error=exc
            )
            status = exc.status_code if isinstance(exc, GitHubAPIError) else None
            return ProbeResult(outcome=ProbeOutcome.ERROR, status_code=status)

    async def _mark_transferred(self, target: RepositoryTarget, doc_id: str) -> bool:
        try:
            await self._index.update(target.index_name, doc_id, TRANSFERRED_PATCH)
        except ElasticsearchError as exc:
            self._event_logger.log_update_failed(
                repo_slug=target.slug,
                index_name=target.index_name,
                doc_id=doc_id,
                error=exc,
            )
            return False
        return True
