"""Run repository tasks concurrently and collect per-repository outcomes."""

from __future__ import annotations

import asyncio
import dataclasses
import typing as typ

from issue_crawler.logging import get_logger, log_info
from issue_crawler.observability import ReconcileEventLogger

if typ.TYPE_CHECKING:
    import collections.abc as cabc

    from issue_crawler.reconcile.service import ReconcileResult, TransferReconciler
    from issue_crawler.repositories import RepositoryTarget

    from .worker import IssueSyncWorker, RepositorySyncResult

logger = get_logger(__name__)

DEFAULT_MAX_CONCURRENCY = 4


@dataclasses.dataclass(frozen=True, slots=True)
class RepositorySuccess[T]:
    """A repository task that finished with ``result``."""

    target: RepositoryTarget
    result: T


@dataclasses.dataclass(frozen=True, slots=True)
class RepositoryFailure:
    """A repository task that raised ``error``."""

    target: RepositoryTarget
    error: Exception


type RepositoryOutcome[T] = RepositorySuccess[T] | RepositoryFailure


@dataclasses.dataclass(frozen=True, slots=True)
class RunReport[T]:
    """Outcomes of one fan-out, in target order."""

    outcomes: tuple[RepositoryOutcome[T], ...]

    @property
    def successes(self) -> tuple[RepositorySuccess[T], ...]:
        """Return the repositories that completed."""
        return tuple(o for o in self.outcomes if isinstance(o, RepositorySuccess))

    @property
    def failures(self) -> tuple[RepositoryFailure, ...]:
        """Return the repositories that failed."""
        return tuple(o for o in self.outcomes if isinstance(o, RepositoryFailure))

    @property
    def failed(self) -> bool:
        """Return True when at least one repository failed."""
        return bool(self.failures)


type SyncRunReport = RunReport[RepositorySyncResult]
type ReconcileRunReport = RunReport[ReconcileResult]


def _collect_outcomes[T](
    targets: cabc.Sequence[RepositoryTarget],
    gathered: list[T | BaseException],
) -> RunReport[T]:
    """Pair gathered results with their targets.

    Raises
    ------
    BaseException
        Re-raised immediately for system-level exceptions (e.g., KeyboardInterrupt).

    """
    outcomes: list[RepositoryOutcome[T]] = []
    for target, result in zip(targets, gathered, strict=True):
        if isinstance(result, Exception):
            outcomes.append(RepositoryFailure(target=target, error=result))
        elif isinstance(result, BaseException):
            raise result
        else:
            outcomes.append(RepositorySuccess(target=target, result=result))
    return RunReport(outcomes=tuple(outcomes))


async def fan_out[T](
    targets: cabc.Sequence[RepositoryTarget],
    handler: cabc.Callable[[RepositoryTarget], cabc.Awaitable[T]],
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
) -> RunReport[T]:
    """Run ``handler`` once per target with bounded concurrency.

    Every task runs to completion; one task's failure never cancels another.
    """
    if max_concurrency < 1:
        msg = f"max_concurrency must be at least 1, got {max_concurrency}"
        raise ValueError(msg)
    semaphore = asyncio.Semaphore(max_concurrency)

    async def bounded(target: RepositoryTarget) -> T:
        async with semaphore:
            return await handler(target)

    gathered = await asyncio.gather(
        *(bounded(target) for target in targets), return_exceptions=True
    )
    return _collect_outcomes(targets, gathered)


class SyncOrchestrator:
    """Sync every configured repository through one shared worker."""

    def __init__(
        self,
        worker: IssueSyncWorker,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    ) -> None:
        """Bind the orchestrator to a worker and a concurrency bound."""
        self._worker = worker
        self._max_concurrency = max_concurrency

    async def run(self, targets: cabc.Sequence[RepositoryTarget]) -> SyncRunReport:
        """Sync all ``targets`` and report each repository's outcome."""
        report = await fan_out(
            targets,
            self._worker.sync_repository,
            max_concurrency=self._max_concurrency,
        )
        log_info(
            logger,
            "Sync finished: %d repositories, %d succeeded, %d failed",
            len(report.outcomes),
            len(report.successes),
            len(report.failures),
        )
        return report


class ReconcileOrchestrator:
    """Sweep every configured repository through one shared reconciler."""

    def __init__(
        self,
        reconciler: TransferReconciler,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        event_logger: ReconcileEventLogger | None = None,
    ) -> None:
        """Bind the orchestrator to a reconciler and a concurrency bound."""
        self._reconciler = reconciler
        self._max_concurrency = max_concurrency
        self._event_logger = event_logger or ReconcileEventLogger()

    async def run(
        self, targets: cabc.Sequence[RepositoryTarget]
    ) -> ReconcileRunReport:
        """Sweep all ``targets`` and report each repository's outcome."""
        report = await fan_out(
            targets,
            self._reconciler.sweep,
            max_concurrency=self._max_concurrency,
        )
        for failure in report.failures:
            self._event_logger.log_sweep_failed(
                repo_slug=failure.target.slug,
                index_name=failure.target.index_name,
                error=failure.error,
            )
        return report
