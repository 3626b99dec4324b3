"""Repository sync: the per-repository worker and the concurrent fan-out."""

from __future__ import annotations

from .errors import RepositorySyncError
from .orchestrator import (
    ReconcileOrchestrator,
    ReconcileRunReport,
    RepositoryFailure,
    RepositoryOutcome,
    RepositorySuccess,
    RunReport,
    SyncOrchestrator,
    SyncRunReport,
    fan_out,
)
from .worker import IssueSyncConfig, IssueSyncWorker, RepositorySyncResult

__all__ = [
    "IssueSyncConfig",
    "IssueSyncWorker",
    "ReconcileOrchestrator",
    "ReconcileRunReport",
    "RepositoryFailure",
    "RepositoryOutcome",
    "RepositorySuccess",
    "RepositorySyncError",
    "RepositorySyncResult",
    "RunReport",
    "SyncOrchestrator",
    "SyncRunReport",
    "fan_out",
]
