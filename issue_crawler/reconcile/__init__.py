"""Reconciliation of indexed issues against GitHub."""

from __future__ import annotations

from .service import (
    DEFAULT_RELOCATION_STATUSES,
    TRANSFERRED_PATCH,
    ReconcileConfig,
    ReconcileResult,
    TransferReconciler,
)

__all__ = [
    "DEFAULT_RELOCATION_STATUSES",
    "TRANSFERRED_PATCH",
    "ReconcileConfig",
    "ReconcileResult",
    "TransferReconciler",
]
