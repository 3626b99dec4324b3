"""Canonical issue documents and the normaliser that builds them."""

from __future__ import annotations

from .errors import IssueNormalizationError
from .models import DecomposedTime, IssueDocument, IssueState, Reactions
from .normalize import decompose_time, normalize_issue

__all__ = [
    "DecomposedTime",
    "IssueDocument",
    "IssueNormalizationError",
    "IssueState",
    "Reactions",
    "decompose_time",
    "normalize_issue",
]
