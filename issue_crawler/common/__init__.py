"""Small helpers shared across the crawler packages."""

from __future__ import annotations

from .slug import parse_repo_slug, repo_slug
from .time import epoch_millis, parse_github_datetime, utcnow

__all__ = [
    "epoch_millis",
    "parse_github_datetime",
    "parse_repo_slug",
    "repo_slug",
    "utcnow",
]
