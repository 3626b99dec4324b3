"""Errors reported by repository sync runs."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from issue_crawler.repositories import RepositoryTarget


class RepositorySyncError(RuntimeError):
    """Raised when a repository run aborts; the cause holds the failure.

    The error records where the run stopped so failure reports can name the
    repository, its index, and the page being processed.
    """

    def __init__(self, repo_slug: str, index_name: str, page: int | None) -> None:
        """Record the repository, index and page of the failed run."""
        self.repo_slug = repo_slug
        self.index_name = index_name
        self.page = page
        location = f" at page {page}" if page is not None else ""
        super().__init__(f"sync of {repo_slug} into {index_name} failed{location}")

    @classmethod
    def for_target(
        cls, target: RepositoryTarget, *, page: int | None
    ) -> RepositorySyncError:
        """Return an error describing a failed run for ``target``."""
        return cls(target.slug, target.index_name, page)
