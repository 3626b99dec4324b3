"""Repository targets processed by a crawl run."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses

from issue_crawler.common.slug import parse_repo_slug, repo_slug
from issue_crawler.index.naming import issue_index_name


@dataclasses.dataclass(slots=True, frozen=True)
class RepositoryTarget:
    """One configured repository and the index its issues are written to.

    Private repositories are addressed under the ``private-issues-`` index
    namespace so they can be secured separately from public ones.
    """

    owner: str
    name: str
    private: bool = False

    @property
    def slug(self) -> str:
        """Return ``owner/name``."""
        return repo_slug(self.owner, self.name)

    @property
    def index_name(self) -> str:
        """Return the Elasticsearch index holding this repository's issues."""
        return issue_index_name(self.owner, self.name, private=self.private)

    @classmethod
    def from_slug(cls, slug: str, *, private: bool = False) -> RepositoryTarget:
        """Build a target from an ``owner/name`` slug."""
        owner, name = parse_repo_slug(slug)
        return cls(owner=owner, name=name, private=private)


def parse_targets(
    raw: str | None, *, private: bool = False
) -> tuple[RepositoryTarget, ...]:
    """Parse a comma-separated slug list, skipping empty entries.

    >>> [target.slug for target in parse_targets("a/b,, c/d")]
    ['a/b', 'c/d']

    """
    if not raw:
        return ()
    return tuple(
        RepositoryTarget.from_slug(item, private=private)
        for item in raw.split(",")
        if item.strip()
    )


def unique_targets(
    targets: cabc.Iterable[RepositoryTarget],
) -> tuple[RepositoryTarget, ...]:
    """Drop repeated targets while keeping first-seen order."""
    seen: set[RepositoryTarget] = set()
    ordered: list[RepositoryTarget] = []
    for target in targets:
        if target in seen:
            continue
        seen.add(target)
        ordered.append(target)
    return tuple(ordered)
