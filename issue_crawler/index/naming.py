"""Index names used by the crawler."""

from __future__ import annotations

CACHE_INDEX = "crawler-cache"

_PUBLIC_PREFIX = "issues"
_PRIVATE_PREFIX = "private-issues"


def issue_index_name(owner: str, repo: str, *, private: bool = False) -> str:
    """Return the index for a repository's issue documents.

    Elasticsearch rejects upper-case index names, so the owner and repository
    are lower-cased.

    >>> issue_index_name("Elastic", "Kibana")
    'issues-elastic-kibana'
    >>> issue_index_name("elastic", "infra", private=True)
    'private-issues-elastic-infra'

    """
    prefix = _PRIVATE_PREFIX if private else _PUBLIC_PREFIX
    return f"{prefix}-{owner}-{repo}".lower()
