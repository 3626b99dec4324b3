"""``owner/name`` repository identifiers as written in crawler settings."""

from __future__ import annotations

import re

# GitHub logins are alphanumeric with inner hyphens; repository names also
# allow dots and underscores.
_SLUG_RE = re.compile(r"^(?P<owner>[A-Za-z0-9][A-Za-z0-9-]*)/(?P<name>[\w.-]+)$")


def repo_slug(owner: str, name: str) -> str:
    """Join an owner and repository name.

    >>> repo_slug("elastic", "kibana")
    'elastic/kibana'

    """
    return f"{owner}/{name}"


def parse_repo_slug(slug: str) -> tuple[str, str]:
    """Return ``(owner, name)`` for a slug, ignoring surrounding whitespace.

    >>> parse_repo_slug(" elastic/kibana ")
    ('elastic', 'kibana')

    Raises
    ------
    ValueError
        If ``slug`` does not name exactly one repository.

    """
    match = _SLUG_RE.match(slug.strip())
    if match is None:
        msg = f"Invalid repository slug {slug!r}: expected owner/name"
        raise ValueError(msg)
    return match["owner"], match["name"]
