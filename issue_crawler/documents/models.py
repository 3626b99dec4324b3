"""Canonical issue documents stored in Elasticsearch.

Field names match the existing index mappings, including the camel-cased
``upVote``/``downVote`` reaction counters.
"""

from __future__ import annotations

import typing as typ

import msgspec

IssueState = typ.Literal["open", "closed", "transferred"]


class DecomposedTime(msgspec.Struct, kw_only=True, frozen=True):
    """A timestamp broken into the facets dashboards aggregate on.

    ``weekday_number`` follows the Sunday-is-zero convention and every facet
    is computed in UTC.
    """

    time: str
    weekday: str
    weekday_number: int
    hour_of_day: int


class Reactions(msgspec.Struct, kw_only=True, frozen=True):
    """Reaction counters copied from the GitHub ``reactions`` rollup."""

    total: int | None = None
    upVote: int | None = None  # noqa: N815
    downVote: int | None = None  # noqa: N815
    laugh: int | None = None
    hooray: int | None = None
    confused: int | None = None
    heart: int | None = None
    rocket: int | None = None
    eyes: int | None = None


class IssueDocument(msgspec.Struct, kw_only=True, frozen=True):
    """One GitHub issue (or pull request) as stored in its repository index.

    ``id`` is the GitHub database id and doubles as the Elasticsearch
    document id. ``last_crawled_at`` is the only field that differs when the
    same raw issue is normalised twice.
    """

    id: int
    last_crawled_at: int
    owner: str
    repo: str
    state: str
    title: str | None = None
    number: int | None = None
    url: str | None = None
    locked: bool | None = None
    comments: int | None = None
    created_at: DecomposedTime | None = None
    updated_at: DecomposedTime | None = None
    closed_at: DecomposedTime | None = None
    author_association: str | None = None
    user: str | None = None
    body: str | None = None
    labels: list[str] = msgspec.field(default_factory=list)
    is_pullrequest: bool = False
    assignees: list[str] | None = None
    reactions: Reactions | None = None
    time_to_fix: int | None = None
    is_transferred: bool = False
    moved_from: str | None = None
    moved_to: str | None = None
    transferred_at: DecomposedTime | None = None

    def to_source(self) -> dict[str, typ.Any]:
        """Return the JSON-ready ``_source`` body for the index."""
        return typ.cast("dict[str, typ.Any]", msgspec.to_builtins(self))
