"""Map raw GitHub issues onto :class:`IssueDocument`.

Normalisation is a pure function of the raw issue, the repository it was
listed under, and any transfer event the enricher attached. The only input
taken from the environment is the crawl instant, and callers may pin that too
through ``crawled_at``.
"""

from __future__ import annotations

import collections.abc as cabc
import datetime as dt
import typing as typ

from issue_crawler.common.time import epoch_millis, parse_github_datetime, utcnow

from .errors import IssueNormalizationError
from .models import DecomposedTime, IssueDocument, Reactions

if typ.TYPE_CHECKING:
    from issue_crawler.github.models import TransferEvent
    from issue_crawler.repositories import RepositoryTarget

# Python's weekday() is Monday-based; documents count from Sunday.
_WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")

_REACTION_FIELDS: tuple[tuple[str, str], ...] = (
    ("total", "total_count"),
    ("upVote", "+1"),
    ("downVote", "-1"),
    ("laugh", "laugh"),
    ("hooray", "hooray"),
    ("confused", "confused"),
    ("heart", "heart"),
    ("rocket", "rocket"),
    ("eyes", "eyes"),
)


def decompose_time(value: dt.datetime | None) -> DecomposedTime | None:
    """Break an aware datetime into instant, weekday and hour facets (UTC).

    >>> import datetime as dt
    >>> decompose_time(dt.datetime(2022, 1, 1, 10, tzinfo=dt.UTC)).weekday
    'Sat'

    """
    if value is None:
        return None
    moment = value.astimezone(dt.UTC)
    weekday_number = (moment.weekday() + 1) % 7
    return DecomposedTime(
        time=moment.isoformat(),
        weekday=_WEEKDAY_NAMES[weekday_number],
        weekday_number=weekday_number,
        hour_of_day=moment.hour,
    )


def _parse_optional_time(
    raw: cabc.Mapping[str, typ.Any], field: str
) -> dt.datetime | None:
    value = raw.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise IssueNormalizationError.invalid_field(field, value)
    try:
        return parse_github_datetime(value)
    except ValueError as exc:
        raise IssueNormalizationError.invalid_field(field, value) from exc


def _time_to_fix(
    created: dt.datetime | None, closed: dt.datetime | None
) -> int | None:
    if created is None or closed is None:
        return None
    return int((closed - created) / dt.timedelta(milliseconds=1))


def _login(entry: object) -> str | None:
    if isinstance(entry, cabc.Mapping):
        login = entry.get("login")
        return login if isinstance(login, str) else None
    return None


def _label_names(labels: object) -> list[str]:
    if not isinstance(labels, list):
        return []
    names: list[str] = []
    for label in labels:
        # The REST API returns label objects; some payloads carry bare names.
        if isinstance(label, str):
            names.append(label)
        elif isinstance(label, cabc.Mapping) and isinstance(label.get("name"), str):
            names.append(label["name"])
    return names


def _assignee_logins(assignees: object) -> list[str] | None:
    if not isinstance(assignees, list):
        return None
    return [login for entry in assignees if (login := _login(entry)) is not None]


def _reactions(raw: object) -> Reactions | None:
    if not isinstance(raw, cabc.Mapping):
        return None
    counters: dict[str, int | None] = {}
    for field, key in _REACTION_FIELDS:
        value = raw.get(key)
        counters[field] = value if isinstance(value, int) else None
    return Reactions(**counters)


def normalize_issue(
    target: RepositoryTarget,
    raw: cabc.Mapping[str, typ.Any],
    *,
    transfer: TransferEvent | None = None,
    crawled_at: dt.datetime | None = None,
) -> IssueDocument:
    """Build the canonical document for one raw GitHub issue.

    Parameters
    ----------
    target
        Repository the issue was listed under; provides ``owner``/``repo``.
    raw
        Issue object exactly as returned by the issues listing.
    transfer
        Transfer event found in the issue timeline, if any.
    crawled_at
        Crawl instant recorded as ``last_crawled_at``; defaults to now.

    Returns
    -------
    IssueDocument
        The document to index under ``raw["id"]``.

    Raises
    ------
    IssueNormalizationError
        If the issue has no integer ``id`` or carries malformed timestamps.

    """
    if not isinstance(raw, cabc.Mapping):
        raise IssueNormalizationError.not_an_object(raw)
    issue_id = raw.get("id")
    if not isinstance(issue_id, int) or isinstance(issue_id, bool):
        raise IssueNormalizationError.missing_id(raw.get("number"))

    created = _parse_optional_time(raw, "created_at")
    updated = _parse_optional_time(raw, "updated_at")
    closed = _parse_optional_time(raw, "closed_at")

    return IssueDocument(
        id=issue_id,
        last_crawled_at=epoch_millis(crawled_at or utcnow()),
        owner=target.owner,
        repo=target.name,
        state=str(raw.get("state") or ""),
        title=raw.get("title"),
        number=raw.get("number"),
        url=raw.get("url"),
        locked=raw.get("locked"),
        comments=raw.get("comments"),
        created_at=decompose_time(created),
        updated_at=decompose_time(updated),
        closed_at=decompose_time(closed),
        author_association=raw.get("author_association"),
        user=_login(raw.get("user")),
        body=raw.get("body"),
        labels=_label_names(raw.get("labels")),
        is_pullrequest=bool(raw.get("pull_request")),
        assignees=_assignee_logins(raw.get("assignees")),
        reactions=_reactions(raw.get("reactions")),
        time_to_fix=_time_to_fix(created, closed),
        is_transferred=transfer is not None,
        moved_from=transfer.moved_from if transfer is not None else None,
        moved_to=transfer.moved_to if transfer is not None else None,
        transferred_at=(
            decompose_time(transfer.occurred_at) if transfer is not None else None
        ),
    )
