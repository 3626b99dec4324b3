"""Typed values exchanged between the GitHub client and the sync pipeline."""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import enum
import typing as typ

type RawIssue = cabc.Mapping[str, typ.Any]


def _optional_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


@dataclasses.dataclass(frozen=True, slots=True)
class RateLimitStatus:
    """Quota figures GitHub reports in ``x-ratelimit-*`` headers."""

    remaining: int | None
    limit: int | None
    reset_at: dt.datetime | None

    @classmethod
    def from_headers(
        cls, headers: cabc.Mapping[str, str]
    ) -> RateLimitStatus | None:
        """Parse the rate-limit headers, or return ``None`` when absent."""
        remaining = _optional_int(headers.get("x-ratelimit-remaining"))
        limit = _optional_int(headers.get("x-ratelimit-limit"))
        reset = _optional_int(headers.get("x-ratelimit-reset"))
        if remaining is None and limit is None and reset is None:
            return None
        reset_at = (
            dt.datetime.fromtimestamp(reset, tz=dt.UTC) if reset is not None else None
        )
        return cls(remaining=remaining, limit=limit, reset_at=reset_at)


@dataclasses.dataclass(frozen=True, slots=True)
class IssueListing:
    """One response of the issues listing endpoint."""

    url: str
    records: tuple[RawIssue, ...]
    next_url: str | None
    etag: str | None
    not_modified: bool = False
    rate_limit: RateLimitStatus | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class IssuePage:
    """A numbered page produced by the paginator.

    A page confirmed unchanged by a conditional request carries no records,
    ``not_modified=True``, and the cursor remembered from the previous run.
    """

    number: int
    records: tuple[RawIssue, ...]
    next_url: str | None
    etag: str | None = None
    not_modified: bool = False
    rate_limit: RateLimitStatus | None = None


@dataclasses.dataclass(frozen=True, slots=True)
class TransferEvent:
    """A ``transferred`` timeline event: the issue moved between repositories."""

    moved_from: str | None
    moved_to: str | None
    occurred_at: dt.datetime | None


@dataclasses.dataclass(frozen=True, slots=True)
class EnrichedIssue:
    """A raw issue plus the auxiliary facts the enricher found for it."""

    raw: RawIssue
    transfer: TransferEvent | None = None


#: Probe statuses meaning an issue left its repository: 301 when GitHub
#: redirects to the new home, 404 when it no longer resolves at all.
DEFAULT_RELOCATION_STATUSES = frozenset({301, 404})


class ProbeOutcome(enum.StrEnum):
    """Result of asking GitHub whether an issue still lives where we saw it."""

    FOUND = "found"
    RELOCATED = "relocated"
    ERROR = "error"


@dataclasses.dataclass(frozen=True, slots=True)
class ProbeResult:
    """Outcome and HTTP status of a single-issue existence probe."""

    outcome: ProbeOutcome
    status_code: int | None = None
