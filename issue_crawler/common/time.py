"""Time helpers for GitHub timestamps and index fields."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp."""
    return dt.datetime.now(dt.UTC)


def parse_github_datetime(value: str) -> dt.datetime:
    """Parse a GitHub ISO-8601 timestamp into an aware UTC datetime.

    Raises
    ------
    ValueError
        If the value is not ISO-8601 or carries no timezone.

    """
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = f"GitHub datetime missing timezone: {value}"
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)


def epoch_millis(value: dt.datetime) -> int:
    """Return milliseconds since the Unix epoch for an aware datetime."""
    if value.tzinfo is None:
        msg = "epoch_millis requires a timezone-aware datetime"
        raise ValueError(msg)
    return int(value.timestamp() * 1000)
