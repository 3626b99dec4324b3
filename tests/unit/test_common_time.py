"""Unit tests for timestamp helpers."""

from __future__ import annotations

import datetime as dt

import pytest

from issue_crawler.common.time import epoch_millis, parse_github_datetime


def test_parse_github_datetime_accepts_zulu_suffix() -> None:
    """GitHub's trailing Z is read as UTC."""
    assert parse_github_datetime("2022-01-01T10:00:00Z") == dt.datetime(
        2022, 1, 1, 10, tzinfo=dt.UTC
    )


def test_parse_github_datetime_converts_offsets_to_utc() -> None:
    """Offsets are normalised to UTC."""
    parsed = parse_github_datetime("2022-01-01T12:00:00+02:00")

    assert parsed == dt.datetime(2022, 1, 1, 10, tzinfo=dt.UTC)
    assert parsed.tzinfo is dt.UTC


def test_parse_github_datetime_rejects_naive_values() -> None:
    """Timestamps without a zone are refused."""
    with pytest.raises(ValueError, match="missing timezone"):
        parse_github_datetime("2022-01-01T10:00:00")


def test_epoch_millis() -> None:
    """epoch_millis counts milliseconds since the epoch."""
    moment = dt.datetime(1970, 1, 1, 0, 0, 1, 500000, tzinfo=dt.UTC)

    assert epoch_millis(moment) == 1500
    with pytest.raises(ValueError, match="timezone-aware"):
        epoch_millis(dt.datetime(2022, 1, 1))  # noqa: DTZ001
