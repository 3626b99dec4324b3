"""Unit tests for the GitHub retry policy."""

from __future__ import annotations

import httpx
import pytest

from issue_crawler.github.errors import GitHubAPIError, GitHubRateLimitError
from issue_crawler.github.retry import GiveUp, RetryAfter, RetryPolicy, is_transient


@pytest.mark.parametrize(
    ("error", "expected"),
    [
        (httpx.ConnectError("refused"), True),
        (httpx.ReadTimeout("slow"), True),
        (GitHubAPIError("bad gateway", status_code=502), True),
        (GitHubRateLimitError("slow down", status_code=403), True),
        (GitHubAPIError("unauthorised", status_code=401), False),
        (GitHubAPIError("missing", status_code=404), False),
        (GitHubAPIError("no status"), False),
        (ValueError("unrelated"), False),
    ],
)
def test_is_transient(error: BaseException, *, expected: bool) -> None:
    """Transport errors, rate limits and 5xx are the transient failures."""
    assert is_transient(error) is expected


def test_backoff_doubles_up_to_the_cap() -> None:
    """Backoff grows exponentially from the base delay and is capped."""
    policy = RetryPolicy(base_delay=0.5, max_delay=3.0)

    assert [policy.backoff(attempt) for attempt in range(1, 6)] == [
        0.5,
        1.0,
        2.0,
        3.0,
        3.0,
    ]


def test_non_transient_errors_give_up_without_exhaustion() -> None:
    """A 4xx is never retried and is not reported as exhausted."""
    decision = RetryPolicy().decide(1, GitHubAPIError("nope", status_code=422))

    assert decision == GiveUp(reason="not retryable")


def test_ceiling_reports_exhaustion() -> None:
    """The final permitted attempt failing ends the loop as exhausted."""
    policy = RetryPolicy(max_attempts=2)

    assert policy.decide(1, httpx.ConnectError("x")) == RetryAfter(delay=1.0)
    decision = policy.decide(2, httpx.ConnectError("x"))
    assert isinstance(decision, GiveUp)
    assert decision.exhausted is True


def test_rate_limit_wait_is_at_least_the_declared_delay() -> None:
    """A server-declared wait overrides a shorter backoff."""
    policy = RetryPolicy(base_delay=1.0)
    error = GitHubRateLimitError("slow", status_code=429, retry_after=42.0)

    assert policy.decide(1, error) == RetryAfter(delay=42.0)


def test_rate_limit_backoff_wins_when_longer() -> None:
    """A declared wait shorter than the backoff still waits the backoff."""
    policy = RetryPolicy(base_delay=8.0)
    error = GitHubRateLimitError("slow", status_code=429, retry_after=0.0)

    assert policy.decide(2, error) == RetryAfter(delay=16.0)


def test_distant_rate_limit_reset_gives_up() -> None:
    """A reset further away than the longest tolerated wait is exhausted."""
    policy = RetryPolicy(max_rate_limit_wait=60.0)
    error = GitHubRateLimitError("slow", status_code=403, retry_after=3600.0)

    decision = policy.decide(1, error)

    assert decision == GiveUp(reason="rate limit reset too far away", exhausted=True)
