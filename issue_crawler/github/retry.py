"""Retry decisions for GitHub requests.

:class:`RetryPolicy` is a pure decision function: given the attempt number
that just failed and the error it raised, it answers either
:class:`RetryAfter` (wait that many seconds and try again) or
:class:`GiveUp`. The client feeds these decisions to a
``tenacity.AsyncRetrying`` loop, which does the waiting.

>>> policy = RetryPolicy(max_attempts=3, base_delay=1.0, max_delay=10.0)
>>> policy.decide(1, GitHubAPIError("boom", status_code=502))
RetryAfter(delay=1.0)
>>> policy.decide(3, GitHubAPIError("boom", status_code=502))
GiveUp(reason='retry ceiling reached', exhausted=True)

"""

from __future__ import annotations

import dataclasses

import httpx

from .errors import GitHubAPIError, GitHubRateLimitError

_HTTP_SERVER_ERROR_THRESHOLD = 500


@dataclasses.dataclass(frozen=True, slots=True)
class RetryAfter:
    """Retry once ``delay`` seconds have passed."""

    delay: float


@dataclasses.dataclass(frozen=True, slots=True)
class GiveUp:
    """Stop retrying.

    ``exhausted`` distinguishes a transient failure that hit the attempt
    ceiling from an error that was never retryable.
    """

    reason: str
    exhausted: bool = False


type RetryDecision = RetryAfter | GiveUp


def is_transient(error: BaseException) -> bool:
    """Return True for failures worth retrying.

    Transport failures, rate-limit rejections and 5xx responses are
    transient; authentication, permission and other 4xx errors are not.
    """
    if isinstance(error, httpx.TransportError | GitHubRateLimitError):
        return True
    if isinstance(error, GitHubAPIError):
        return (
            error.status_code is not None
            and error.status_code >= _HTTP_SERVER_ERROR_THRESHOLD
        )
    return False


@dataclasses.dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Capped exponential backoff with an attempt ceiling.

    Attributes
    ----------
    max_attempts
        Total attempts per request, the first included.
    base_delay
        Wait after the first failed attempt, in seconds; doubles per attempt.
    max_delay
        Cap on the exponential backoff, in seconds.
    max_rate_limit_wait
        Longest server-declared quota wait honoured before giving up.

    """

    max_attempts: int = 5
    base_delay: float = 1.0
    max_delay: float = 60.0
    max_rate_limit_wait: float = 900.0

    def backoff(self, attempt: int) -> float:
        """Return the exponential backoff after failed attempt ``attempt``."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)

    def decide(self, attempt: int, error: BaseException) -> RetryDecision:
        """Decide what to do after attempt ``attempt`` (1-based) failed."""
        if not is_transient(error):
            return GiveUp(reason="not retryable")
        if attempt >= self.max_attempts:
            return GiveUp(reason="retry ceiling reached", exhausted=True)
        if isinstance(error, GitHubRateLimitError) and error.retry_after is not None:
            if error.retry_after > self.max_rate_limit_wait:
                return GiveUp(reason="rate limit reset too far away", exhausted=True)
            return RetryAfter(delay=max(error.retry_after, self.backoff(attempt)))
        return RetryAfter(delay=self.backoff(attempt))
