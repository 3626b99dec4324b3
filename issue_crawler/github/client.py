"""GitHub REST client used by the paginator, enricher and reconciler."""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import dataclasses
import datetime as dt
import functools
import typing as typ

import httpx
import msgspec
from tenacity import AsyncRetrying, RetryCallState

from issue_crawler.common.time import utcnow
from issue_crawler.logging import get_logger, log_warning

from .errors import (
    GitHubAPIError,
    GitHubRateLimitError,
    GitHubResponseShapeError,
    GitHubRetryExhaustedError,
)
from .models import (
    DEFAULT_RELOCATION_STATUSES,
    IssueListing,
    ProbeOutcome,
    ProbeResult,
    RateLimitStatus,
)
from .retry import GiveUp, RetryAfter, RetryDecision, RetryPolicy
from .throttle import RequestThrottle

if typ.TYPE_CHECKING:
    from issue_crawler.repositories import RepositoryTarget

logger = get_logger(__name__)

_HTTP_OK_MIN = 200
_HTTP_OK_MAX = 299
_HTTP_NOT_MODIFIED = 304
_HTTP_FORBIDDEN = 403
_HTTP_TOO_MANY_REQUESTS = 429


class IssueSource(typ.Protocol):
    """Interface the sync pipeline and reconciler need from GitHub."""

    async def list_issues(
        self,
        target: RepositoryTarget,
        *,
        url: str | None = None,
        since: dt.datetime | None = None,
        etag: str | None = None,
    ) -> IssueListing:
        """Fetch one page of the repository's issues listing."""
        ...

    def iter_timeline(
        self, target: RepositoryTarget, number: int
    ) -> cabc.AsyncIterator[list[dict[str, typ.Any]]]:
        """Yield the issue's timeline events one page at a time."""
        ...

    async def probe_issue(
        self,
        target: RepositoryTarget,
        number: int,
        *,
        relocation_statuses: frozenset[int] = DEFAULT_RELOCATION_STATUSES,
    ) -> ProbeResult:
        """Report whether the issue still resolves at its recorded location."""
        ...


@dataclasses.dataclass(frozen=True, slots=True)
class GitHubRestConfig:
    """Configuration for the GitHub REST client."""

    api_url: str = "https://api.github.com"
    timeout_s: float = 30.0
    user_agent: str = "issue-crawler/0.1"
    api_version: str = "2022-11-28"
    per_page: int = 100


def _retry_after_seconds(response: httpx.Response, now: dt.datetime) -> float | None:
    retry_after = response.headers.get("retry-after")
    if retry_after is not None:
        try:
            return max(float(retry_after), 0.0)
        except ValueError:
            return None
    status = RateLimitStatus.from_headers(response.headers)
    if status is None or status.reset_at is None:
        return None
    return max((status.reset_at - now).total_seconds(), 0.0)


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == _HTTP_TOO_MANY_REQUESTS:
        return True
    if response.status_code != _HTTP_FORBIDDEN:
        return False
    if response.headers.get("x-ratelimit-remaining") == "0":
        return True
    # Secondary limits answer 403 with a Retry-After header.
    return "retry-after" in response.headers


def _raise_for_status(
    response: httpx.Response,
    *,
    allowed: frozenset[int],
    now: dt.datetime,
) -> None:
    status = response.status_code
    if _HTTP_OK_MIN <= status <= _HTTP_OK_MAX or status in allowed:
        return
    url = str(response.request.url)
    if _is_rate_limited(response):
        raise GitHubRateLimitError.quota_exhausted(
            status, url, _retry_after_seconds(response, now)
        )
    raise GitHubAPIError.http_error(status, url)


def _next_link(response: httpx.Response) -> str | None:
    next_link = response.links.get("next")
    if not next_link:
        return None
    url = next_link.get("url")
    return url or None


def _decode_list(response: httpx.Response) -> list[typ.Any]:
    url = str(response.request.url)
    try:
        payload = msgspec.json.decode(response.content)
    except msgspec.DecodeError as exc:
        raise GitHubResponseShapeError.unexpected(url, "JSON") from exc
    if not isinstance(payload, list):
        raise GitHubResponseShapeError.unexpected(url, "a JSON array")
    return payload


class GitHubRestClient:
    """GitHub REST v3 implementation of :class:`IssueSource`.

    One instance is shared by every repository task. Each request passes
    through the shared :class:`RequestThrottle` and is retried according to
    the :class:`RetryPolicy`; transient failures that outlive the policy
    surface as :class:`GitHubRetryExhaustedError`.
    """

    def __init__(  # noqa: PLR0913
        self,
        config: GitHubRestConfig | None = None,
        *,
        auth: httpx.Auth | None = None,
        http_client: httpx.AsyncClient | None = None,
        retry_policy: RetryPolicy | None = None,
        throttle: RequestThrottle | None = None,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Create a client; an owned ``httpx.AsyncClient`` is built if omitted."""
        self._config = config or GitHubRestConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=self._config.api_url,
            timeout=self._config.timeout_s,
            auth=auth,
            headers={
                "Accept": "application/vnd.github+json",
                "User-Agent": self._config.user_agent,
                "X-GitHub-Api-Version": self._config.api_version,
            },
        )
        self._retry_policy = retry_policy or RetryPolicy()
        self._throttle = throttle or RequestThrottle()
        self._sleep = sleep
        self._clock = clock

    async def aclose(self) -> None:
        """Close any owned HTTP resources."""
        if self._owns_client:
            await self._client.aclose()

    def _issues_path(self, target: RepositoryTarget) -> str:
        return f"/repos/{target.owner}/{target.name}/issues"

    async def list_issues(
        self,
        target: RepositoryTarget,
        *,
        url: str | None = None,
        since: dt.datetime | None = None,
        etag: str | None = None,
    ) -> IssueListing:
        """Fetch one listing page, oldest-created first.

        ``url`` is a ``rel="next"`` link from a previous page; when omitted the
        first page is requested with ``since`` as the changed-since filter.
        With ``etag`` the request is conditional and a ``304`` comes back as
        a listing with ``not_modified=True`` and no records.
        """
        params: dict[str, str | int] | None = None
        if url is None:
            url = self._issues_path(target)
            params = {
                "per_page": self._config.per_page,
                "state": "all",
                "sort": "created",
                "direction": "asc",
            }
            if since is not None:
                params["since"] = since.astimezone(dt.UTC).isoformat()
        headers = {"If-None-Match": etag} if etag else None

        response = await self._send(
            "GET",
            url,
            params=params,
            headers=headers,
            allowed=frozenset({_HTTP_NOT_MODIFIED}) if etag else frozenset(),
        )
        rate_limit = RateLimitStatus.from_headers(response.headers)
        request_url = str(response.request.url)
        if response.status_code == _HTTP_NOT_MODIFIED:
            return IssueListing(
                url=request_url,
                records=(),
                next_url=None,
                etag=etag,
                not_modified=True,
                rate_limit=rate_limit,
            )

        records = _decode_list(response)
        if not all(isinstance(record, dict) for record in records):
            raise GitHubResponseShapeError.unexpected(request_url, "a list of issues")
        return IssueListing(
            url=request_url,
            records=tuple(records),
            next_url=_next_link(response),
            etag=response.headers.get("etag"),
            rate_limit=rate_limit,
        )

    async def iter_timeline(
        self, target: RepositoryTarget, number: int
    ) -> typ.AsyncIterator[list[dict[str, typ.Any]]]:
        """Yield timeline event pages for one issue until none remain."""
        url: str | None = f"{self._issues_path(target)}/{number}/timeline"
        params: dict[str, str | int] | None = {"per_page": self._config.per_page}
        while url is not None:
            response = await self._send("GET", url, params=params)
            yield [event for event in _decode_list(response) if isinstance(event, dict)]
            url = _next_link(response)
            params = None

    async def probe_issue(
        self,
        target: RepositoryTarget,
        number: int,
        *,
        relocation_statuses: frozenset[int] = DEFAULT_RELOCATION_STATUSES,
    ) -> ProbeResult:
        """Request the issue without following redirects.

        A status in ``relocation_statuses`` means the issue left the
        repository; any other success means it is still here. Remaining
        failures raise.
        """
        response = await self._send(
            "GET",
            f"{self._issues_path(target)}/{number}",
            allowed=relocation_statuses,
        )
        status = response.status_code
        if status in relocation_statuses:
            return ProbeResult(outcome=ProbeOutcome.RELOCATED, status_code=status)
        return ProbeResult(outcome=ProbeOutcome.FOUND, status_code=status)

    async def _attempt(
        self,
        method: str,
        url: str,
        params: cabc.Mapping[str, str | int] | None,
        headers: cabc.Mapping[str, str] | None,
        allowed: frozenset[int],
    ) -> httpx.Response:
        await self._throttle.acquire()
        response = await self._client.request(
            method, url, params=params, headers=headers
        )
        self._throttle.observe(RateLimitStatus.from_headers(response.headers))
        _raise_for_status(response, allowed=allowed, now=self._clock())
        return response

    async def _send(
        self,
        method: str,
        url: str,
        *,
        params: cabc.Mapping[str, str | int] | None = None,
        headers: cabc.Mapping[str, str] | None = None,
        allowed: frozenset[int] = frozenset(),
    ) -> httpx.Response:
        """Send a request through the throttle, retrying transient failures."""
        hooks = _PolicyHooks(self._retry_policy)
        retrying = AsyncRetrying(
            sleep=self._sleep,
            retry=hooks.retry,
            stop=hooks.stop,
            wait=hooks.wait,
            before_sleep=functools.partial(_log_retry, method, url),
            retry_error_callback=functools.partial(_raise_exhausted, url),
        )
        return await retrying(self._attempt, method, url, params, headers, allowed)


@dataclasses.dataclass(frozen=True, slots=True)
class _PolicyHooks:
    """Drive tenacity's ``retry``, ``stop`` and ``wait`` from a RetryPolicy."""

    policy: RetryPolicy

    def decision(self, state: RetryCallState) -> RetryDecision | None:
        outcome = state.outcome
        if outcome is None or not outcome.failed:
            return None
        error = outcome.exception()
        if error is None:
            return None
        return self.policy.decide(state.attempt_number, error)

    def retry(self, state: RetryCallState) -> bool:
        # An exhausted give-up still counts as retryable so ``stop`` ends it
        # through ``retry_error_callback``; other give-ups re-raise as is.
        match self.decision(state):
            case RetryAfter() | GiveUp(exhausted=True):
                return True
            case _:
                return False

    def stop(self, state: RetryCallState) -> bool:
        return isinstance(self.decision(state), GiveUp)

    def wait(self, state: RetryCallState) -> float:
        match self.decision(state):
            case RetryAfter(delay=delay):
                return delay
            case _:
                return 0.0


def _log_retry(method: str, url: str, state: RetryCallState) -> None:
    log_warning(
        logger,
        "GitHub request %s %s failed (attempt %d): %s; retrying in %.1fs",
        method,
        url,
        state.attempt_number,
        state.outcome.exception() if state.outcome is not None else None,
        state.next_action.sleep if state.next_action is not None else 0.0,
    )


def _raise_exhausted(url: str, state: RetryCallState) -> typ.NoReturn:
    cause = state.outcome.exception() if state.outcome is not None else None
    raise GitHubRetryExhaustedError(url, state.attempt_number) from cause
