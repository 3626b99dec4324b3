"""Client-side request pacing for the GitHub API.

Requests are paced at a default rate through :class:`aiolimiter.AsyncLimiter`.
When GitHub reports how much quota remains until its reset instant, the
throttle widens its own spacing so the remaining quota lasts until the reset,
and holds all requests when the quota is already spent.
"""

from __future__ import annotations

import asyncio
import collections.abc as cabc
import time
import typing as typ

from aiolimiter import AsyncLimiter

from issue_crawler.common.time import utcnow

if typ.TYPE_CHECKING:
    import datetime as dt

    from .models import RateLimitStatus


class RequestThrottle:
    """Pace requests shared by every repository task using one client."""

    def __init__(
        self,
        *,
        requests_per_second: float = 10.0,
        monotonic: cabc.Callable[[], float] = time.monotonic,
        wall_clock: cabc.Callable[[], dt.datetime] = utcnow,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Create a throttle with a default rate and injectable clocks."""
        if requests_per_second <= 0:
            msg = f"requests_per_second must be positive, got {requests_per_second}"
            raise ValueError(msg)
        self._limiter = AsyncLimiter(requests_per_second, 1.0)
        self._default_interval = 1.0 / requests_per_second
        self._monotonic = monotonic
        self._wall_clock = wall_clock
        self._sleep = sleep
        self._interval = 0.0
        self._next_slot = 0.0

    @property
    def interval(self) -> float:
        """Current widened spacing between requests; zero means default pacing."""
        return self._interval

    async def acquire(self) -> None:
        """Wait until the next request may be sent."""
        now = self._monotonic()
        slot = max(now, self._next_slot)
        self._next_slot = slot + self._interval
        if slot > now:
            await self._sleep(slot - now)
        await self._limiter.acquire()

    def observe(self, status: RateLimitStatus | None) -> None:
        """Widen the request interval to fit the declared quota window."""
        if status is None or status.remaining is None or status.reset_at is None:
            return
        window = (status.reset_at - self._wall_clock()).total_seconds()
        if window <= 0:
            return
        if status.remaining <= 0:
            # Spent quota: hold every request until the reset instant.
            self._next_slot = max(self._next_slot, self._monotonic() + window)
            return
        interval = window / status.remaining
        self._interval = interval if interval > self._default_interval else 0.0
