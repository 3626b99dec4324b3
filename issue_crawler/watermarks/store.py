"""Storage protocol shared by the watermark backends."""

from __future__ import annotations

import typing as typ

if typ.TYPE_CHECKING:
    from .models import PageWatermark, TimestampWatermark


class WatermarkStore(typ.Protocol):
    """Keyed persistence for crawl watermarks.

    Timestamp saves are monotonic: an older timestamp never replaces a newer
    stored one. Nothing is ever deleted.
    """

    async def load_timestamp(
        self, owner: str, repo: str
    ) -> TimestampWatermark | None:
        """Return the repository's timestamp watermark, if recorded."""
        ...

    async def save_timestamp(self, watermark: TimestampWatermark) -> None:
        """Record ``watermark`` unless a newer one is already stored."""
        ...

    async def load_page(self, owner: str, repo: str, page: int) -> PageWatermark | None:
        """Return the watermark of one listing page, if recorded."""
        ...

    async def save_page(self, watermark: PageWatermark) -> None:
        """Record the page watermark, replacing any previous one."""
        ...
