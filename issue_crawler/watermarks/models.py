"""Watermark variants recorded between crawl runs."""

from __future__ import annotations

import dataclasses
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

type WatermarkMode = typ.Literal["timestamp", "etag"]

WATERMARK_MODES: tuple[WatermarkMode, ...] = ("timestamp", "etag")


@dataclasses.dataclass(frozen=True, slots=True)
class TimestampWatermark:
    """Start instant of the last completed run for one repository.

    The next run passes it to the issues listing as ``since``.
    """

    owner: str
    repo: str
    timestamp: dt.datetime


@dataclasses.dataclass(frozen=True, slots=True)
class PageWatermark:
    """Entity tag and next-page cursor last seen for one listing page."""

    owner: str
    repo: str
    page: int
    etag: str | None
    next_url: str | None


type Watermark = TimestampWatermark | PageWatermark
