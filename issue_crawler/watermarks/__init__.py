"""Crawl watermarks and the stores that persist them."""

from __future__ import annotations

from .elasticsearch import ElasticsearchWatermarkStore, page_key, timestamp_key
from .models import (
    WATERMARK_MODES,
    PageWatermark,
    TimestampWatermark,
    Watermark,
    WatermarkMode,
)
from .sql import SqlWatermarkStore, init_watermark_storage
from .store import WatermarkStore

__all__ = [
    "WATERMARK_MODES",
    "ElasticsearchWatermarkStore",
    "PageWatermark",
    "SqlWatermarkStore",
    "TimestampWatermark",
    "Watermark",
    "WatermarkMode",
    "WatermarkStore",
    "init_watermark_storage",
    "page_key",
    "timestamp_key",
]
