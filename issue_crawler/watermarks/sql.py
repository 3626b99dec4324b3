"""Watermarks kept in SQL tables through SQLAlchemy's async engine."""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from issue_crawler.common.time import utcnow

from .models import PageWatermark, TimestampWatermark

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Reject naive datetimes and bind aware ones in UTC."""
        if value is None:
            return None
        if value.tzinfo is None:
            msg = "watermark timestamps must be timezone-aware"
            raise ValueError(msg)
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Return stored datetimes as aware UTC values."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


class Base(DeclarativeBase):
    """Declarative base for watermark tables."""


class IssueCrawlWatermark(Base):
    """Timestamp watermark per repository."""

    __tablename__ = "issue_crawl_watermarks"
    __table_args__ = (UniqueConstraint("owner", "repo", name="uq_watermark_repo"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(255))
    repo: Mapped[str] = mapped_column(String(255))
    watermark_at: Mapped[dt.datetime] = mapped_column(UTCDateTime())
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )


class IssueCrawlPageWatermark(Base):
    """Entity tag and cursor per listing page."""

    __tablename__ = "issue_crawl_page_watermarks"
    __table_args__ = (
        UniqueConstraint("owner", "repo", "page", name="uq_page_watermark"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(255))
    repo: Mapped[str] = mapped_column(String(255))
    page: Mapped[int] = mapped_column(Integer)
    etag: Mapped[str | None] = mapped_column(String(255), default=None)
    next_url: Mapped[str | None] = mapped_column(Text, default=None)
    updated_at: Mapped[dt.datetime] = mapped_column(
        UTCDateTime(), default=utcnow, onupdate=utcnow
    )


async def init_watermark_storage(engine: AsyncEngine) -> None:
    """Create the watermark tables if they are absent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


class SqlWatermarkStore:
    """:class:`~issue_crawler.watermarks.store.WatermarkStore` backed by SQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        """Bind the store to a session factory."""
        self._session_factory = session_factory

    async def load_timestamp(
        self, owner: str, repo: str
    ) -> TimestampWatermark | None:
        """Return the stored timestamp watermark, if any."""
        async with self._session_factory() as session:
            row = await session.scalar(
                select(IssueCrawlWatermark).where(
                    IssueCrawlWatermark.owner == owner,
                    IssueCrawlWatermark.repo == repo,
                )
            )
        if row is None:
            return None
        return TimestampWatermark(owner=owner, repo=repo, timestamp=row.watermark_at)

    async def save_timestamp(self, watermark: TimestampWatermark) -> None:
        """Store the watermark unless a newer one is already recorded."""
        async with self._session_factory() as session:
            row = await session.scalar(
                select(IssueCrawlWatermark).where(
                    IssueCrawlWatermark.owner == watermark.owner,
                    IssueCrawlWatermark.repo == watermark.repo,
                )
            )
            if row is None:
                session.add(
                    IssueCrawlWatermark(
                        owner=watermark.owner,
                        repo=watermark.repo,
                        watermark_at=watermark.timestamp,
                    )
                )
            elif row.watermark_at < watermark.timestamp:
                row.watermark_at = watermark.timestamp
            else:
                return
            try:
                await session.commit()
            except IntegrityError:
                # Another writer inserted the row first; retry as an update.
                await session.rollback()
                await self._advance_existing(session, watermark)

    async def _advance_existing(
        self, session: AsyncSession, watermark: TimestampWatermark
    ) -> None:
        row = await session.scalar(
            select(IssueCrawlWatermark).where(
                IssueCrawlWatermark.owner == watermark.owner,
                IssueCrawlWatermark.repo == watermark.repo,
            )
        )
        if row is not None and row.watermark_at < watermark.timestamp:
            row.watermark_at = watermark.timestamp
            await session.commit()

    async def load_page(self, owner: str, repo: str, page: int) -> PageWatermark | None:
        """Return the stored watermark for one listing page, if any."""
        async with self._session_factory() as session:
            row = await session.scalar(
                select(IssueCrawlPageWatermark).where(
                    IssueCrawlPageWatermark.owner == owner,
                    IssueCrawlPageWatermark.repo == repo,
                    IssueCrawlPageWatermark.page == page,
                )
            )
        if row is None:
            return None
        return PageWatermark(
            owner=owner, repo=repo, page=page, etag=row.etag, next_url=row.next_url
        )

    async def save_page(self, watermark: PageWatermark) -> None:
        """Replace the stored watermark for one listing page."""
        async with self._session_factory() as session, session.begin():
            row = await session.scalar(
                select(IssueCrawlPageWatermark).where(
                    IssueCrawlPageWatermark.owner == watermark.owner,
                    IssueCrawlPageWatermark.repo == watermark.repo,
                    IssueCrawlPageWatermark.page == watermark.page,
                )
            )
            if row is None:
                session.add(
                    IssueCrawlPageWatermark(
                        owner=watermark.owner,
                        repo=watermark.repo,
                        page=watermark.page,
                        etag=watermark.etag,
                        next_url=watermark.next_url,
                    )
                )
            else:
                row.etag = watermark.etag
                row.next_url = watermark.next_url
