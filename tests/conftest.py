"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from issue_crawler.watermarks.sql import init_watermark_storage
from tests.helpers.fake_github import FakeIssueSource
from tests.helpers.fake_index import InMemorySearchIndex

if typ.TYPE_CHECKING:
    from pathlib import Path


@pytest_asyncio.fixture
async def session_factory(
    tmp_path: Path,
) -> typ.AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'crawler.db'}")
    try:
        await init_watermark_storage(engine)
        yield async_sessionmaker(engine, expire_on_commit=False)
    finally:
        await engine.dispose()


@pytest.fixture
def github() -> FakeIssueSource:
    """Return an empty fake GitHub source."""
    return FakeIssueSource()


@pytest.fixture
def search_index() -> InMemorySearchIndex:
    """Return an empty in-memory search index."""
    return InMemorySearchIndex()
