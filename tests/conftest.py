"""Shared fixtures for unit and feature tests."""

from __future__ import annotations

import typing as typ

import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine

from releasewire.db import init_storage, session_factory_for

if typ.TYPE_CHECKING:
    from pathlib import Path

    from releasewire.db import SessionFactory


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> typ.AsyncIterator[SessionFactory]:
    """Yield a fresh async session factory backed by sqlite."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'releasewire_test.db'}"
    )
    try:
        await init_storage(engine)
        yield session_factory_for(engine)
    finally:
        await engine.dispose()
