"""Declarative base, column types and schema helpers for releasewire.

Every table lives on a single :class:`Base` so the poll, event, subscription
and notification rows can reference each other with foreign keys and be
created together by :func:`init_storage`.
"""

from __future__ import annotations

import datetime as dt
import typing as typ

from sqlalchemy import DateTime
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator

from releasewire.common.errors import TimezoneAwareRequiredError

if typ.TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.ext.asyncio import AsyncEngine

type SessionFactory = async_sessionmaker[AsyncSession]


class Base(DeclarativeBase):
    """Base declarative class for releasewire models."""


class UTCDateTime(TypeDecorator[dt.datetime]):
    """DateTime wrapper that round-trips UTC tzinfo even on SQLite."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Force bound datetime values to UTC with tzinfo."""
        if value is None:
            return None
        if value.tzinfo is None:
            raise TimezoneAwareRequiredError.for_column()
        return value.astimezone(dt.UTC)

    def process_result_value(
        self, value: dt.datetime | None, dialect: Dialect
    ) -> dt.datetime | None:
        """Ensure result datetimes are UTC and timezone aware."""
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=dt.UTC)
        return value.astimezone(dt.UTC)


def session_factory_for(engine: AsyncEngine) -> SessionFactory:
    """Build the session factory used throughout the pipeline."""
    return async_sessionmaker(engine, expire_on_commit=False)


async def init_storage(engine: AsyncEngine) -> None:
    """Create every releasewire table that is absent."""
    # Model modules register their tables on Base.metadata at import time.
    from releasewire.cursors import storage as _cursors  # noqa: F401
    from releasewire.delivery import storage as _delivery  # noqa: F401
    from releasewire.events import storage as _events  # noqa: F401
    from releasewire.registry import storage as _registry  # noqa: F401
    from releasewire.subscriptions import storage as _subscriptions  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
