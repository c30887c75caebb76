"""Key/value store for poll cursors.

The contract is deliberately small and eventually consistent: a lost update
re-detects at most one cycle's items, and the event ledger's uniqueness
constraint absorbs the duplicates.
"""

from __future__ import annotations

import dataclasses
import typing as typ

from sqlalchemy.exc import IntegrityError

from releasewire.common.slug import resource_slug
from releasewire.cursors.storage import PollCursorRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy.ext.asyncio import AsyncSession

    from releasewire.db import SessionFactory
    from releasewire.events.models import EventKind


@dataclasses.dataclass(frozen=True, slots=True)
class PollCursor:
    """Conditional-request state plus the highest external id seen."""

    checked_at: dt.datetime
    etag: str | None = None
    last_modified: str | None = None
    last_seen_external_id: int | None = None


def cursor_key(kind: EventKind, owner: str, name: str) -> str:
    """Return the store key for a resource and event kind.

    Examples
    --------
    >>> from releasewire.events.models import EventKind
    >>> cursor_key(EventKind.RELEASE, "acme", "widget")
    'release:acme/widget'

    """
    return f"{kind}:{resource_slug(owner, name)}"


class PollCursorStore(typ.Protocol):
    """Interface for reading and writing poll cursors."""

    async def get(self, key: str) -> PollCursor | None:
        """Return the cursor stored under ``key`` or ``None``."""
        ...

    async def put(self, key: str, cursor: PollCursor) -> None:
        """Store ``cursor`` under ``key``, replacing any previous value."""
        ...


class SqlPollCursorStore:
    """:class:`PollCursorStore` backed by the ``poll_cursors`` table."""

    def __init__(self, session_factory: SessionFactory) -> None:
        """Store the session factory used for cursor reads and writes."""
        self._session_factory = session_factory

    async def get(self, key: str) -> PollCursor | None:
        """Return the cursor stored under ``key`` or ``None``."""
        async with self._session_factory() as session:
            record = await session.get(PollCursorRecord, key)
            if record is None:
                return None
            return PollCursor(
                checked_at=record.checked_at,
                etag=record.etag,
                last_modified=record.last_modified,
                last_seen_external_id=record.last_seen_external_id,
            )

    async def put(self, key: str, cursor: PollCursor) -> None:
        """Upsert ``cursor`` under ``key``.

        A concurrent first write for the same key surfaces as a primary key
        conflict; the loser retries once as an update so the last writer wins.
        """
        async with self._session_factory() as session:
            await self._upsert(session, key, cursor)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                await self._upsert(session, key, cursor)
                await session.commit()

    @staticmethod
    async def _upsert(session: AsyncSession, key: str, cursor: PollCursor) -> None:
        record = await session.get(PollCursorRecord, key)
        if record is None:
            record = PollCursorRecord(resource_key=key)
            session.add(record)
        record.etag = cursor.etag
        record.last_modified = cursor.last_modified
        record.last_seen_external_id = cursor.last_seen_external_id
        record.checked_at = cursor.checked_at
