"""Event ledger: deduplicating insert plus a paged audit read path."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from releasewire.common.errors import TimezoneAwareRequiredError
from releasewire.common.paging import validate_pagination
from releasewire.events.errors import EventPersistError
from releasewire.events.storage import EventRecord

if typ.TYPE_CHECKING:
    import datetime as dt

    from sqlalchemy import Select
    from sqlalchemy.ext.asyncio import AsyncSession

    from releasewire.db import SessionFactory
    from releasewire.events.models import EventKind, NewEvent

DEFAULT_PAGE_SIZE = 50


@dc.dataclass(frozen=True, slots=True)
class EventQuery:
    """Filters and paging for :meth:`EventStore.list_events`.

    Attributes
    ----------
    resource_id
        Restrict to one tracked resource.
    kind
        Restrict to one event kind.
    since
        Inclusive lower bound on ``occurred_at``.
    until
        Exclusive upper bound on ``occurred_at``.
    limit
        Maximum rows returned; defaults to 50.
    offset
        Rows skipped before the first returned row.

    """

    resource_id: int | None = None
    kind: EventKind | None = None
    since: dt.datetime | None = None
    until: dt.datetime | None = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0


class EventStore:
    """Append-only ledger of observed events."""

    def __init__(self, session_factory: SessionFactory) -> None:
        """Store the session factory used for ledger operations."""
        self._session_factory = session_factory

    async def insert(self, event: NewEvent) -> int | None:
        """Record ``event`` and return its id, or ``None`` if already recorded.

        The unique ``(resource_id, kind, external_id)`` constraint is the
        dedup primitive: a violation is the normal "already seen" outcome and
        is reported as ``None`` rather than raised. This makes concurrent or
        overlapping pollers safe without cursor locking.

        Raises
        ------
        TimezoneAwareRequiredError
            If ``event.occurred_at`` is naive.
        EventPersistError
            If a conflict was reported but no matching row can be found.

        """
        if event.occurred_at.tzinfo is None:
            raise TimezoneAwareRequiredError.for_occurrence()

        async with self._session_factory() as session:
            record = EventRecord(
                resource_id=event.resource_id,
                kind=str(event.kind),
                external_id=event.external_id,
                payload=dict(event.payload),
                occurred_at=event.occurred_at,
            )
            session.add(record)

            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                existing = await self._load_existing(session, event)
                if existing is None:
                    raise EventPersistError from exc
                return None

            await session.refresh(record)
            return record.id

    async def get(self, event_id: int) -> EventRecord | None:
        """Return the event with ``event_id`` or ``None``."""
        async with self._session_factory() as session:
            return await session.get(EventRecord, event_id)

    async def list_events(self, query: EventQuery | None = None) -> list[EventRecord]:
        """Return events newest first, filtered and paged by ``query``.

        Raises
        ------
        NegativePaginationError
            If ``limit`` or ``offset`` is negative.

        """
        options = query or EventQuery()
        validate_pagination(options.limit, options.offset)
        async with self._session_factory() as session:
            rows = await session.scalars(_build_query(options))
            return list(rows.all())

    async def find(
        self, resource_id: int, kind: EventKind, external_id: str
    ) -> EventRecord | None:
        """Return the ledger row for one external event, or ``None``."""
        async with self._session_factory() as session:
            return await session.scalar(
                _select_one(resource_id, str(kind), external_id)
            )

    @staticmethod
    async def _load_existing(
        session: AsyncSession, event: NewEvent
    ) -> EventRecord | None:
        return await session.scalar(
            _select_one(event.resource_id, str(event.kind), event.external_id)
        )


def _select_one(
    resource_id: int, kind: str, external_id: str
) -> Select[tuple[EventRecord]]:
    return select(EventRecord).where(
        EventRecord.resource_id == resource_id,
        EventRecord.kind == kind,
        EventRecord.external_id == external_id,
    )


def _build_query(options: EventQuery) -> Select[tuple[EventRecord]]:
    stmt = select(EventRecord)
    if options.resource_id is not None:
        stmt = stmt.where(EventRecord.resource_id == options.resource_id)
    if options.kind is not None:
        stmt = stmt.where(EventRecord.kind == str(options.kind))
    if options.since is not None:
        stmt = stmt.where(EventRecord.occurred_at >= options.since)
    if options.until is not None:
        stmt = stmt.where(EventRecord.occurred_at < options.until)
    return (
        stmt.order_by(EventRecord.occurred_at.desc(), EventRecord.id.desc())
        .limit(options.limit)
        .offset(options.offset)
    )
