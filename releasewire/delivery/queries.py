"""Read access to notifications for status and history surfaces."""

from __future__ import annotations

import dataclasses as dc
import typing as typ

from sqlalchemy import select

from releasewire.common.paging import validate_pagination

from .storage import NotificationRecord, NotificationStatus

if typ.TYPE_CHECKING:
    from sqlalchemy import Select

    from releasewire.db import SessionFactory

DEFAULT_PAGE_SIZE = 50


@dc.dataclass(frozen=True, slots=True)
class NotificationQuery:
    """Filters and paging for :meth:`NotificationQueries.list_notifications`.

    Attributes
    ----------
    status
        Restrict to one delivery status.
    event_id
        Restrict to notifications for one event.
    subscription_id
        Restrict to notifications for one subscription.
    exhausted_only
        When ``True``, return only ``error`` rows at or above the attempt
        ceiling given by ``max_attempts``.
    max_attempts
        Attempt ceiling used with ``exhausted_only``.
    limit
        Maximum rows returned; defaults to 50.
    offset
        Rows skipped before the first returned row.

    """

    status: NotificationStatus | None = None
    event_id: int | None = None
    subscription_id: int | None = None
    exhausted_only: bool = False
    max_attempts: int = 3
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0


class NotificationQueries:
    """Read-only notification lookups."""

    def __init__(self, session_factory: SessionFactory) -> None:
        """Store the session factory used for reads."""
        self._session_factory = session_factory

    async def get(self, notification_id: int) -> NotificationRecord | None:
        """Return the notification with ``notification_id`` or ``None``."""
        async with self._session_factory() as session:
            return await session.get(NotificationRecord, notification_id)

    async def list_notifications(
        self, query: NotificationQuery | None = None
    ) -> list[NotificationRecord]:
        """Return notifications newest first, filtered and paged by ``query``.

        Raises
        ------
        NegativePaginationError
            If ``limit`` or ``offset`` is negative.

        """
        options = query or NotificationQuery()
        validate_pagination(options.limit, options.offset)
        async with self._session_factory() as session:
            rows = await session.scalars(_build_query(options))
            return list(rows.all())


def _build_query(options: NotificationQuery) -> Select[tuple[NotificationRecord]]:
    record = NotificationRecord
    stmt = select(record)
    if options.exhausted_only:
        stmt = stmt.where(
            record.status == NotificationStatus.ERROR.value,
            record.attempts >= options.max_attempts,
        )
    elif options.status is not None:
        stmt = stmt.where(record.status == options.status.value)
    if options.event_id is not None:
        stmt = stmt.where(record.event_id == options.event_id)
    if options.subscription_id is not None:
        stmt = stmt.where(record.subscription_id == options.subscription_id)
    return (
        stmt.order_by(record.created_at.desc(), record.id.desc())
        .limit(options.limit)
        .offset(options.offset)
    )
