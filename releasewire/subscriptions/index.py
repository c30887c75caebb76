"""Resolve the subscriptions registered for a resource and event kind."""

from __future__ import annotations

import typing as typ

import msgspec
from sqlalchemy import select

from releasewire.events.models import EventKind
from releasewire.logging import get_logger, log_warning

from .models import Channel, FilterRule, Subscription, decode_channel, decode_filter
from .storage import SubscriptionRecord

if typ.TYPE_CHECKING:
    from releasewire.db import SessionFactory

logger = get_logger(__name__)


class SubscriptionIndex(typ.Protocol):
    """Interface for resolving subscriptions during fan-out."""

    async def list_for(self, resource_id: int, kind: EventKind) -> list[Subscription]:
        """Return every subscription registered for ``(resource_id, kind)``."""
        ...


class SqlSubscriptionIndex:
    """:class:`SubscriptionIndex` reading the ``subscriptions`` table.

    Stored JSON is decoded here. A filter that cannot be decoded fails open
    (the subscription receives everything) and a channel entry that cannot be
    decoded is skipped while the subscription's other channels still deliver.
    Both cases are logged.
    """

    def __init__(self, session_factory: SessionFactory) -> None:
        """Store the session factory used for subscription lookups."""
        self._session_factory = session_factory

    async def list_for(self, resource_id: int, kind: EventKind) -> list[Subscription]:
        """Return the decoded subscriptions for ``(resource_id, kind)``."""
        stmt = (
            select(SubscriptionRecord)
            .where(
                SubscriptionRecord.resource_id == resource_id,
                SubscriptionRecord.kind == str(kind),
            )
            .order_by(SubscriptionRecord.id)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [to_subscription(row) for row in rows]


def to_subscription(record: SubscriptionRecord) -> Subscription:
    """Decode a stored row into a typed :class:`Subscription`."""
    return Subscription(
        id=record.id,
        subscriber_id=record.subscriber_id,
        resource_id=record.resource_id,
        kind=EventKind(record.kind),
        filter=_decode_filter_or_none(record),
        channels=_decode_channels(record),
    )


def _decode_filter_or_none(record: SubscriptionRecord) -> FilterRule | None:
    try:
        return decode_filter(record.filter)
    except msgspec.ValidationError as exc:
        log_warning(
            logger,
            "[filter.invalid] subscription_id=%d detail=%s action=fail_open",
            record.id,
            exc,
        )
        return None


def _decode_channels(record: SubscriptionRecord) -> tuple[Channel, ...]:
    raw_channels = record.channels
    if not isinstance(raw_channels, list):
        log_warning(
            logger,
            "[channel.invalid] subscription_id=%d detail=channels is not a list",
            record.id,
        )
        return ()

    channels: list[Channel] = []
    for position, raw in enumerate(raw_channels):
        try:
            channels.append(decode_channel(raw))
        except msgspec.ValidationError as exc:
            log_warning(
                logger,
                "[channel.invalid] subscription_id=%d position=%d detail=%s",
                record.id,
                position,
                exc,
            )
    return tuple(channels)
