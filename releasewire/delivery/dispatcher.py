"""Notification fan-out, delivery state machine and retry sweep.

State machine for one notification::

    queued --send ok--> sent            (terminal; attempts += 1, sent_at)
    queued --send fail--> error         (attempts += 1, last_error, last_error_at)
    error  --retry ok--> sent
    error  --retry fail--> error        (while attempts < max_attempts)
    error with attempts >= max_attempts is exhausted and never retried.
    queued older than the cool-down was stranded by an interrupted fan-out
    and is picked up by the retry sweep like an error row.

Transitions are single guarded ``UPDATE`` statements, so a ``sent`` row can
never move again and an exhausted row can never gain another attempt.
"""

from __future__ import annotations

import dataclasses as dc
import typing as typ

import msgspec
from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from releasewire.common.time import require_aware, utcnow
from releasewire.events.storage import EventRecord
from releasewire.filters import FilterEngine
from releasewire.observability import PipelineEventLogger
from releasewire.registry.models import to_tracked_resource
from releasewire.registry.storage import TrackedResourceRecord
from releasewire.subscriptions.models import (
    channel_type,
    decode_channel,
    encode_channel,
)

from .config import DeliveryConfig
from .errors import ChannelDeliveryError
from .message import build_message
from .storage import NotificationRecord, NotificationStatus, make_destination_key

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from releasewire.db import SessionFactory
    from releasewire.events.models import RecordedEvent
    from releasewire.registry.models import TrackedResource
    from releasewire.subscriptions.index import SubscriptionIndex
    from releasewire.subscriptions.models import Channel, Subscription

    from .channels import ChannelSink
    from .message import NotificationMessage


class NotificationPersistError(RuntimeError):
    """Raised when a notification conflict cannot be matched to a row."""

    def __init__(self) -> None:
        """Include a deterministic error message for logging."""
        super().__init__("expected existing notification after rollback")


@dc.dataclass(slots=True)
class FanOutResult:
    """Counters for distributing one event to its subscriptions."""

    event_id: int
    subscriptions_matched: int = 0
    subscriptions_suppressed: int = 0
    notifications_created: int = 0
    delivered: int = 0
    failed: int = 0


@dc.dataclass(slots=True)
class SweepResult:
    """Counters for one retry sweep."""

    attempted: int = 0
    sent: int = 0
    failed: int = 0
    exhausted: int = 0


@dc.dataclass(frozen=True, slots=True)
class DispatcherDependencies:
    """Collaborators the dispatcher needs for every operation.

    Attributes
    ----------
    session_factory
        Async session factory for notification rows.
    subscriptions
        Resolves subscriptions during fan-out.
    sink
        Delivers rendered messages, usually a
        :class:`~releasewire.delivery.channels.ChannelRouter`.

    """

    session_factory: SessionFactory
    subscriptions: SubscriptionIndex
    sink: ChannelSink


class Dispatcher:
    """Create, deliver and retry notifications."""

    def __init__(
        self,
        dependencies: DispatcherDependencies,
        *,
        config: DeliveryConfig | None = None,
        filters: FilterEngine | None = None,
        event_logger: PipelineEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the dispatcher with its collaborators and retry policy."""
        self._session_factory = dependencies.session_factory
        self._subscriptions = dependencies.subscriptions
        self._sink = dependencies.sink
        self._config = config or DeliveryConfig()
        self._filters = filters or FilterEngine()
        self._event_logger = event_logger or PipelineEventLogger()
        self._clock = clock

    async def fan_out(
        self, event: RecordedEvent, resource: TrackedResource
    ) -> FanOutResult:
        """Deliver ``event`` to every matching subscription channel.

        Each surviving (subscription, channel) pair gets a ``queued``
        notification before delivery is attempted. Pairs that already have a
        notification for this event are skipped, so calling this twice for
        the same event sends nothing new.
        """
        result = FanOutResult(event_id=event.id)
        subscriptions = await self._subscriptions.list_for(resource.id, event.kind)
        message = build_message(resource, event.kind, event.payload)

        for subscription in subscriptions:
            if not self._passes_filter(subscription, event):
                result.subscriptions_suppressed += 1
                continue
            result.subscriptions_matched += 1
            for channel in subscription.channels:
                notification_id = await self._create_notification(
                    event.id, subscription.id, channel
                )
                if notification_id is None:
                    continue
                result.notifications_created += 1
                if await self._attempt(notification_id, channel, message):
                    result.delivered += 1
                else:
                    result.failed += 1

        return result

    async def retry_sweep(self, now: dt.datetime | None = None) -> SweepResult:
        """Retry failed notifications whose cool-down has elapsed.

        Selects notifications below the attempt ceiling that are either
        ``error`` with ``last_error_at`` older than the cool-down or still
        ``queued`` after the cool-down, oldest failures first, up to
        ``sweep_limit``. A database error on one row is logged and the sweep
        moves on to the next. Notifications that fail on their last allowed
        attempt are counted as exhausted and stay ``error`` permanently.
        """
        at = require_aware(now, field="now") if now is not None else self._clock()
        result = SweepResult()
        for notification, event, resource in await self._load_retryable(at):
            result.attempted += 1
            message = build_message(
                to_tracked_resource(resource), event.kind, event.payload
            )
            try:
                delivered = await self._retry_one(notification, message, at)
            except SQLAlchemyError as exc:
                # Left as it was; a later sweep selects the row again.
                result.failed += 1
                self._event_logger.log_notification_failed(
                    notification_id=notification.id,
                    channel=notification.channel,
                    attempts=notification.attempts,
                    error=exc,
                )
                continue
            if delivered:
                result.sent += 1
                continue
            result.failed += 1
            if notification.attempts + 1 >= self._config.max_attempts:
                result.exhausted += 1

        self._event_logger.log_sweep_completed(
            attempted=result.attempted,
            sent=result.sent,
            failed=result.failed,
            exhausted=result.exhausted,
        )
        return result

    def _passes_filter(self, subscription: Subscription, event: RecordedEvent) -> bool:
        decision = self._filters.evaluate(
            subscription.filter, event.payload, kind=event.kind
        )
        for detail in decision.config_errors:
            self._event_logger.log_filter_pattern_invalid(
                subscription_id=subscription.id, detail=detail
            )
        return decision.passed

    async def _load_retryable(
        self, at: dt.datetime
    ) -> list[tuple[NotificationRecord, EventRecord, TrackedResourceRecord]]:
        cutoff = at - self._config.retry_cooldown
        stmt = (
            select(NotificationRecord, EventRecord, TrackedResourceRecord)
            .join(EventRecord, NotificationRecord.event_id == EventRecord.id)
            .join(
                TrackedResourceRecord,
                EventRecord.resource_id == TrackedResourceRecord.id,
            )
            .where(
                NotificationRecord.attempts < self._config.max_attempts,
                or_(
                    and_(
                        NotificationRecord.status == NotificationStatus.ERROR.value,
                        or_(
                            NotificationRecord.last_error_at.is_(None),
                            NotificationRecord.last_error_at < cutoff,
                        ),
                    ),
                    and_(
                        NotificationRecord.status == NotificationStatus.QUEUED.value,
                        NotificationRecord.created_at < cutoff,
                    ),
                ),
            )
            .order_by(
                NotificationRecord.last_error_at.asc().nulls_first(),
                NotificationRecord.id,
            )
            .limit(self._config.sweep_limit)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).tuples().all()
        return list(rows)

    async def _retry_one(
        self,
        notification: NotificationRecord,
        message: NotificationMessage,
        at: dt.datetime,
    ) -> bool:
        try:
            channel = decode_channel(notification.destination)
        except msgspec.ValidationError as exc:
            error = ChannelDeliveryError.invalid_destination(
                notification.channel, str(exc)
            )
            await self._record_failure(
                notification.id, notification.channel, error, at
            )
            return False
        return await self._attempt(notification.id, channel, message, at=at)

    async def _create_notification(
        self, event_id: int, subscription_id: int, channel: Channel
    ) -> int | None:
        destination = encode_channel(channel)
        destination_key = make_destination_key(destination)
        async with self._session_factory() as session:
            record = NotificationRecord(
                event_id=event_id,
                subscription_id=subscription_id,
                channel=channel_type(channel),
                destination=destination,
                destination_key=destination_key,
                status=NotificationStatus.QUEUED.value,
                attempts=0,
            )
            session.add(record)
            try:
                await session.flush()
                notification_id = record.id
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                existing = await session.scalar(
                    select(NotificationRecord.id).where(
                        NotificationRecord.event_id == event_id,
                        NotificationRecord.subscription_id == subscription_id,
                        NotificationRecord.destination_key == destination_key,
                    )
                )
                if existing is None:
                    raise NotificationPersistError from exc
                return None
            return notification_id

    async def _attempt(
        self,
        notification_id: int,
        channel: Channel,
        message: NotificationMessage,
        *,
        at: dt.datetime | None = None,
    ) -> bool:
        try:
            await self._sink.send(channel, message)
        except Exception as exc:  # noqa: BLE001 - recorded on the notification
            error = (
                exc
                if isinstance(exc, ChannelDeliveryError)
                else ChannelDeliveryError.unexpected(channel_type(channel), exc)
            )
            await self._record_failure(
                notification_id, channel_type(channel), error, at or self._clock()
            )
            return False

        attempts = await self._transition(
            notification_id,
            status=NotificationStatus.SENT,
            values={"sent_at": at or self._clock()},
        )
        self._event_logger.log_notification_sent(
            notification_id=notification_id,
            channel=channel_type(channel),
            attempts=attempts or 0,
        )
        return True

    async def _record_failure(
        self,
        notification_id: int,
        channel: str,
        error: ChannelDeliveryError,
        at: dt.datetime,
    ) -> None:
        attempts = await self._transition(
            notification_id,
            status=NotificationStatus.ERROR,
            values={"last_error": str(error), "last_error_at": at},
        )
        self._event_logger.log_notification_failed(
            notification_id=notification_id,
            channel=channel,
            attempts=attempts or 0,
            error=error,
        )

    async def _transition(
        self,
        notification_id: int,
        *,
        status: NotificationStatus,
        values: dict[str, typ.Any],
    ) -> int | None:
        """Apply one guarded transition and return the new attempt count.

        Returns ``None`` when the guard rejected the transition because the
        row is already ``sent`` or has exhausted its attempts.
        """
        record = NotificationRecord
        stmt = (
            update(record)
            .where(
                record.id == notification_id,
                record.status != NotificationStatus.SENT.value,
                record.attempts < self._config.max_attempts,
            )
            .values(status=status.value, attempts=record.attempts + 1, **values)
            .execution_options(synchronize_session=False)
        )
        async with self._session_factory() as session, session.begin():
            updated = (await session.execute(stmt)).rowcount
            if updated == 0:
                return None
            return await session.scalar(
                select(record.attempts).where(record.id == notification_id)
            )
