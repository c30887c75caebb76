"""Read-only history endpoints plus the manual retry-sweep trigger.

Routes
------
- ``GET /events``: ledger entries, newest first. Query parameters:
  ``resource_id``, ``kind``, ``since``, ``until``, ``limit``, ``offset``.
- ``GET /notifications``: notifications, newest first. Query parameters:
  ``status``, ``event_id``, ``subscription_id``, ``exhausted``, ``limit``,
  ``offset``.
- ``GET /notifications/{notification_id}``: one notification.
- ``POST /notifications/retry-sweep``: run one retry sweep now.

"""

from __future__ import annotations

import typing as typ
from http import HTTPStatus

from releasewire.api.errors import InvalidInputError, NotificationNotFoundError
from releasewire.common.time import parse_iso_timestamp
from releasewire.delivery.queries import NotificationQuery
from releasewire.delivery.storage import NotificationStatus
from releasewire.events.models import EventKind
from releasewire.events.services import EventQuery

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from falcon.asgi import Request, Response

    from releasewire.delivery.dispatcher import SweepResult
    from releasewire.delivery.queries import NotificationQueries
    from releasewire.delivery.storage import NotificationRecord
    from releasewire.events.services import EventStore
    from releasewire.events.storage import EventRecord

__all__ = [
    "EventCollectionResource",
    "NotificationCollectionResource",
    "NotificationResource",
    "RetrySweepResource",
]

MAX_PAGE_SIZE = 200
_DEFAULT_PAGE_SIZE = 50
_TRUE_VALUES = frozenset({"1", "true", "yes"})
_FALSE_VALUES = frozenset({"0", "false", "no"})


def _isoformat(value: dt.datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _serialize_event(record: EventRecord) -> dict[str, typ.Any]:
    return {
        "id": record.id,
        "resource_id": record.resource_id,
        "kind": record.kind,
        "external_id": record.external_id,
        "occurred_at": record.occurred_at.isoformat(),
        "inserted_at": record.inserted_at.isoformat(),
        "payload": record.payload,
    }


def _serialize_notification(record: NotificationRecord) -> dict[str, typ.Any]:
    return {
        "id": record.id,
        "event_id": record.event_id,
        "subscription_id": record.subscription_id,
        "channel": record.channel,
        "status": record.status,
        "attempts": record.attempts,
        "last_error": record.last_error,
        "last_error_at": _isoformat(record.last_error_at),
        "sent_at": _isoformat(record.sent_at),
        "created_at": record.created_at.isoformat(),
    }


def _int_param(req: Request, name: str, *, default: int | None = None) -> int | None:
    raw = req.get_param(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise InvalidInputError("must be an integer", field=name) from exc
    if value < 0:
        raise InvalidInputError("must be non-negative", field=name)
    return value


def _paging(req: Request) -> tuple[int, int]:
    limit = _int_param(req, "limit", default=_DEFAULT_PAGE_SIZE)
    offset = _int_param(req, "offset", default=0)
    if limit is None or offset is None:  # pragma: no cover - defaults are ints
        raise InvalidInputError("paging parameters are required")
    if limit > MAX_PAGE_SIZE:
        raise InvalidInputError(f"must be at most {MAX_PAGE_SIZE}", field="limit")
    return limit, offset


def _time_param(req: Request, name: str) -> dt.datetime | None:
    raw = req.get_param(name)
    if not raw:
        return None
    try:
        return parse_iso_timestamp(raw, field=name)
    except ValueError as exc:
        raise InvalidInputError(
            "must be an ISO 8601 timestamp with offset", field=name
        ) from exc


def _enum_param[E: (EventKind, NotificationStatus)](
    req: Request, name: str, enum_type: type[E]
) -> E | None:
    raw = req.get_param(name)
    if not raw:
        return None
    try:
        return enum_type(raw)
    except ValueError as exc:
        allowed = ", ".join(member.value for member in enum_type)
        raise InvalidInputError(f"must be one of: {allowed}", field=name) from exc


def _bool_param(req: Request, name: str) -> bool:
    raw = (req.get_param(name) or "").lower()
    if not raw or raw in _FALSE_VALUES:
        return False
    if raw in _TRUE_VALUES:
        return True
    raise InvalidInputError("must be true or false", field=name)


class EventCollectionResource:
    """Serve ``GET /events``."""

    def __init__(self, events: EventStore) -> None:
        """Store the event ledger used for reads."""
        self._events = events

    async def on_get(self, req: Request, resp: Response) -> None:
        """List ledger entries newest first."""
        limit, offset = _paging(req)
        query = EventQuery(
            resource_id=_int_param(req, "resource_id"),
            kind=_enum_param(req, "kind", EventKind),
            since=_time_param(req, "since"),
            until=_time_param(req, "until"),
            limit=limit,
            offset=offset,
        )
        rows = await self._events.list_events(query)
        resp.media = {"events": [_serialize_event(row) for row in rows]}
        resp.status = HTTPStatus.OK


class NotificationCollectionResource:
    """Serve ``GET /notifications``."""

    def __init__(self, queries: NotificationQueries, *, max_attempts: int) -> None:
        """Store the query service and the attempt ceiling for ``exhausted``."""
        self._queries = queries
        self._max_attempts = max_attempts

    async def on_get(self, req: Request, resp: Response) -> None:
        """List notifications newest first."""
        limit, offset = _paging(req)
        query = NotificationQuery(
            status=_enum_param(req, "status", NotificationStatus),
            event_id=_int_param(req, "event_id"),
            subscription_id=_int_param(req, "subscription_id"),
            exhausted_only=_bool_param(req, "exhausted"),
            max_attempts=self._max_attempts,
            limit=limit,
            offset=offset,
        )
        rows = await self._queries.list_notifications(query)
        resp.media = {
            "notifications": [_serialize_notification(row) for row in rows]
        }
        resp.status = HTTPStatus.OK


class NotificationResource:
    """Serve ``GET /notifications/{notification_id}``."""

    def __init__(self, queries: NotificationQueries) -> None:
        """Store the query service."""
        self._queries = queries

    async def on_get(
        self, _req: Request, resp: Response, notification_id: int
    ) -> None:
        """Return one notification or raise ``NotificationNotFoundError``."""
        record = await self._queries.get(notification_id)
        if record is None:
            raise NotificationNotFoundError(notification_id)
        resp.media = _serialize_notification(record)
        resp.status = HTTPStatus.OK


class RetrySweepResource:
    """Serve ``POST /notifications/retry-sweep``.

    The sweep runner builds its own collaborators for each request.
    """

    def __init__(
        self, run_sweep: cabc.Callable[[], cabc.Awaitable[SweepResult]]
    ) -> None:
        """Store the coroutine factory that runs one sweep."""
        self._run_sweep = run_sweep

    async def on_post(self, _req: Request, resp: Response) -> None:
        """Run a sweep and return its counters."""
        result = await self._run_sweep()
        resp.media = {
            "attempted": result.attempted,
            "sent": result.sent,
            "failed": result.failed,
            "exhausted": result.exhausted,
        }
        resp.status = HTTPStatus.OK
