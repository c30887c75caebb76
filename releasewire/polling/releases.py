"""Conditional poll protocol for GitHub releases.

One call to :meth:`ReleasePoller.poll` walks the cursor state machine for a
single resource:

* not modified: refresh ``checked_at`` (and the validators) and stop;
* no cursor yet: record only the newest item as the baseline, without
  notifying anyone, so a new subscription is not flooded with history;
* otherwise: items with an id above ``last_seen_external_id`` are new and are
  recorded and fanned out oldest first.

The cursor then advances to the highest id among all fetched items. A fetch
failure still bumps ``checked_at`` on an existing cursor before re-raising,
so the scheduler can account for the failure. An item above the cursor that
the ledger already holds is fanned out again, which completes the delivery
of a poll that failed part way through.
"""

from __future__ import annotations

import typing as typ

from releasewire.cursors.store import PollCursor, cursor_key
from releasewire.events.models import EventKind, NewEvent, RecordedEvent
from releasewire.logging import get_logger, log_debug

from .models import PollOutcome

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from releasewire.cursors.store import PollCursorStore
    from releasewire.events.services import EventStore
    from releasewire.github.client import ReleaseSourceClient
    from releasewire.github.models import FetchResult, GitHubRelease
    from releasewire.registry.models import TrackedResource

    from .models import FanOut

logger = get_logger(__name__)


class ReleasePoller:
    """Poll one resource's releases and hand new ones to the dispatcher."""

    kind = EventKind.RELEASE

    def __init__(
        self,
        source: ReleaseSourceClient,
        cursors: PollCursorStore,
        events: EventStore,
        dispatcher: FanOut,
    ) -> None:
        """Store the collaborators used for every poll."""
        self._source = source
        self._cursors = cursors
        self._events = events
        self._dispatcher = dispatcher

    async def poll(self, resource: TrackedResource, at: dt.datetime) -> PollOutcome:
        """Run the conditional poll protocol for ``resource``.

        Raises
        ------
        Exception
            Whatever the source client raised; the cursor's ``checked_at`` is
            bumped first when a cursor exists.

        """
        key = cursor_key(self.kind, resource.owner, resource.name)
        cursor = await self._cursors.get(key)
        outcome = PollOutcome(resource_id=resource.id)

        try:
            fetched = await self._source.fetch_recent(resource, cursor)
        except Exception:
            if cursor is not None:
                await self._cursors.put(key, _touch(cursor, at))
            raise

        if fetched.not_modified:
            outcome.not_modified = True
            await self._cursors.put(key, _heartbeat(cursor, fetched, at))
            log_debug(
                logger, "[poll.resource.not_modified] resource=%s", resource.slug
            )
            return outcome

        items = fetched.items
        outcome.fetched = len(items)
        new_items = _select_new(items, cursor)
        outcome.new_items = len(new_items)
        outcome.baseline_established = cursor is None and bool(items)

        # Provider order is newest first; process oldest first.
        for release in reversed(new_items):
            recorded = await self._record(resource, release, at, outcome)
            if recorded is None or outcome.baseline_established:
                continue
            fan_out = await self._dispatcher.fan_out(recorded, resource)
            outcome.notifications_created += fan_out.notifications_created

        await self._cursors.put(key, _advance(cursor, fetched, at))
        return outcome

    async def _record(
        self,
        resource: TrackedResource,
        release: GitHubRelease,
        at: dt.datetime,
        outcome: PollOutcome,
    ) -> RecordedEvent | None:
        """Insert ``release`` into the ledger and return the event to fan out.

        An item above the cursor that is already in the ledger was recorded by
        a poll that failed before its cursor write. Its stored event is
        returned so fan-out runs again; fan-out skips every (subscription,
        destination) pair that already has a notification.
        """
        event = _to_new_event(resource, release, at)
        event_id = await self._events.insert(event)
        if event_id is not None:
            outcome.events_created += 1
            return RecordedEvent.from_new(event_id, event)
        existing = await self._events.find(
            resource.id, event.kind, event.external_id
        )
        return None if existing is None else RecordedEvent.from_record(existing)


def _select_new(
    items: cabc.Sequence[GitHubRelease], cursor: PollCursor | None
) -> list[GitHubRelease]:
    if not items:
        return []
    if cursor is None:
        return [items[0]]
    if cursor.last_seen_external_id is None:
        return list(items)
    return [item for item in items if item.id > cursor.last_seen_external_id]


def _to_new_event(
    resource: TrackedResource, release: GitHubRelease, at: dt.datetime
) -> NewEvent:
    return NewEvent(
        resource_id=resource.id,
        kind=EventKind.RELEASE,
        external_id=str(release.id),
        occurred_at=release.occurred_at(at),
        payload=release.to_payload(),
    )


def _touch(cursor: PollCursor, at: dt.datetime) -> PollCursor:
    return PollCursor(
        checked_at=at,
        etag=cursor.etag,
        last_modified=cursor.last_modified,
        last_seen_external_id=cursor.last_seen_external_id,
    )


def _heartbeat(
    cursor: PollCursor | None, fetched: FetchResult, at: dt.datetime
) -> PollCursor:
    return PollCursor(
        checked_at=at,
        etag=fetched.etag or (cursor.etag if cursor else None),
        last_modified=fetched.last_modified
        or (cursor.last_modified if cursor else None),
        last_seen_external_id=cursor.last_seen_external_id if cursor else None,
    )


def _advance(
    cursor: PollCursor | None, fetched: FetchResult, at: dt.datetime
) -> PollCursor:
    # Max over every fetched item, not only the new ones.
    last_seen = max(
        (item.id for item in fetched.items),
        default=cursor.last_seen_external_id if cursor else None,
    )
    return PollCursor(
        checked_at=at,
        etag=fetched.etag,
        last_modified=fetched.last_modified,
        last_seen_external_id=last_seen,
    )
