"""Unit tests for the conditional release poll protocol."""

from __future__ import annotations

import dataclasses
import datetime as dt
import typing as typ

import pytest
import pytest_asyncio
from sqlalchemy.exc import OperationalError

from releasewire.cursors import PollCursor, SqlPollCursorStore, cursor_key
from releasewire.delivery.dispatcher import Dispatcher, DispatcherDependencies
from releasewire.events import EventKind, EventQuery, EventStore
from releasewire.github import TransientSourceError
from releasewire.polling import CommitPoller, PollKindNotImplementedError, ReleasePoller
from releasewire.registry import ResourceRegistry
from releasewire.subscriptions import SqlSubscriptionIndex, TelegramChannel
from tests.fakes import (
    BASE_TIME,
    RecordingSink,
    ScriptedSource,
    add_subscription,
    not_modified,
    page,
    release,
)

if typ.TYPE_CHECKING:
    from releasewire.db import SessionFactory
    from releasewire.registry import TrackedResource
    from releasewire.subscriptions import Subscription

V1, V2, V3, V4 = (release(n, f"v{n}.0.0") for n in range(1, 5))
KEY = cursor_key(EventKind.RELEASE, "acme", "widget")


def _cycle(n: int) -> dt.datetime:
    return BASE_TIME + dt.timedelta(hours=n)


class UnavailableOnceIndex(SqlSubscriptionIndex):
    """Subscription index whose first lookup fails like a dropped connection."""

    def __init__(self, session_factory: SessionFactory) -> None:
        super().__init__(session_factory)
        self.failures = 1

    async def list_for(self, resource_id: int, kind: EventKind) -> list[Subscription]:
        if self.failures > 0:
            self.failures -= 1
            raise OperationalError("SELECT subscriptions", {}, Exception("down"))
        return await super().list_for(resource_id, kind)


@dataclasses.dataclass(slots=True)
class PollerContext:
    """Poller wired to sqlite stores, a scripted source and a recording sink."""

    resource: TrackedResource
    source: ScriptedSource
    sink: RecordingSink
    cursors: SqlPollCursorStore
    events: EventStore
    poller: ReleasePoller

    async def event_ids(self) -> list[str]:
        """Return the recorded external ids, oldest first by insertion id."""
        rows = await self.events.list_events(EventQuery(limit=100))
        return [row.external_id for row in sorted(rows, key=lambda r: r.id)]


@pytest_asyncio.fixture
async def ctx(session_factory: SessionFactory) -> PollerContext:
    """Track acme/widget with one Telegram subscription."""
    resource = await ResourceRegistry(session_factory).track("acme", "widget")
    await add_subscription(
        session_factory, resource.id, channels=[TelegramChannel(chat_id="@ops")]
    )
    source = ScriptedSource()
    sink = RecordingSink()
    cursors = SqlPollCursorStore(session_factory)
    events = EventStore(session_factory)
    dispatcher = Dispatcher(
        DispatcherDependencies(
            session_factory=session_factory,
            subscriptions=SqlSubscriptionIndex(session_factory),
            sink=sink,
        )
    )
    poller = ReleasePoller(source, cursors, events, dispatcher)
    return PollerContext(resource, source, sink, cursors, events, poller)


@pytest.mark.asyncio
async def test_first_poll_then_new_release(ctx: PollerContext) -> None:
    """The first poll sets a silent baseline; the next new release notifies."""
    ctx.source.queue("acme/widget", page(V3, V2, V1, etag='"a"'), page(V4, V3, V2))

    first = await ctx.poller.poll(ctx.resource, _cycle(1))
    cursor_after_first = await ctx.cursors.get(KEY)
    second = await ctx.poller.poll(ctx.resource, _cycle(2))

    assert first.baseline_established, "first poll establishes the baseline"
    assert (first.events_created, first.notifications_created) == (1, 0), (
        "baseline event is recorded without notifying"
    )
    assert cursor_after_first == PollCursor(
        checked_at=_cycle(1), etag='"a"', last_seen_external_id=3
    ), "cursor advances to the newest id"
    assert (second.new_items, second.events_created) == (1, 1), "only v4 is new"
    assert second.notifications_created == 1, "one notification per subscriber"
    assert await ctx.event_ids() == ["3", "4"], "ledger holds baseline and v4"
    assert [m.title for _, m in ctx.sink.sent] == [
        "acme/widget - new release v4.0.0"
    ], "only v4 is delivered"
    cursor = await ctx.cursors.get(KEY)
    assert cursor is not None, "cursor should exist"
    assert cursor.last_seen_external_id == 4, "cursor advances to v4"


@pytest.mark.asyncio
async def test_not_modified_only_refreshes_checked_at(ctx: PollerContext) -> None:
    """Any number of not-modified answers create nothing and bump checked_at."""
    ctx.source.queue("acme/widget", page(V1, etag='"a"'))
    await ctx.poller.poll(ctx.resource, _cycle(0))
    ctx.source.queue("acme/widget", *(not_modified() for _ in range(3)))

    outcomes = [await ctx.poller.poll(ctx.resource, _cycle(n)) for n in (1, 2, 3)]

    assert all(o.not_modified for o in outcomes), "all cycles were not modified"
    assert sum(o.events_created for o in outcomes) == 0, "no events created"
    assert await ctx.cursors.get(KEY) == PollCursor(
        checked_at=_cycle(3), etag='"a"', last_seen_external_id=1
    ), "only checked_at moves; validators carry forward"
    assert ctx.source.calls[-1][1] is not None, "later polls send the cursor"


@pytest.mark.asyncio
async def test_not_modified_stores_refreshed_etag(ctx: PollerContext) -> None:
    """A not-modified answer carrying a new ETag replaces the stored one."""
    ctx.source.queue("acme/widget", page(V1, etag='"a"'), not_modified(etag='"b"'))

    await ctx.poller.poll(ctx.resource, _cycle(1))
    outcome = await ctx.poller.poll(ctx.resource, _cycle(2))

    assert outcome.not_modified, "second cycle was not modified"
    assert await ctx.cursors.get(KEY) == PollCursor(
        checked_at=_cycle(2), etag='"b"', last_seen_external_id=1
    ), "the refreshed ETag is sent on the next poll"


@pytest.mark.asyncio
async def test_new_items_are_processed_oldest_first(ctx: PollerContext) -> None:
    """Several new items are recorded and delivered in time order."""
    ctx.source.queue("acme/widget", page(V1), page(V4, V3, V2, V1))

    await ctx.poller.poll(ctx.resource, _cycle(1))
    outcome = await ctx.poller.poll(ctx.resource, _cycle(2))

    assert outcome.new_items == 3, "v2, v3 and v4 are new"
    assert await ctx.event_ids() == ["1", "2", "3", "4"], "inserted oldest first"
    assert [m.title.rsplit(" ", 1)[-1] for _, m in ctx.sink.sent] == [
        "v2.0.0",
        "v3.0.0",
        "v4.0.0",
    ], "delivered oldest first"


@pytest.mark.asyncio
async def test_cursor_uses_max_over_all_fetched(ctx: PollerContext) -> None:
    """A reordered page never moves the cursor backwards."""
    ctx.source.queue("acme/widget", page(V3), page(V2, V4))

    await ctx.poller.poll(ctx.resource, _cycle(1))
    await ctx.poller.poll(ctx.resource, _cycle(2))

    cursor = await ctx.cursors.get(KEY)
    assert cursor is not None, "cursor should exist"
    assert cursor.last_seen_external_id == 4, "max id across the page"


@pytest.mark.asyncio
async def test_failure_bumps_existing_cursor_and_propagates(
    ctx: PollerContext,
) -> None:
    """A fetch failure touches checked_at and re-raises."""
    ctx.source.queue(
        "acme/widget",
        page(V1, etag='"a"'),
        TransientSourceError.timeout("acme/widget"),
    )
    await ctx.poller.poll(ctx.resource, _cycle(1))

    with pytest.raises(TransientSourceError):
        await ctx.poller.poll(ctx.resource, _cycle(2))

    assert await ctx.cursors.get(KEY) == PollCursor(
        checked_at=_cycle(2), etag='"a"', last_seen_external_id=1
    ), "checked_at bumped, everything else kept"


@pytest.mark.asyncio
async def test_failure_without_cursor_creates_none(ctx: PollerContext) -> None:
    """A failing first poll leaves no cursor behind."""
    ctx.source.queue("acme/widget", TransientSourceError.timeout("acme/widget"))

    with pytest.raises(TransientSourceError):
        await ctx.poller.poll(ctx.resource, _cycle(1))

    assert await ctx.cursors.get(KEY) is None, "no cursor on failed first poll"


@pytest.mark.asyncio
async def test_empty_first_poll_then_first_release_notifies(
    ctx: PollerContext,
) -> None:
    """A resource with no releases yet notifies for its first release."""
    ctx.source.queue("acme/widget", page(), page(V1))

    empty = await ctx.poller.poll(ctx.resource, _cycle(1))
    first = await ctx.poller.poll(ctx.resource, _cycle(2))

    assert (empty.events_created, empty.baseline_established) == (0, False), (
        "nothing to baseline"
    )
    assert first.notifications_created == 1, "the first ever release is new"


@pytest.mark.asyncio
async def test_already_recorded_items_are_not_redelivered(
    ctx: PollerContext,
) -> None:
    """A lost cursor update is absorbed by ledger deduplication."""
    ctx.source.queue("acme/widget", page(V1), page(V2, V1))
    await ctx.poller.poll(ctx.resource, _cycle(1))
    await ctx.poller.poll(ctx.resource, _cycle(2))
    # Simulate a lost cursor write by rewinding to v1.
    await ctx.cursors.put(
        KEY, PollCursor(checked_at=_cycle(2), last_seen_external_id=1)
    )
    ctx.source.queue("acme/widget", page(V2, V1))

    outcome = await ctx.poller.poll(ctx.resource, _cycle(3))

    assert outcome.new_items == 1, "v2 looks new again"
    assert outcome.events_created == 0, "but the ledger already has it"
    assert len(ctx.sink.sent) == 1, "v2 is delivered only once"


@pytest.mark.asyncio
async def test_fan_out_failure_is_completed_next_cycle(
    session_factory: SessionFactory, ctx: PollerContext
) -> None:
    """An event recorded by a poll that failed during fan-out still notifies."""
    dispatcher = Dispatcher(
        DispatcherDependencies(
            session_factory=session_factory,
            subscriptions=UnavailableOnceIndex(session_factory),
            sink=ctx.sink,
        )
    )
    poller = ReleasePoller(ctx.source, ctx.cursors, ctx.events, dispatcher)
    ctx.source.queue("acme/widget", page(V1), page(V2, V1), page(V2, V1))
    await poller.poll(ctx.resource, _cycle(1))

    with pytest.raises(OperationalError):
        await poller.poll(ctx.resource, _cycle(2))
    cursor = await ctx.cursors.get(KEY)
    outcome = await poller.poll(ctx.resource, _cycle(3))

    assert cursor is not None, "cursor should exist"
    assert cursor.last_seen_external_id == 1, "failed cycle keeps the cursor"
    assert await ctx.event_ids() == ["1", "2"], "v2 was recorded before failing"
    assert (outcome.events_created, outcome.notifications_created) == (0, 1), (
        "the recorded v2 is fanned out again"
    )
    assert [m.title for _, m in ctx.sink.sent] == [
        "acme/widget - new release v2.0.0"
    ], "v2 is delivered exactly once"


@pytest.mark.asyncio
async def test_commit_poller_is_not_implemented(ctx: PollerContext) -> None:
    """Commit polling fails explicitly."""
    with pytest.raises(PollKindNotImplementedError, match="commit"):
        await CommitPoller().poll(ctx.resource, _cycle(1))
