"""Unit tests for wiring the pipeline end to end."""

from __future__ import annotations

import datetime as dt
import typing as typ

import pytest

from releasewire.events import EventQuery
from releasewire.pipeline import PipelineSettings, open_pipeline
from releasewire.subscriptions import TelegramChannel
from tests.fakes import (
    BASE_TIME,
    RecordingSink,
    ScriptedSource,
    add_subscription,
    page,
    release,
)

if typ.TYPE_CHECKING:
    from releasewire.db import SessionFactory

# Resource id 1 falls in shard 1, polled one minute past the hour.
SHARD_ONE = BASE_TIME + dt.timedelta(minutes=1)


@pytest.mark.asyncio
async def test_cycles_baseline_then_deliver(session_factory: SessionFactory) -> None:
    """The first cycle records a baseline; the second delivers the new release."""
    source = ScriptedSource()
    sink = RecordingSink()
    v1, v2 = release(1, "v1.0.0"), release(2, "v2.0.0")
    source.queue("acme/widget", page(v1, etag='"a"'), page(v2, v1, etag='"b"'))

    async with open_pipeline(
        session_factory, PipelineSettings(), source=source, sink=sink
    ) as pipeline:
        resource = await pipeline.registry.track("acme", "widget")
        await add_subscription(
            session_factory, resource.id, channels=[TelegramChannel(chat_id="@ops")]
        )

        first = await pipeline.scheduler.run_cycle(SHARD_ONE)
        second = await pipeline.scheduler.run_cycle(
            SHARD_ONE + dt.timedelta(hours=1)
        )
        events = await pipeline.events.list_events(EventQuery())

    assert first.shard_key == 1, "expected shard 1"
    assert first.selected == 1, "the resource is due in its shard"
    assert first.notifications_created == 0, "the baseline is not notified"
    assert second.events_created == 1, "one new release"
    assert second.notifications_created == 1, "one channel notified"
    assert len(sink.sent) == 1, "exactly one delivery"
    assert "v2.0.0" in sink.sent[0][1].title, "the new release was delivered"
    assert len(events) == 2, "baseline and new release are both recorded"


@pytest.mark.asyncio
async def test_retry_sweep_redelivers(session_factory: SessionFactory) -> None:
    """A failed delivery is retried by the sweep once the cool-down passes."""
    source = ScriptedSource()
    sink = RecordingSink(failures=1)
    v1, v2 = release(1, "v1.0.0"), release(2, "v2.0.0")
    source.queue("acme/widget", page(v1), page(v2, v1))

    async with open_pipeline(
        session_factory, PipelineSettings(), source=source, sink=sink
    ) as pipeline:
        resource = await pipeline.registry.track("acme", "widget")
        await add_subscription(
            session_factory, resource.id, channels=[TelegramChannel(chat_id="@ops")]
        )
        await pipeline.scheduler.run_cycle(SHARD_ONE)
        await pipeline.scheduler.run_cycle(SHARD_ONE)
        sweep = await pipeline.dispatcher.retry_sweep(
            dt.datetime.now(dt.UTC) + dt.timedelta(hours=1)
        )

    assert sweep.attempted == 1, "the failed notification is retried"
    assert sweep.sent == 1, "the retry succeeds"
    assert len(sink.sent) == 1, "delivered exactly once"
