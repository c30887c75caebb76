"""Per-invocation wiring of the poll and delivery pipeline.

Every entry point (dramatiq actor, CLI command, HTTP request) builds its
collaborators once through :func:`open_pipeline` and passes them down
explicitly. HTTP clients are owned by the context manager and closed when the
invocation ends; nothing is cached at module level.

Usage
-----
::

    async with open_pipeline(session_factory) as pipeline:
        report = await pipeline.scheduler.run_cycle(at)

"""

from __future__ import annotations

import contextlib
import dataclasses as dc
import typing as typ

from releasewire.cursors import SqlPollCursorStore
from releasewire.delivery.channels import (
    TelegramConfig,
    TelegramSink,
    build_channel_router,
)
from releasewire.delivery.config import DeliveryConfig
from releasewire.delivery.dispatcher import Dispatcher, DispatcherDependencies
from releasewire.delivery.errors import TelegramConfigError
from releasewire.events import EventStore
from releasewire.filters import FilterEngine
from releasewire.github.client import GitHubReleasesClient, GitHubReleasesConfig
from releasewire.observability import PipelineEventLogger
from releasewire.polling import ReleasePoller
from releasewire.registry import ResourceRegistry
from releasewire.scheduler import PollScheduler, SchedulerConfig
from releasewire.subscriptions import SqlSubscriptionIndex

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from releasewire.db import SessionFactory
    from releasewire.delivery.channels import ChannelSink
    from releasewire.delivery.dispatcher import SweepResult
    from releasewire.github.client import ReleaseSourceClient
    from releasewire.scheduler import CycleReport

__all__ = [
    "Pipeline",
    "PipelineSettings",
    "open_pipeline",
    "run_poll_cycle",
    "run_retry_sweep",
]


@dc.dataclass(frozen=True, slots=True)
class PipelineSettings:
    """All configuration a pipeline invocation needs.

    ``telegram`` is ``None`` when no bot token is configured; Telegram
    deliveries then fail as "not configured" and remain retryable.
    """

    scheduler: SchedulerConfig = dc.field(default_factory=SchedulerConfig)
    delivery: DeliveryConfig = dc.field(default_factory=DeliveryConfig)
    github: GitHubReleasesConfig = dc.field(default_factory=GitHubReleasesConfig)
    telegram: TelegramConfig | None = None

    @classmethod
    def from_env(cls) -> PipelineSettings:
        """Load every section from ``RELEASEWIRE_*`` environment variables."""
        try:
            telegram: TelegramConfig | None = TelegramConfig.from_env()
        except TelegramConfigError:
            telegram = None
        return cls(
            scheduler=SchedulerConfig.from_env(),
            delivery=DeliveryConfig.from_env(),
            github=GitHubReleasesConfig.from_env(),
            telegram=telegram,
        )


@dc.dataclass(frozen=True, slots=True)
class Pipeline:
    """The collaborators of one invocation."""

    registry: ResourceRegistry
    cursors: SqlPollCursorStore
    events: EventStore
    subscriptions: SqlSubscriptionIndex
    dispatcher: Dispatcher
    poller: ReleasePoller
    scheduler: PollScheduler


@contextlib.asynccontextmanager
async def open_pipeline(
    session_factory: SessionFactory,
    settings: PipelineSettings | None = None,
    *,
    source: ReleaseSourceClient | None = None,
    sink: ChannelSink | None = None,
) -> cabc.AsyncIterator[Pipeline]:
    """Build the pipeline for one invocation and close its clients afterwards.

    Parameters
    ----------
    session_factory
        Async session factory for the releasewire database.
    settings
        Configuration; read from the environment when omitted.
    source
        Release source override. A :class:`GitHubReleasesClient` is built
        and owned when omitted.
    sink
        Channel sink override. The production channel router is built when
        omitted.

    """
    config = settings or PipelineSettings.from_env()
    event_logger = PipelineEventLogger()

    async with contextlib.AsyncExitStack() as stack:
        if source is None:
            github = GitHubReleasesClient(config.github)
            stack.push_async_callback(github.aclose)
            source = github
        if sink is None:
            telegram: TelegramSink | None = None
            if config.telegram is not None:
                telegram = TelegramSink(config.telegram)
                stack.push_async_callback(telegram.aclose)
            sink = build_channel_router(telegram)

        registry = ResourceRegistry(
            session_factory,
            shard_count=config.scheduler.shard_count,
            error_ceiling=config.scheduler.error_ceiling,
            list_limit=config.scheduler.list_limit,
        )
        cursors = SqlPollCursorStore(session_factory)
        events = EventStore(session_factory)
        subscriptions = SqlSubscriptionIndex(session_factory)
        dispatcher = Dispatcher(
            DispatcherDependencies(
                session_factory=session_factory,
                subscriptions=subscriptions,
                sink=sink,
            ),
            config=config.delivery,
            filters=FilterEngine(),
            event_logger=event_logger,
        )
        poller = ReleasePoller(source, cursors, events, dispatcher)
        scheduler = PollScheduler(
            registry, poller, config=config.scheduler, event_logger=event_logger
        )
        yield Pipeline(
            registry=registry,
            cursors=cursors,
            events=events,
            subscriptions=subscriptions,
            dispatcher=dispatcher,
            poller=poller,
            scheduler=scheduler,
        )


async def run_poll_cycle(
    session_factory: SessionFactory,
    at: dt.datetime | None = None,
    settings: PipelineSettings | None = None,
) -> CycleReport:
    """Run one scheduler cycle with freshly built collaborators."""
    async with open_pipeline(session_factory, settings) as pipeline:
        return await pipeline.scheduler.run_cycle(at)


async def run_retry_sweep(
    session_factory: SessionFactory,
    now: dt.datetime | None = None,
    settings: PipelineSettings | None = None,
) -> SweepResult:
    """Run one retry sweep with freshly built collaborators."""
    async with open_pipeline(session_factory, settings) as pipeline:
        return await pipeline.dispatcher.retry_sweep(now)
