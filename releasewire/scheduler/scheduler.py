"""Poll scheduler: one invocation polls one shard of due resources.

The scheduler is invocation driven. An external cadence (a dramatiq actor
scheduled every minute, or the CLI) calls :meth:`PollScheduler.run_cycle`
with a timestamp; the call completes every batch before returning and nothing
runs between invocations. Only one invocation may run at a time: poll cursors
are read and written without locks, and the event ledger's uniqueness
constraint is the backstop if that rule is broken.
"""

from __future__ import annotations

import asyncio
import dataclasses
import itertools
import typing as typ

from sqlalchemy.exc import SQLAlchemyError

from releasewire.common.time import require_aware, utcnow
from releasewire.observability import PipelineEventLogger
from releasewire.registry.errors import RegistryError

from .config import SchedulerConfig

if typ.TYPE_CHECKING:
    import collections.abc as cabc
    import datetime as dt

    from releasewire.polling.models import PollOutcome, ResourcePoller
    from releasewire.registry.models import TrackedResource


class DueResourceSource(typ.Protocol):
    """The registry operations the scheduler depends on."""

    async def list_due(
        self, shard_key: int, cooldown_cutoff: dt.datetime
    ) -> list[TrackedResource]:
        """Return the resources to poll this cycle."""
        ...

    async def record_outcome(
        self, resource_id: int, *, success: bool, at: dt.datetime
    ) -> None:
        """Record whether polling ``resource_id`` succeeded."""
        ...


@dataclasses.dataclass(slots=True)
class CycleReport:
    """Counters describing one scheduler invocation."""

    shard_key: int
    scheduled_at: dt.datetime
    selected: int = 0
    succeeded: int = 0
    failed: int = 0
    not_modified: int = 0
    events_created: int = 0
    notifications_created: int = 0
    outcomes_not_recorded: int = 0
    failures: dict[int, str] = dataclasses.field(default_factory=dict)

    def as_summary(self) -> dict[str, int | str]:
        """Return a JSON-safe summary for actor results and the CLI."""
        return {
            "shard_key": self.shard_key,
            "scheduled_at": self.scheduled_at.isoformat(),
            "selected": self.selected,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "not_modified": self.not_modified,
            "events_created": self.events_created,
            "notifications_created": self.notifications_created,
        }


def shard_key_for(at: dt.datetime, shard_count: int) -> int:
    """Return the shard polled at ``at``: whole minutes since the epoch mod count.

    Examples
    --------
    >>> import datetime as dt
    >>> shard_key_for(dt.datetime(2024, 1, 1, 0, 7, tzinfo=dt.UTC), 60)
    7

    """
    minutes = int(require_aware(at, field="at").timestamp() // 60)
    return minutes % shard_count


def _batched(
    resources: cabc.Sequence[TrackedResource], size: int
) -> cabc.Iterator[tuple[TrackedResource, ...]]:
    iterator = iter(resources)
    while batch := tuple(itertools.islice(iterator, size)):
        yield batch


class PollScheduler:
    """Select, batch and poll due resources, recording each outcome."""

    def __init__(
        self,
        registry: DueResourceSource,
        poller: ResourcePoller,
        *,
        config: SchedulerConfig | None = None,
        event_logger: PipelineEventLogger | None = None,
        clock: cabc.Callable[[], dt.datetime] = utcnow,
    ) -> None:
        """Configure the scheduler with its registry, poller and throttle."""
        self._registry = registry
        self._poller = poller
        self._config = config or SchedulerConfig()
        self._event_logger = event_logger or PipelineEventLogger()
        self._clock = clock

    async def run_cycle(self, at: dt.datetime | None = None) -> CycleReport:
        """Poll the shard due at ``at`` (defaults to now).

        A failure while listing due resources aborts the cycle and
        propagates; nothing has been written at that point. Individual
        resource failures are isolated: they are logged, counted and recorded
        as failed outcomes while the rest of the cycle continues.

        Returns
        -------
        CycleReport
            Counters for the cycle.

        """
        scheduled_at = (
            require_aware(at, field="at") if at is not None else self._clock()
        )
        shard_key = shard_key_for(scheduled_at, self._config.shard_count)
        cutoff = scheduled_at - self._config.resource_cooldown

        try:
            resources = await self._registry.list_due(shard_key, cutoff)
        except Exception as exc:
            self._event_logger.log_cycle_aborted(shard_key=shard_key, error=exc)
            raise

        report = CycleReport(
            shard_key=shard_key, scheduled_at=scheduled_at, selected=len(resources)
        )
        self._event_logger.log_cycle_started(
            shard_key=shard_key, scheduled_at=scheduled_at, selected=len(resources)
        )

        started = self._clock()
        for batch in _batched(resources, self._config.batch_size):
            gathered = await asyncio.gather(
                *(self._poller.poll(resource, scheduled_at) for resource in batch),
                return_exceptions=True,
            )
            await self._settle_batch(batch, gathered, report)

        self._event_logger.log_cycle_completed(
            shard_key=shard_key,
            succeeded=report.succeeded,
            failed=report.failed,
            events_created=report.events_created,
            notifications_created=report.notifications_created,
            duration=self._clock() - started,
        )
        return report

    async def _settle_batch(
        self,
        batch: cabc.Sequence[TrackedResource],
        gathered: cabc.Sequence[PollOutcome | BaseException],
        report: CycleReport,
    ) -> None:
        """Record every outcome of a finished batch.

        Non-``Exception`` ``BaseException`` values (cancellation, interrupts)
        are re-raised before anything is recorded.
        """
        for result in gathered:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        for resource, result in zip(batch, gathered, strict=True):
            if isinstance(result, Exception):
                report.failed += 1
                report.failures[resource.id] = f"{type(result).__name__}: {result}"
                self._event_logger.log_resource_failed(
                    resource_slug=resource.slug,
                    resource_id=resource.id,
                    error=result,
                )
                await self._record(resource, success=False, report=report)
                continue

            outcome = typ.cast("PollOutcome", result)
            report.succeeded += 1
            report.not_modified += int(outcome.not_modified)
            report.events_created += outcome.events_created
            report.notifications_created += outcome.notifications_created
            await self._record(resource, success=True, report=report)

    async def _record(
        self, resource: TrackedResource, *, success: bool, report: CycleReport
    ) -> None:
        try:
            await self._registry.record_outcome(
                resource.id, success=success, at=report.scheduled_at
            )
        except (SQLAlchemyError, RegistryError) as exc:
            report.outcomes_not_recorded += 1
            self._event_logger.log_outcome_not_recorded(
                resource_id=resource.id, error=exc
            )
