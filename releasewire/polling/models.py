"""Result types shared by resource pollers."""

from __future__ import annotations

import dataclasses
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from releasewire.delivery.dispatcher import FanOutResult
    from releasewire.events.models import RecordedEvent
    from releasewire.registry.models import TrackedResource


@dataclasses.dataclass(slots=True)
class PollOutcome:
    """What one poll of one resource observed and produced.

    Attributes
    ----------
    resource_id
        The polled resource.
    not_modified
        ``True`` when the provider answered "not modified".
    fetched
        Items returned by the provider (drafts excluded).
    new_items
        Items newer than the cursor's last-seen id.
    events_created
        New ledger rows; duplicates of already recorded items are not counted.
    baseline_established
        ``True`` when this was the resource's first poll.
    notifications_created
        Notifications created by fan-out of the new events.

    """

    resource_id: int
    not_modified: bool = False
    fetched: int = 0
    new_items: int = 0
    events_created: int = 0
    baseline_established: bool = False
    notifications_created: int = 0


class FanOut(typ.Protocol):
    """The dispatcher operation a poller hands new events to."""

    async def fan_out(
        self, event: RecordedEvent, resource: TrackedResource
    ) -> FanOutResult:
        """Deliver ``event`` to its matching subscriptions."""
        ...


class ResourcePoller(typ.Protocol):
    """Interface the scheduler uses to poll one resource."""

    async def poll(self, resource: TrackedResource, at: dt.datetime) -> PollOutcome:
        """Poll ``resource`` at ``at`` and process anything new."""
        ...
