"""Placeholder poller for the commit event kind."""

from __future__ import annotations

import typing as typ

from releasewire.events.models import EventKind

from .errors import PollKindNotImplementedError

if typ.TYPE_CHECKING:
    import datetime as dt

    from releasewire.registry.models import TrackedResource

    from .models import PollOutcome


class CommitPoller:
    """Commit polling is not implemented; every call fails explicitly."""

    kind = EventKind.COMMIT

    async def poll(self, resource: TrackedResource, at: dt.datetime) -> PollOutcome:
        """Raise :class:`PollKindNotImplementedError`."""
        raise PollKindNotImplementedError(self.kind)
