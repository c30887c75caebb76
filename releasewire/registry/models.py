"""Data transfer objects for the resource registry."""

from __future__ import annotations

import dataclasses
import typing as typ

from releasewire.common.slug import resource_slug

if typ.TYPE_CHECKING:
    import datetime as dt

    from releasewire.registry.storage import TrackedResourceRecord


@dataclasses.dataclass(slots=True, frozen=True)
class TrackedResource:
    """Immutable view of a tracked resource handed to pollers.

    Pollers and the dispatcher only ever see this snapshot; health counters
    are mutated through :meth:`ResourceRegistry.record_outcome`.
    """

    id: int
    owner: str
    name: str
    default_branch: str = "main"
    consecutive_errors: int = 0
    last_polled_at: dt.datetime | None = None

    @property
    def slug(self) -> str:
        """Return ``owner/name``."""
        return resource_slug(self.owner, self.name)


def to_tracked_resource(record: TrackedResourceRecord) -> TrackedResource:
    """Convert an ORM row into the immutable DTO."""
    return TrackedResource(
        id=record.id,
        owner=record.owner,
        name=record.name,
        default_branch=record.default_branch,
        consecutive_errors=record.consecutive_errors,
        last_polled_at=record.last_polled_at,
    )
