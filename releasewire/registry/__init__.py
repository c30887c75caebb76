"""Registry of tracked resources and their poll health.

Usage
-----
Track a repository and select the resources due for a cycle::

    from releasewire.registry import ResourceRegistry

    registry = ResourceRegistry(session_factory)
    resource = await registry.track("acme", "widget")
    due = await registry.list_due(shard_key=7, cooldown_cutoff=cutoff)
    await registry.record_outcome(resource.id, success=True, at=now)

"""

from releasewire.registry.errors import (
    RegistryError,
    ResourceNotFoundError,
    TrackResourceError,
)
from releasewire.registry.models import TrackedResource
from releasewire.registry.service import ResourceRegistry
from releasewire.registry.storage import TrackedResourceRecord

__all__ = [
    "RegistryError",
    "ResourceNotFoundError",
    "ResourceRegistry",
    "TrackResourceError",
    "TrackedResource",
    "TrackedResourceRecord",
]
