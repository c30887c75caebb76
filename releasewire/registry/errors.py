"""Errors specific to the resource registry."""

from __future__ import annotations


class RegistryError(Exception):
    """Base class for registry errors."""


class ResourceNotFoundError(RegistryError):
    """Raised when a tracked resource id does not exist."""

    def __init__(self, resource_id: int) -> None:
        """Initialise with the missing resource id."""
        self.resource_id = resource_id
        super().__init__(f"Tracked resource not found: {resource_id}")


class TrackResourceError(RegistryError):
    """Raised when a resource cannot be tracked or re-read after a conflict."""

    def __init__(self, slug: str) -> None:
        """Initialise with the slug that failed to persist."""
        self.slug = slug
        super().__init__(f"expected tracked resource {slug} after rollback")
