"""Error types shared by the storage layers."""

from __future__ import annotations


class TimezoneAwareRequiredError(ValueError):
    """Raised when datetime inputs lack timezone information."""

    def __init__(self, context: str) -> None:
        """Attach a consistent message for the failing context."""
        super().__init__(f"{context} must be timezone aware")

    @classmethod
    def for_column(cls) -> TimezoneAwareRequiredError:
        """Return an error for a naive value bound to a UTC column."""
        return cls("timestamp column values")

    @classmethod
    def for_occurrence(cls) -> TimezoneAwareRequiredError:
        """Return an error indicating occurred_at was naive."""
        return cls("occurred_at")
