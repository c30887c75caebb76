"""Errors raised by resource pollers."""

from __future__ import annotations


class PollKindNotImplementedError(NotImplementedError):
    """Raised when polling is requested for an unsupported event kind."""

    def __init__(self, kind: str) -> None:
        """Record the unsupported kind."""
        self.kind = kind
        super().__init__(f"polling for {kind} events is not implemented")
