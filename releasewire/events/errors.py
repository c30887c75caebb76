"""Event ledger error types."""

from __future__ import annotations


class EventPersistError(RuntimeError):
    """Raised when a uniqueness conflict cannot be matched to an existing row."""

    def __init__(self) -> None:
        """Include a deterministic error message for logging."""
        super().__init__("expected existing event after rollback")
