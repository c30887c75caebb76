"""Pagination validation shared by the read paths."""

from __future__ import annotations


class NegativePaginationError(ValueError):
    """Raised when pagination parameters are negative."""

    def __init__(self, name: str) -> None:
        """Build a consistent error message for the invalid parameter."""
        msg = f"{name} must be non-negative"
        super().__init__(msg)


def validate_pagination(limit: int | None, offset: int | None) -> None:
    """Reject negative ``limit`` or ``offset`` values.

    Raises
    ------
    NegativePaginationError
        If limit or offset is negative.

    """
    if limit is not None and limit < 0:
        raise NegativePaginationError("limit")

    if offset is not None and offset < 0:
        raise NegativePaginationError("offset")
