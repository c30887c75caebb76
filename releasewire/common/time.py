"""Common time utilities."""

from __future__ import annotations

import datetime as dt


def utcnow() -> dt.datetime:
    """Return an aware UTC timestamp suitable for DB defaults."""
    return dt.datetime.now(dt.UTC)


def require_aware(value: dt.datetime, *, field: str) -> dt.datetime:
    """Return ``value`` converted to UTC, rejecting naive datetimes."""
    if value.tzinfo is None:
        msg = f"{field} must be timezone-aware"
        raise ValueError(msg)
    return value.astimezone(dt.UTC)


def parse_iso_timestamp(value: str, *, field: str) -> dt.datetime:
    """Parse an ISO 8601 timestamp that must carry an offset.

    ``Z`` suffixes are accepted so GitHub style timestamps round-trip.

    Raises
    ------
    ValueError
        If the text is not ISO 8601 or lacks timezone information.

    """
    parsed = dt.datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        msg = (
            f"{field} must include timezone information, got naive datetime: "
            f"{value!r}. Use ISO format with offset (e.g., '2024-07-14T10:00:00Z')."
        )
        raise ValueError(msg)
    return parsed.astimezone(dt.UTC)
