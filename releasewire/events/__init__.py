"""Append-only, deduplicated ledger of observed upstream events."""

from __future__ import annotations

from .errors import EventPersistError
from .models import EventKind, NewEvent, RecordedEvent
from .services import EventQuery, EventStore
from .storage import EventRecord

__all__ = [
    "EventKind",
    "EventPersistError",
    "EventQuery",
    "EventRecord",
    "EventStore",
    "NewEvent",
    "RecordedEvent",
]
