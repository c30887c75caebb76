"""Typed models for observed upstream events."""

from __future__ import annotations

import dataclasses
import enum
import typing as typ

if typ.TYPE_CHECKING:
    import datetime as dt

    from releasewire.events.storage import EventRecord

Payload: typ.TypeAlias = dict[str, typ.Any]


class EventKind(enum.StrEnum):
    """Kinds of upstream change that can be polled."""

    RELEASE = "release"
    COMMIT = "commit"


@dataclasses.dataclass(frozen=True, slots=True)
class NewEvent:
    """Event material ready for insertion into the event ledger."""

    resource_id: int
    kind: EventKind
    external_id: str
    occurred_at: dt.datetime
    payload: Payload


@dataclasses.dataclass(frozen=True, slots=True)
class RecordedEvent:
    """An event that has been persisted and owns a ledger id."""

    id: int
    resource_id: int
    kind: EventKind
    external_id: str
    occurred_at: dt.datetime
    payload: Payload

    @classmethod
    def from_new(cls, event_id: int, event: NewEvent) -> RecordedEvent:
        """Attach the ledger id returned by ``EventStore.insert``."""
        return cls(
            id=event_id,
            resource_id=event.resource_id,
            kind=event.kind,
            external_id=event.external_id,
            occurred_at=event.occurred_at,
            payload=event.payload,
        )

    @classmethod
    def from_record(cls, record: EventRecord) -> RecordedEvent:
        """Build the DTO from a stored ledger row."""
        return cls(
            id=record.id,
            resource_id=record.resource_id,
            kind=EventKind(record.kind),
            external_id=record.external_id,
            occurred_at=record.occurred_at,
            payload=dict(record.payload),
        )
