"""Event model: the closed set of event types and the event records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class EventType(Enum):
    """Kinds of care event. Fixed at creation."""

    FEEDING = "feeding"
    DIAPER_CHANGE = "diaper_change"
    SLEEP = "sleep"
    PUMP = "pump"
    SKIN_TO_SKIN = "skin_to_skin"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    EventType.FEEDING: "Feeding",
    EventType.DIAPER_CHANGE: "Diaper change",
    EventType.SLEEP: "Sleep",
    EventType.PUMP: "Pump",
    EventType.SKIN_TO_SKIN: "Skin to skin",
}


@dataclass(frozen=True)
class EventDraft:
    """An event's user-controlled fields, before storage assigns an id.

    `occurred_at` is a timezone-aware UTC datetime with second precision.
    """

    event_type: EventType
    occurred_at: datetime
    quantity: int | None = None
    detail: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class Event:
    """A persisted event.

    Equality ignores the bookkeeping timestamps; compare `to_draft()` results
    to check two events are equal except for their id.
    """

    id: int
    event_type: EventType
    occurred_at: datetime
    quantity: int | None = None
    detail: str | None = None
    notes: str | None = None
    created_at: str | None = field(default=None, compare=False, repr=False)
    updated_at: str | None = field(default=None, compare=False, repr=False)

    def to_draft(self) -> EventDraft:
        return EventDraft(
            event_type=self.event_type,
            occurred_at=self.occurred_at,
            quantity=self.quantity,
            detail=self.detail,
            notes=self.notes,
        )
