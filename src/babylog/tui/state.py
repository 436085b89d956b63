"""Session modes and the mutable state the renderer reads."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..events.models import Event, EventType
from .form import EventForm


class Mode(Enum):
    LISTING = "listing"
    CREATING = "creating"
    EDITING = "editing"
    DELETING = "deleting"


class StatusLevel(Enum):
    INFO = "info"
    ERROR = "error"


@dataclass
class SessionState:
    """Everything that changes while the session runs.

    `events` is the snapshot last loaded from storage; `selected` indexes
    into it and is kept in range by `clamp_selection`.
    """

    mode: Mode = Mode.LISTING
    events: list[Event] = field(default_factory=list)
    selected: int = 0
    type_filter: EventType | None = None
    form: EventForm | None = None
    pending_delete: Event | None = None
    status: str | None = None
    status_level: StatusLevel = StatusLevel.INFO
    running: bool = True

    @property
    def selected_event(self) -> Event | None:
        if not self.events:
            return None
        return self.events[self.selected]

    def clamp_selection(self) -> None:
        if not self.events:
            self.selected = 0
        else:
            self.selected = max(0, min(self.selected, len(self.events) - 1))

    def move_selection(self, step: int) -> None:
        self.selected += step
        self.clamp_selection()

    def select_id(self, event_id: int) -> None:
        for index, event in enumerate(self.events):
            if event.id == event_id:
                self.selected = index
                return
        self.clamp_selection()

    def set_status(self, message: str, level: StatusLevel = StatusLevel.INFO) -> None:
        self.status = message
        self.status_level = level

    def clear_status(self) -> None:
        self.status = None
        self.status_level = StatusLevel.INFO

    def back_to_listing(self) -> None:
        self.mode = Mode.LISTING
        self.form = None
        self.pending_delete = None
