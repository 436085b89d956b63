"""The interactive terminal session.

One blocking keypress read at a time: read key, update state, call the
store, re-render. The session is the recovery boundary for storage errors:
they become a status line and the loop keeps running.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from rich.console import Console

from ..database.errors import NotFoundError, PersistenceError
from ..events.models import EventType
from ..events.store import EventFilter, EventStore
from ..events.validation import ValidationError
from ..utils.time import utc_now
from .actions import Action, ActionMap
from .form import TIME_FIELD, EventForm, FormCommand
from .keys import read_key
from .render import render_screen
from .state import Mode, SessionState, StatusLevel

logger = logging.getLogger(__name__)

CONFIRM_DELETE_KEYS = ("y", "Y")
FILTER_CYCLE: tuple[EventType | None, ...] = (None, *EventType)


class Session:
    """Interactive loop over an `EventStore`.

    Args:
        store: Open, migrated store. The session uses it but does not close it.
        console: Where screens are drawn. Defaults to a new rich Console.
        key_reader: Returns the next key name; raising EOFError ends the loop.
        tz: IANA zone for displaying and entering times.
        action_map: Listing key bindings.
        clock: Source of "now" for new events.
    """

    def __init__(
        self,
        store: EventStore,
        *,
        console: Console | None = None,
        key_reader: Callable[[], str] = read_key,
        tz: str = "UTC",
        action_map: ActionMap | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.store = store
        self.console = console or Console()
        self.key_reader = key_reader
        self.tz = tz
        self.action_map = action_map or ActionMap()
        self.clock = clock
        self.state = SessionState()

    def run(self) -> int:
        """Run until the user quits from the listing. Returns the exit code."""
        logger.info("Session started (tz=%s)", self.tz)
        self.reload()
        while self.state.running:
            self.render()
            try:
                key = self.key_reader()
            except EOFError:
                self._input_closed()
                break
            self.handle_key(key)
        logger.info("Session ended")
        return 0

    def _input_closed(self) -> None:
        # No further keys can arrive, so a half-filled form or prompt cannot be finished
        if self.state.mode is not Mode.LISTING:
            logger.warning("Input closed in %s mode; unsaved input discarded", self.state.mode.name)
            self.state.back_to_listing()
            self.state.set_status("Input closed; unsaved changes discarded", StatusLevel.ERROR)
        else:
            logger.info("Input closed; ending session")

    def render(self) -> None:
        if self.console.is_terminal:
            self.console.clear()
        self.console.print(render_screen(self.state, action_map=self.action_map, tz=self.tz))

    def reload(self) -> None:
        """Re-read the listing from storage, keeping the selection in range."""
        try:
            self.state.events = list(self.store.list(EventFilter(event_type=self.state.type_filter)))
        except PersistenceError as exc:
            logger.exception("Failed to load events")
            self.state.set_status(f"Could not load events: {exc}", StatusLevel.ERROR)
        self.state.clamp_selection()

    def handle_key(self, key: str) -> None:
        """Apply one keypress in the current mode."""
        # Status messages are transient: they last until the next key
        self.state.clear_status()
        mode = self.state.mode
        if mode is Mode.LISTING:
            self._handle_listing(key)
        elif mode in (Mode.CREATING, Mode.EDITING):
            self._handle_form(key)
        elif mode is Mode.DELETING:
            self._handle_delete(key)

    def _handle_listing(self, key: str) -> None:
        action = self.action_map.resolve(key)
        state = self.state
        if action is None:
            return

        if action is Action.QUIT:
            state.running = False
        elif action is Action.MOVE_UP:
            state.move_selection(-1)
        elif action is Action.MOVE_DOWN:
            state.move_selection(1)
        elif action is Action.RELOAD:
            self.reload()
            if state.status is None:
                state.set_status(f"Loaded {len(state.events)} event(s)")
        elif action is Action.FILTER_TYPE:
            self._cycle_filter()
        elif action is Action.ADD_EVENT:
            state.form = EventForm.for_create(
                tz=self.tz,
                event_type=state.type_filter or EventType.FEEDING,
                now=self.clock(),
            )
            state.mode = Mode.CREATING
        elif action is Action.EDIT_EVENT:
            self._start_edit()
        elif action is Action.DELETE_EVENT:
            self._start_delete()

    def _cycle_filter(self) -> None:
        index = FILTER_CYCLE.index(self.state.type_filter)
        self.state.type_filter = FILTER_CYCLE[(index + 1) % len(FILTER_CYCLE)]
        self.state.selected = 0
        self.reload()
        label = self.state.type_filter.label if self.state.type_filter else "all events"
        if self.state.status is None:
            self.state.set_status(f"Showing {label}")

    def _start_edit(self) -> None:
        selected = self.state.selected_event
        if selected is None:
            self.state.set_status("No event selected", StatusLevel.ERROR)
            return
        try:
            event = self.store.read(selected.id)
        except (NotFoundError, PersistenceError) as exc:
            self._storage_failure("Cannot edit", exc)
            return
        self.state.form = EventForm.for_edit(event, tz=self.tz)
        self.state.mode = Mode.EDITING

    def _start_delete(self) -> None:
        selected = self.state.selected_event
        if selected is None:
            self.state.set_status("No event selected", StatusLevel.ERROR)
            return
        self.state.pending_delete = selected
        self.state.mode = Mode.DELETING

    def _handle_form(self, key: str) -> None:
        form = self.state.form
        if form is None:
            self.state.back_to_listing()
            return

        command = form.handle_key(key)
        if command is FormCommand.CANCEL:
            self.state.back_to_listing()
            self.state.set_status("Cancelled")
        elif command is FormCommand.SUBMIT:
            self._submit(form)

    def _submit(self, form: EventForm) -> None:
        try:
            if form.event_id is not None:
                event = self.store.update(form.event_id, form.patch())
                event_id = event.id
                message = f"Saved {event.event_type.label.lower()} #{event_id}"
            else:
                draft = form.submit()
                event_id = self.store.create(draft)
                message = f"Added {draft.event_type.label.lower()} #{event_id}"
        except ValidationError as exc:
            # Stay in the form; every typed value is kept
            form.errors.setdefault(exc.field or TIME_FIELD, str(exc))
            logger.debug("Form rejected: %s", exc)
            return
        except NotFoundError as exc:
            self.state.back_to_listing()
            self._storage_failure("Cannot save", exc)
            return
        except PersistenceError as exc:
            self.state.set_status(f"Cannot save: {exc}", StatusLevel.ERROR)
            logger.exception("Failed to save event")
            return

        self.state.back_to_listing()
        self.reload()
        self.state.select_id(event_id)
        self.state.set_status(message)

    def _handle_delete(self, key: str) -> None:
        event = self.state.pending_delete
        self.state.back_to_listing()
        if event is None:
            return
        if key not in CONFIRM_DELETE_KEYS:
            self.state.set_status("Delete cancelled")
            return

        try:
            self.store.delete(event.id)
        except (NotFoundError, PersistenceError) as exc:
            self._storage_failure("Cannot delete", exc)
            return
        self.reload()
        self.state.set_status(f"Deleted {event.event_type.label.lower()} #{event.id}")

    def _storage_failure(self, action: str, exc: Exception) -> None:
        if isinstance(exc, NotFoundError):
            logger.warning("%s: %s", action, exc)
        else:
            logger.error("%s: %s", action, exc, exc_info=exc)
        self.reload()
        self.state.set_status(f"{action}: {exc}", StatusLevel.ERROR)
