"""Keyboard-driven event form.

The form keeps the raw text of every field, so a failed submit never loses
what was typed. Parsing and validation happen only on submit.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from ..events.models import Event, EventDraft, EventType
from ..events.validation import (
    ValidationError,
    coerce_quantity,
    quantity_unit,
    rules_for,
    validate_draft,
)
from ..utils.time import format_local_input, parse_local_input, utc_now
from . import keys

TYPE_FIELD = "event_type"
TIME_FIELD = "occurred_at"
DETAIL_FIELD = "detail"
QUANTITY_FIELD = "quantity"
NOTES_FIELD = "notes"

EVENT_TYPES = tuple(EventType)


class FieldKind(Enum):
    CHOICE = "choice"
    TEXT = "text"
    DIGITS = "digits"


@dataclass(frozen=True)
class FormField:
    name: str
    label: str
    kind: FieldKind


class FormCommand(Enum):
    """What the session should do after the form consumed a key."""

    NONE = "none"
    SUBMIT = "submit"
    CANCEL = "cancel"


class EventForm:
    """Editable state for creating or editing one event.

    Args:
        event_type: Type of the event being entered.
        tz: IANA zone used to show and parse the time field.
        values: Initial raw text per field name.
        event_id: Id of the event being edited, or None when creating.
    """

    def __init__(
        self,
        event_type: EventType,
        *,
        tz: str,
        values: dict[str, str] | None = None,
        event_id: int | None = None,
        original: Event | None = None,
    ) -> None:
        self.event_type = event_type
        self.tz = tz
        self.event_id = event_id
        self.original = original
        self.values: dict[str, str] = {
            TIME_FIELD: "",
            DETAIL_FIELD: "",
            QUANTITY_FIELD: "",
            NOTES_FIELD: "",
        }
        self.values.update(values or {})
        self.errors: dict[str, str] = {}
        self.focus = 0
        self._initial_time = self.values[TIME_FIELD]
        if not self.values[DETAIL_FIELD]:
            self._reset_detail()

    @classmethod
    def for_create(
        cls,
        *,
        tz: str,
        event_type: EventType = EventType.FEEDING,
        now: datetime | None = None,
    ) -> EventForm:
        """Blank form with the time prefilled to now."""
        return cls(
            event_type,
            tz=tz,
            values={TIME_FIELD: format_local_input(now or utc_now(), tz=tz)},
        )

    @classmethod
    def for_edit(cls, event: Event, *, tz: str) -> EventForm:
        """Form prefilled with an existing event's values."""
        return cls(
            event.event_type,
            tz=tz,
            values={
                TIME_FIELD: format_local_input(event.occurred_at, tz=tz),
                DETAIL_FIELD: event.detail or "",
                QUANTITY_FIELD: "" if event.quantity is None else str(event.quantity),
                NOTES_FIELD: event.notes or "",
            },
            event_id=event.id,
            original=event,
        )

    @property
    def editing(self) -> bool:
        return self.event_id is not None

    @property
    def title(self) -> str:
        if self.editing:
            return f"Edit {self.event_type.label.lower()} #{self.event_id}"
        return "New event"

    @property
    def fields(self) -> list[FormField]:
        """Fields shown for the current type, in focus order."""
        rules = rules_for(self.event_type)
        fields: list[FormField] = []
        if not self.editing:
            fields.append(FormField(TYPE_FIELD, "Type", FieldKind.CHOICE))
        fields.append(FormField(TIME_FIELD, "Time", FieldKind.TEXT))
        if rules.details:
            fields.append(FormField(DETAIL_FIELD, "Detail", FieldKind.CHOICE))
        unit = self.quantity_unit
        if unit is not None:
            fields.append(FormField(QUANTITY_FIELD, f"Amount ({unit})", FieldKind.DIGITS))
        fields.append(FormField(NOTES_FIELD, "Notes", FieldKind.TEXT))
        return fields

    @property
    def focused(self) -> FormField:
        return self.fields[self.focus]

    @property
    def quantity_unit(self) -> str | None:
        return quantity_unit(self.event_type, self.values[DETAIL_FIELD] or None)

    def display_value(self, name: str) -> str:
        if name == TYPE_FIELD:
            return self.event_type.label
        return self.values[name]

    def handle_key(self, key: str) -> FormCommand:
        """Apply one keypress to the form."""
        if key == keys.ESC:
            return FormCommand.CANCEL
        if key == keys.ENTER:
            return FormCommand.SUBMIT
        if key in (keys.TAB, keys.DOWN):
            self._move_focus(1)
        elif key in (keys.BACKTAB, keys.UP):
            self._move_focus(-1)
        elif key in (keys.LEFT, keys.RIGHT):
            if self.focused.kind is FieldKind.CHOICE:
                self._cycle(1 if key == keys.RIGHT else -1)
        elif key == keys.BACKSPACE:
            self._backspace()
        elif keys.is_printable(key):
            self._type(key)
        return FormCommand.NONE

    def _move_focus(self, step: int) -> None:
        self.focus = (self.focus + step) % len(self.fields)

    def _cycle(self, step: int) -> None:
        field = self.focused
        if field.name == TYPE_FIELD:
            index = EVENT_TYPES.index(self.event_type)
            self.event_type = EVENT_TYPES[(index + step) % len(EVENT_TYPES)]
            self._reset_detail()
            self.values[QUANTITY_FIELD] = ""
            self.errors.clear()
        elif field.name == DETAIL_FIELD:
            choices = rules_for(self.event_type).details
            current = self.values[DETAIL_FIELD]
            index = choices.index(current) if current in choices else -step
            self.values[DETAIL_FIELD] = choices[(index + step) % len(choices)]
            self.errors.pop(DETAIL_FIELD, None)
            self.errors.pop(QUANTITY_FIELD, None)

    def _reset_detail(self) -> None:
        choices = rules_for(self.event_type).details
        self.values[DETAIL_FIELD] = choices[0] if choices else ""

    def _backspace(self) -> None:
        field = self.focused
        if field.kind is FieldKind.CHOICE:
            return
        self.values[field.name] = self.values[field.name][:-1]
        self.errors.pop(field.name, None)

    def _type(self, char: str) -> None:
        field = self.focused
        if field.kind is FieldKind.CHOICE:
            return
        if field.kind is FieldKind.DIGITS and not char.isdigit():
            return
        self.values[field.name] += char
        self.errors.pop(field.name, None)

    def _focus_field(self, name: str | None) -> None:
        for index, field in enumerate(self.fields):
            if field.name == name:
                self.focus = index
                return

    def _parse_time(self) -> datetime:
        text = self.values[TIME_FIELD]
        if self.original is not None and text == self._initial_time:
            # Unchanged text keeps the stored instant, seconds included
            return self.original.occurred_at
        if not text.strip():
            raise ValidationError("Time is required", field=TIME_FIELD)
        try:
            return parse_local_input(text, tz=self.tz, field=TIME_FIELD)
        except ValueError as exc:
            raise ValidationError(str(exc), field=TIME_FIELD) from exc

    def submit(self) -> EventDraft:
        """Parse and validate the form.

        Returns:
            The validated draft.

        Raises:
            ValidationError: The failing field's error is also stored in
                `errors` and focus moves to that field.
        """
        self.errors.clear()
        try:
            draft = EventDraft(
                event_type=self.event_type,
                occurred_at=self._parse_time(),
                quantity=coerce_quantity(self.values[QUANTITY_FIELD]),
                detail=self.values[DETAIL_FIELD] or None,
                notes=self.values[NOTES_FIELD],
            )
            return validate_draft(draft)
        except ValidationError as exc:
            self.errors[exc.field or TIME_FIELD] = str(exc)
            self._focus_field(exc.field)
            raise

    def patch(self) -> dict[str, Any]:
        """Validated changes for an edit, as a patch for `EventStore.update`."""
        draft = self.submit()
        return {
            "occurred_at": draft.occurred_at,
            "quantity": draft.quantity,
            "detail": draft.detail,
            "notes": draft.notes,
        }
