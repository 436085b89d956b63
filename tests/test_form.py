"""Tests for the keyboard-driven event form."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from babylog.events import Event, EventType, ValidationError
from babylog.tui import keys
from babylog.tui.form import (
    DETAIL_FIELD,
    NOTES_FIELD,
    QUANTITY_FIELD,
    TIME_FIELD,
    TYPE_FIELD,
    EventForm,
    FormCommand,
)

NOW = datetime(2024, 3, 1, 8, 0, 42, tzinfo=UTC)


def _press(form: EventForm, *pressed: str) -> FormCommand:
    command = FormCommand.NONE
    for key in pressed:
        command = form.handle_key(key)
    return command


def _focus(form: EventForm, name: str) -> None:
    while form.focused.name != name:
        form.handle_key(keys.TAB)


@pytest.mark.unit
class TestCreateForm:
    """Tests for a new-event form."""

    def test_prefilled_with_now_in_local_zone(self) -> None:
        form = EventForm.for_create(tz="Europe/Paris", now=NOW)
        assert form.values[TIME_FIELD] == "2024-03-01 09:00"
        assert form.values[DETAIL_FIELD] == "breastmilk"
        assert [f.name for f in form.fields] == [
            TYPE_FIELD,
            TIME_FIELD,
            DETAIL_FIELD,
            QUANTITY_FIELD,
            NOTES_FIELD,
        ]

    def test_cycling_type_changes_fields(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        _press(form, keys.RIGHT)
        assert form.event_type is EventType.DIAPER_CHANGE
        assert form.values[DETAIL_FIELD] == "wet"
        assert QUANTITY_FIELD not in [f.name for f in form.fields]
        _press(form, keys.RIGHT)
        assert form.event_type is EventType.SLEEP
        assert DETAIL_FIELD not in [f.name for f in form.fields]
        _press(form, keys.LEFT, keys.LEFT)
        assert form.event_type is EventType.FEEDING

    def test_detail_cycle_changes_quantity_unit(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        _focus(form, DETAIL_FIELD)
        assert form.quantity_unit == "ml"
        _press(form, keys.RIGHT, keys.RIGHT)
        assert form.values[DETAIL_FIELD] == "breast"
        assert form.quantity_unit == "min"
        _press(form, keys.RIGHT)
        assert form.values[DETAIL_FIELD] == "breastmilk"

    def test_quantity_accepts_digits_only(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        _focus(form, QUANTITY_FIELD)
        _press(form, "9", "x", "0", "-", "5", keys.BACKSPACE)
        assert form.values[QUANTITY_FIELD] == "90"

    def test_focus_wraps(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        _press(form, keys.BACKTAB)
        assert form.focused.name == NOTES_FIELD
        _press(form, keys.DOWN)
        assert form.focused.name == TYPE_FIELD

    def test_submit_builds_validated_draft(self) -> None:
        form = EventForm.for_create(tz="Europe/Paris", now=NOW)
        _focus(form, QUANTITY_FIELD)
        _press(form, "1", "2", "0", keys.TAB, *"happy")
        assert _press(form, keys.ENTER) is FormCommand.SUBMIT
        draft = form.submit()
        assert draft.event_type is EventType.FEEDING
        assert draft.occurred_at == datetime(2024, 3, 1, 8, 0, tzinfo=UTC)
        assert (draft.detail, draft.quantity, draft.notes) == ("breastmilk", 120, "happy")

    def test_failed_submit_keeps_input_and_marks_field(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        _focus(form, QUANTITY_FIELD)
        _press(form, "5", "0", "0", "0", keys.TAB, *"note")
        with pytest.raises(ValidationError):
            form.submit()
        assert form.values[QUANTITY_FIELD] == "5000"
        assert form.values[NOTES_FIELD] == "note"
        assert QUANTITY_FIELD in form.errors
        assert form.focused.name == QUANTITY_FIELD

        _press(form, keys.BACKSPACE)
        assert QUANTITY_FIELD not in form.errors

    def test_bad_time_is_reported_on_time_field(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        _focus(form, TIME_FIELD)
        for _ in range(len(form.values[TIME_FIELD])):
            form.handle_key(keys.BACKSPACE)
        _press(form, *"soon")
        with pytest.raises(ValidationError):
            form.submit()
        assert TIME_FIELD in form.errors
        assert form.values[TIME_FIELD] == "soon"

    def test_escape_cancels(self) -> None:
        form = EventForm.for_create(tz="UTC", now=NOW)
        assert _press(form, keys.ESC) is FormCommand.CANCEL


@pytest.mark.unit
class TestEditForm:
    """Tests for editing an existing event."""

    @pytest.fixture
    def event(self) -> Event:
        return Event(
            id=3,
            event_type=EventType.DIAPER_CHANGE,
            occurred_at=NOW,
            detail="dirty",
            notes="after bath",
        )

    def test_type_is_not_editable(self, event: Event) -> None:
        form = EventForm.for_edit(event, tz="UTC")
        assert TYPE_FIELD not in [f.name for f in form.fields]
        assert form.title == "Edit diaper change #3"

    def test_unchanged_submit_keeps_seconds(self, event: Event) -> None:
        form = EventForm.for_edit(event, tz="UTC")
        assert form.values[TIME_FIELD] == "2024-03-01 08:00"
        patch = form.patch()
        assert patch["occurred_at"] == NOW
        assert patch["detail"] == "dirty"
        assert patch["notes"] == "after bath"
        assert patch["quantity"] is None

    def test_changed_time_is_reparsed(self, event: Event) -> None:
        form = EventForm.for_edit(event, tz="UTC")
        form.handle_key(keys.BACKSPACE)
        form.handle_key("5")
        assert form.patch()["occurred_at"] == datetime(2024, 3, 1, 8, 5, tzinfo=UTC)
