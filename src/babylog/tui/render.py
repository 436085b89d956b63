"""Build rich renderables for each session mode."""

from __future__ import annotations

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..events.models import Event, EventType
from ..events.validation import quantity_unit
from ..utils.time import format_duration_minutes, format_ts_for_display
from .actions import ActionMap
from .form import EventForm, FieldKind
from .state import Mode, SessionState, StatusLevel

APP_TITLE = "babylog"
NOTES_PREVIEW_LENGTH = 40


def format_quantity(event_type: EventType, detail: str | None, quantity: int | None) -> str:
    if quantity is None:
        return ""
    unit = quantity_unit(event_type, detail)
    if unit == "min":
        return format_duration_minutes(quantity)
    if unit:
        return f"{quantity} {unit}"
    return str(quantity)


def _preview(notes: str | None) -> str:
    if not notes:
        return ""
    first_line = notes.splitlines()[0]
    if len(first_line) > NOTES_PREVIEW_LENGTH:
        return first_line[: NOTES_PREVIEW_LENGTH - 1] + "…"
    return first_line


def render_menu(action_map: ActionMap) -> Text:
    text = Text()
    for index, (key, label) in enumerate(action_map.menu()):
        if index:
            text.append("  ")
        text.append(f"[{key}]", style="bold cyan")
        text.append(f" {label}")
    return text


def render_events_table(state: SessionState, *, tz: str) -> Table:
    title = "Events"
    if state.type_filter is not None:
        title += f" ({state.type_filter.label})"
    table = Table(title=title, expand=True, show_lines=False)
    table.add_column("#", justify="right", style="dim", no_wrap=True)
    table.add_column("Time", no_wrap=True)
    table.add_column("Type", no_wrap=True)
    table.add_column("Detail")
    table.add_column("Amount", justify="right")
    table.add_column("Notes")

    for index, event in enumerate(state.events):
        style = "reverse" if index == state.selected else None
        # Text cells: stored values are shown verbatim, never parsed as markup
        cells = (
            str(event.id),
            format_ts_for_display(event.occurred_at, tz=tz),
            event.event_type.label,
            event.detail or "",
            format_quantity(event.event_type, event.detail, event.quantity),
            _preview(event.notes),
        )
        table.add_row(*(Text(cell) for cell in cells), style=style)
    return table


def render_form(form: EventForm) -> Panel:
    grid = Table.grid(padding=(0, 1))
    grid.add_column(no_wrap=True)
    grid.add_column()

    shown = set()
    for index, field in enumerate(form.fields):
        shown.add(field.name)
        focused = index == form.focus
        marker = "›" if focused else " "
        value = form.display_value(field.name)
        if field.kind is FieldKind.CHOICE:
            value_text = Text(f"◂ {value} ▸" if focused else value)
        else:
            value_text = Text(value + ("_" if focused else ""))
        if focused:
            value_text.stylize("bold")
        grid.add_row(Text(f"{marker} {field.label}:"), value_text)
        error = form.errors.get(field.name)
        if error:
            grid.add_row(Text(""), Text(f"✗ {error}", style="red"))

    # Errors for fields the form does not show
    for name, error in form.errors.items():
        if name not in shown:
            grid.add_row(Text(""), Text(f"✗ {error}", style="red"))

    hint = Text(
        "tab/↓ next  shift+tab/↑ previous  ←/→ change  enter save  esc cancel",
        style="dim",
    )
    return Panel(Group(grid, Text(""), hint), title=form.title, border_style="cyan")


def render_delete_confirmation(event: Event, *, tz: str) -> Panel:
    summary = Text()
    summary.append(f"{event.event_type.label}", style="bold")
    summary.append(f" at {format_ts_for_display(event.occurred_at, tz=tz)}")
    amount = format_quantity(event.event_type, event.detail, event.quantity)
    if event.detail:
        summary.append(f", {event.detail}")
    if amount:
        summary.append(f", {amount}")
    prompt = Text("Press y to delete, any other key to cancel.", style="yellow")
    return Panel(
        Group(summary, Text(""), prompt),
        title=f"Delete event #{event.id}?",
        border_style="red",
    )


def render_status(state: SessionState) -> Text:
    if not state.status:
        return Text("")
    style = "red" if state.status_level is StatusLevel.ERROR else "green"
    return Text(state.status, style=style)


def render_screen(state: SessionState, *, action_map: ActionMap, tz: str) -> RenderableType:
    """Full screen for the current mode."""
    header = Text(APP_TITLE, style="bold magenta")
    parts: list[RenderableType] = [header]

    if state.mode is Mode.LISTING:
        parts.append(render_menu(action_map))
        if state.events:
            parts.append(render_events_table(state, tz=tz))
        else:
            parts.append(Text("No events yet. Press a to add one.", style="dim"))
    elif state.mode in (Mode.CREATING, Mode.EDITING) and state.form is not None:
        parts.append(render_form(state.form))
    elif state.mode is Mode.DELETING and state.pending_delete is not None:
        parts.append(render_delete_confirmation(state.pending_delete, tz=tz))

    parts.append(render_status(state))
    return Group(*parts)
