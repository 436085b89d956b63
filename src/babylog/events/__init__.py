"""Care events: model, field rules, storage and CSV import."""

from .csv_import import import_events_csv, parse_events_csv
from .models import Event, EventDraft, EventType
from .store import EventFilter, EventListing, EventStore
from .validation import (
    NOTES_MAX_LENGTH,
    RULES,
    ValidationError,
    apply_patch,
    coerce_event_type,
    coerce_quantity,
    quantity_unit,
    rules_for,
    validate_draft,
)

__all__ = [
    "Event",
    "EventDraft",
    "EventType",
    "EventFilter",
    "EventListing",
    "EventStore",
    "ValidationError",
    "NOTES_MAX_LENGTH",
    "RULES",
    "rules_for",
    "quantity_unit",
    "coerce_event_type",
    "coerce_quantity",
    "validate_draft",
    "apply_patch",
    "parse_events_csv",
    "import_events_csv",
]
