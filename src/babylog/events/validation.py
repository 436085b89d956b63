"""Field rules per event type and validation of drafts and patches.

Every `EventType` has an entry in `RULES`; the check at the bottom of this
module fails the import if one is missing, so adding a type forces a
decision about its detail choices and quantity range.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any

from .models import Event, EventDraft, EventType

NOTES_MAX_LENGTH = 500
PATCHABLE_FIELDS = ("occurred_at", "quantity", "detail", "notes")
IMMUTABLE_FIELDS = ("id", "event_type")


class ValidationError(ValueError):
    """Raised when user input violates the field rules.

    Attributes:
        field: Name of the offending field, or None for whole-record errors.
    """

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


@dataclass(frozen=True)
class QuantityRule:
    """Inclusive integer range and the unit it is measured in."""

    unit: str
    minimum: int
    maximum: int

    def check(self, value: int) -> None:
        if not self.minimum <= value <= self.maximum:
            msg = f"must be between {self.minimum} and {self.maximum} {self.unit}"
            raise ValidationError(f"Quantity {msg}", field="quantity")


@dataclass(frozen=True)
class TypeRules:
    """Detail choices and quantity rule(s) for one event type.

    `quantity_by_detail` overrides `quantity` for specific details. A type
    with no quantity rule at all must leave quantity empty.
    """

    details: tuple[str, ...] = ()
    quantity: QuantityRule | None = None
    quantity_by_detail: Mapping[str, QuantityRule] = field(default_factory=dict)

    def quantity_rule(self, detail: str | None) -> QuantityRule | None:
        if detail is not None and detail in self.quantity_by_detail:
            return self.quantity_by_detail[detail]
        return self.quantity


BOTTLE_ML = QuantityRule(unit="ml", minimum=1, maximum=1000)
BREAST_MIN = QuantityRule(unit="min", minimum=1, maximum=240)

RULES: dict[EventType, TypeRules] = {
    EventType.FEEDING: TypeRules(
        details=("breastmilk", "formula", "breast"),
        quantity_by_detail={
            "breastmilk": BOTTLE_ML,
            "formula": BOTTLE_ML,
            "breast": BREAST_MIN,
        },
    ),
    EventType.DIAPER_CHANGE: TypeRules(details=("wet", "dirty", "mixed", "dry")),
    EventType.SLEEP: TypeRules(quantity=QuantityRule(unit="min", minimum=1, maximum=1440)),
    EventType.PUMP: TypeRules(quantity=QuantityRule(unit="ml", minimum=1, maximum=1000)),
    EventType.SKIN_TO_SKIN: TypeRules(quantity=QuantityRule(unit="min", minimum=1, maximum=600)),
}


def rules_for(event_type: EventType) -> TypeRules:
    return RULES[event_type]


def quantity_unit(event_type: EventType, detail: str | None) -> str | None:
    """Unit the quantity of this type/detail is measured in, if any."""
    rule = rules_for(event_type).quantity_rule(detail)
    return rule.unit if rule else None


def coerce_event_type(value: EventType | str) -> EventType:
    """Accept an EventType, its value ("diaper_change") or label ("Diaper change")."""
    if isinstance(value, EventType):
        return value

    text = str(value).strip().lower().replace("-", "_").replace(" ", "_")
    for event_type in EventType:
        if text == event_type.value:
            return event_type

    choices = ", ".join(t.value for t in EventType)
    raise ValidationError(
        f"Unknown event type {value!r}; expected one of: {choices}", field="event_type"
    )


def coerce_quantity(value: int | str | None) -> int | None:
    """Parse a quantity from form text or CSV; empty means no quantity."""
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError("Quantity must be a whole number", field="quantity")
    if isinstance(value, int):
        return value

    text = str(value).strip()
    if not text:
        return None
    if not text.isdecimal():
        raise ValidationError(
            f"Quantity must be a whole number, got {text!r}", field="quantity"
        )
    return int(text)


def _normalize_text(value: str | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_occurred_at(value: Any) -> datetime:
    if not isinstance(value, datetime):
        raise ValidationError("Time is required", field="occurred_at")
    if value.tzinfo is None:
        raise ValidationError("Time must carry a timezone", field="occurred_at")
    return value.astimezone(UTC).replace(microsecond=0)


def validate_draft(draft: EventDraft) -> EventDraft:
    """Check every field against the rules for the draft's type.

    Returns:
        The normalized draft: UTC time truncated to seconds, detail
        lower-cased, blank notes/detail turned into None.

    Raises:
        ValidationError: Naming the first offending field.
    """
    event_type = coerce_event_type(draft.event_type)
    rules = rules_for(event_type)
    occurred_at = _normalize_occurred_at(draft.occurred_at)

    detail = _normalize_text(draft.detail)
    if detail is not None:
        detail = detail.lower()
    if rules.details:
        if detail is None:
            choices = ", ".join(rules.details)
            raise ValidationError(
                f"{event_type.label} needs a detail: {choices}", field="detail"
            )
        if detail not in rules.details:
            choices = ", ".join(rules.details)
            raise ValidationError(
                f"Unknown {event_type.label.lower()} detail {detail!r}; expected one of: {choices}",
                field="detail",
            )
    elif detail is not None:
        raise ValidationError(f"{event_type.label} takes no detail", field="detail")

    quantity = coerce_quantity(draft.quantity)
    rule = rules.quantity_rule(detail)
    if rule is None:
        if quantity is not None:
            raise ValidationError(f"{event_type.label} takes no quantity", field="quantity")
    elif quantity is None:
        raise ValidationError(
            f"{event_type.label} needs a quantity in {rule.unit}", field="quantity"
        )
    else:
        rule.check(quantity)

    notes = _normalize_text(draft.notes)
    if notes is not None and len(notes) > NOTES_MAX_LENGTH:
        raise ValidationError(
            f"Notes must be at most {NOTES_MAX_LENGTH} characters", field="notes"
        )

    return EventDraft(
        event_type=event_type,
        occurred_at=occurred_at,
        quantity=quantity,
        detail=detail,
        notes=notes,
    )


def apply_patch(event: Event, patch: Mapping[str, Any]) -> EventDraft:
    """Merge a patch into an existing event and validate the result.

    Args:
        event: Current stored event.
        patch: Field name to new value. Only `PATCHABLE_FIELDS` may change;
            `event_type` may be present only with its current value.

    Returns:
        The validated merged draft.

    Raises:
        ValidationError: If the patch names an unknown or immutable field or
            the merged event violates the rules.
    """
    changes: dict[str, Any] = {}
    for name, value in patch.items():
        if name == "event_type":
            if coerce_event_type(value) is not event.event_type:
                raise ValidationError("Event type cannot be changed", field="event_type")
            continue
        if name in IMMUTABLE_FIELDS:
            raise ValidationError(f"{name} cannot be changed", field=name)
        if name not in PATCHABLE_FIELDS:
            raise ValidationError(f"Unknown field {name!r}", field=name)
        changes[name] = value

    return validate_draft(replace(event.to_draft(), **changes))


_missing = set(EventType) - set(RULES)
if _missing:
    raise RuntimeError(f"No field rules for event types: {sorted(t.value for t in _missing)}")
