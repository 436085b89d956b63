"""Bulk import of events from CSV files.

Two layouts are recognised from the header row:

- typed: `event_type,occurred_at[,quantity][,detail][,notes]`, one event per row.
- wide: `dt,urine,stool,skin2skin,breastfeed,breastmilk,formula,pump`, the
  spreadsheet layout where one row records several measurements at once.
  Each non-zero measurement becomes its own event at the row's time.

Rows are parsed and validated first; valid rows are then written in a
single transaction and invalid rows are reported by line number.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..utils.time import normalize_instant
from .models import EventDraft, EventType
from .store import EventStore
from .validation import ValidationError, coerce_event_type, coerce_quantity, validate_draft

logger = logging.getLogger(__name__)

TYPED_REQUIRED = ("event_type", "occurred_at")
WIDE_COLUMNS = ("dt", "urine", "stool", "skin2skin", "breastfeed", "breastmilk", "formula", "pump")

TRUE_VALUES = {"true", "t", "yes", "y", "1"}
FALSE_VALUES = {"false", "f", "no", "n", "0", ""}


@dataclass
class CsvParseResult:
    """Drafts parsed from a CSV file, plus rows that could not be used."""

    layout: str
    rows_read: int = 0
    drafts: list[EventDraft] = field(default_factory=list)
    failures: list[dict[str, Any]] = field(default_factory=list)
    skipped: int = 0


def _parse_bool(raw: str | None, *, column: str) -> bool:
    text = (raw or "").strip().lower()
    if text in TRUE_VALUES:
        return True
    if text in FALSE_VALUES:
        return False
    raise ValidationError(f"{column} must be true or false, got {raw!r}", field=column)


def _parse_amount(raw: str | None, *, column: str) -> int:
    try:
        value = coerce_quantity(raw)
    except ValidationError as exc:
        raise ValidationError(f"{column}: {exc}", field=column) from exc
    return value or 0


def _detect_layout(fieldnames: list[str]) -> str:
    names = {name.strip() for name in fieldnames}
    if all(col in names for col in TYPED_REQUIRED):
        return "typed"
    if all(col in names for col in WIDE_COLUMNS):
        return "wide"
    msg = (
        "Unrecognised CSV header. Expected columns "
        f"{', '.join(TYPED_REQUIRED)} (typed) or {', '.join(WIDE_COLUMNS)} (wide)"
    )
    raise ValueError(msg)


def _typed_row(row: dict[str, str], *, tz: str) -> list[EventDraft]:
    try:
        occurred_at = normalize_instant(row.get("occurred_at") or "", tz=tz, field="occurred_at")
    except ValueError as exc:
        raise ValidationError(str(exc), field="occurred_at") from exc

    draft = EventDraft(
        event_type=coerce_event_type(row.get("event_type") or ""),
        occurred_at=occurred_at,
        quantity=coerce_quantity(row.get("quantity")),
        detail=row.get("detail"),
        notes=row.get("notes"),
    )
    return [validate_draft(draft)]


def _wide_row(row: dict[str, str], *, tz: str) -> list[EventDraft]:
    try:
        occurred_at = normalize_instant(row.get("dt") or "", tz=tz, field="dt")
    except ValueError as exc:
        raise ValidationError(str(exc), field="dt") from exc

    urine = _parse_bool(row.get("urine"), column="urine")
    stool = _parse_bool(row.get("stool"), column="stool")
    measurements: list[tuple[EventType, str | None, int | None]] = []

    if urine or stool:
        detail = "mixed" if urine and stool else ("wet" if urine else "dirty")
        measurements.append((EventType.DIAPER_CHANGE, detail, None))

    for column, event_type, detail in (
        ("breastmilk", EventType.FEEDING, "breastmilk"),
        ("formula", EventType.FEEDING, "formula"),
        ("breastfeed", EventType.FEEDING, "breast"),
        ("pump", EventType.PUMP, None),
        ("skin2skin", EventType.SKIN_TO_SKIN, None),
    ):
        amount = _parse_amount(row.get(column), column=column)
        if amount:
            measurements.append((event_type, detail, amount))

    return [
        validate_draft(
            EventDraft(
                event_type=event_type,
                occurred_at=occurred_at,
                quantity=quantity,
                detail=detail,
            )
        )
        for event_type, detail, quantity in measurements
    ]


def parse_events_csv(path: Path, *, tz: str) -> CsvParseResult:
    """Parse a CSV file into validated drafts without touching the database.

    Args:
        path: CSV file to read.
        tz: IANA zone used for timestamps without an offset.

    Returns:
        Parsed drafts and per-line failures. Line numbers count the header
        as line 1.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the header matches neither layout.
    """
    with path.open(newline="", encoding="utf-8-sig") as handle:
        reader = csv.DictReader(handle)
        layout = _detect_layout(list(reader.fieldnames or []))
        parse_row = _typed_row if layout == "typed" else _wide_row
        result = CsvParseResult(layout=layout)

        for row in reader:
            result.rows_read += 1
            line = reader.line_num
            clean_row = {(k or "").strip(): v for k, v in row.items()}
            try:
                drafts = parse_row(clean_row, tz=tz)
            except ValidationError as exc:
                logger.debug("Skipping CSV line %d: %s", line, exc)
                result.failures.append({"item": f"line {line}", "reason": str(exc)})
                continue
            if not drafts:
                result.skipped += 1
                continue
            result.drafts.extend(drafts)

    logger.info(
        "Parsed %s (%s layout): %d row(s), %d event(s), %d failure(s)",
        path,
        layout,
        result.rows_read,
        len(result.drafts),
        len(result.failures),
    )
    return result


def import_events_csv(
    store: EventStore,
    path: Path,
    *,
    tz: str,
    strict: bool = False,
) -> dict[str, Any]:
    """Import a CSV file into the store.

    Args:
        store: Target event store.
        path: CSV file to read.
        tz: IANA zone used for timestamps without an offset.
        strict: If True, write nothing when any row fails.

    Returns:
        Standardized result dictionary (success, total, succeeded, failed,
        skipped, failures, message).
    """
    parsed = parse_events_csv(path, tz=tz)

    if strict and parsed.failures:
        ids: list[int] = []
        message = f"Nothing imported: {len(parsed.failures)} row(s) failed validation"
    else:
        ids = store.create_many(parsed.drafts)
        message = f"Imported {len(ids)} event(s) from {path.name} ({parsed.layout} layout)"

    return {
        "success": not parsed.failures,
        "total": parsed.rows_read,
        "succeeded": len(ids),
        "failed": len(parsed.failures),
        "skipped": parsed.skipped,
        "failures": parsed.failures,
        "message": message,
    }
