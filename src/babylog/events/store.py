"""Typed event storage on top of the generic CRUD helpers.

`EventStore` owns one SQLite connection handle for its lifetime. Every
public call runs in its own transaction, so a call either fully applies or
raises; callers never see a half-written event.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from ..database import crud, queries
from ..database.connection import get_connection, transaction
from ..database.errors import NotFoundError, ensure_found, from_sqlite_error
from ..database.migrations import ensure_current
from ..utils.time import format_ts_utc_z, parse_ts_utc
from .models import Event, EventDraft, EventType
from .validation import apply_patch, validate_draft

logger = logging.getLogger(__name__)

EVENTS_TABLE = "events"

# SQLite INTEGER range; ids outside it can never be stored
MIN_ROW_ID = -(2**63)
MAX_ROW_ID = 2**63 - 1


def _draft_to_row(draft: EventDraft) -> dict[str, Any]:
    return {
        "event_type": draft.event_type.value,
        "occurred_at": format_ts_utc_z(draft.occurred_at),
        "quantity": draft.quantity,
        "detail": draft.detail,
        "notes": draft.notes,
    }


def _row_to_event(row: Mapping[str, Any]) -> Event:
    return Event(
        id=int(row["id"]),
        event_type=EventType(row["event_type"]),
        occurred_at=parse_ts_utc(row["occurred_at"]),
        quantity=row["quantity"],
        detail=row["detail"],
        notes=row["notes"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


@dataclass(frozen=True)
class EventFilter:
    """Restricts a listing. Empty filter matches every event.

    `since` is inclusive and `until` exclusive; both are aware datetimes.
    """

    event_type: EventType | None = None
    since: datetime | None = None
    until: datetime | None = None

    def where(self) -> tuple[str, list[Any]]:
        clauses: list[str] = []
        params: list[Any] = []
        if self.event_type is not None:
            clauses.append("event_type = ?")
            params.append(self.event_type.value)
        if self.since is not None:
            clauses.append("occurred_at >= ?")
            params.append(format_ts_utc_z(self.since))
        if self.until is not None:
            clauses.append("occurred_at < ?")
            params.append(format_ts_utc_z(self.until))
        if not clauses:
            return "", params
        return " WHERE " + " AND ".join(clauses), params


class EventListing:
    """Events matching a filter, newest first.

    Nothing is read until iteration starts, and every iteration runs a
    fresh query, so the same listing can be walked again after writes.
    Ties on `occurred_at` are broken by descending id (latest entry first).
    """

    def __init__(self, conn: sqlite3.Connection, event_filter: EventFilter) -> None:
        self._conn = conn
        self.event_filter = event_filter

    def _sql(self) -> tuple[str, list[Any]]:
        where_sql, params = self.event_filter.where()
        sql = f"SELECT * FROM {EVENTS_TABLE}{where_sql} ORDER BY occurred_at DESC, id DESC"  # noqa: S608
        return sql, params

    def __iter__(self) -> Iterator[Event]:
        sql, params = self._sql()
        try:
            for row in queries.iter_rows(self._conn, sql, tuple(params)):
                yield _row_to_event(row)
        except sqlite3.Error as exc:
            raise from_sqlite_error(exc) from exc

    def first(self) -> Event | None:
        return next(iter(self), None)


class EventStore:
    """Create, read, list, update and delete events over one connection."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @classmethod
    def open(cls, db_path: Path | str, *, auto_migrate: bool = True) -> EventStore:
        """Open the database, make sure its schema is current, return a store.

        Raises:
            PersistenceError: If the file cannot be opened.
            MigrationError: If migrations fail, or are pending and
                auto_migrate is False.
        """
        conn = get_connection(db_path)
        try:
            applied = ensure_current(conn, auto_migrate=auto_migrate)
        except Exception:
            conn.close()
            raise
        if applied:
            logger.info("Applied %d migration(s) to %s", len(applied), db_path)
        return cls(conn)

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    def close(self) -> None:
        self._conn.close()
        logger.debug("Event store closed")

    def __enter__(self) -> EventStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def create(self, draft: EventDraft) -> int:
        """Validate and insert a new event.

        Returns:
            The id assigned to the event.

        Raises:
            ValidationError: If the draft violates the field rules.
            PersistenceError: On I/O or constraint failure.
        """
        clean = validate_draft(draft)
        with transaction(existing_connection=self._conn):
            event_id = crud.insert(self._conn, EVENTS_TABLE, _draft_to_row(clean))
        logger.info("Created %s event %s", clean.event_type.value, event_id)
        return event_id

    def create_many(self, drafts: Iterable[EventDraft]) -> list[int]:
        """Validate then insert several events in one transaction.

        Every draft is validated before anything is written; if any insert
        fails, none are kept.
        """
        clean = [validate_draft(draft) for draft in drafts]
        with transaction(existing_connection=self._conn):
            ids = [crud.insert(self._conn, EVENTS_TABLE, _draft_to_row(d)) for d in clean]
        logger.info("Created %d events", len(ids))
        return ids

    def _check_id(self, event_id: int) -> None:
        if not MIN_ROW_ID <= event_id <= MAX_ROW_ID:
            raise NotFoundError(f"Event {event_id} not found")

    def _fetch(self, event_id: int) -> Event:
        self._check_id(event_id)
        row = crud.select_one(self._conn, EVENTS_TABLE, {"id": event_id})
        return _row_to_event(ensure_found(row, f"Event {event_id} not found"))

    def read(self, event_id: int) -> Event:
        """Return the event with this id.

        Raises:
            NotFoundError: If no event has this id.
        """
        return self._fetch(event_id)

    def list(self, event_filter: EventFilter | None = None) -> EventListing:
        """Return a lazy, restartable listing ordered newest first."""
        return EventListing(self._conn, event_filter or EventFilter())

    def count(self, event_filter: EventFilter | None = None) -> int:
        where_sql, params = (event_filter or EventFilter()).where()
        sql = f"SELECT COUNT(*) AS n FROM {EVENTS_TABLE}{where_sql}"  # noqa: S608
        try:
            row = queries.fetch_one(self._conn, sql, tuple(params))
        except sqlite3.Error as exc:
            raise from_sqlite_error(exc) from exc
        return int(row["n"]) if row else 0

    def update(self, event_id: int, patch: Mapping[str, Any]) -> Event:
        """Apply a patch to an event, re-validating every field.

        A patch that leaves the event unchanged performs no write.

        Returns:
            The event as stored after the update.

        Raises:
            NotFoundError: If no event has this id.
            ValidationError: If the patch is invalid.
            PersistenceError: On I/O or constraint failure.
        """
        with transaction(existing_connection=self._conn):
            current = self._fetch(event_id)
            merged = apply_patch(current, patch)
            if merged == current.to_draft():
                logger.debug("Event %s unchanged; skipping write", event_id)
                return current

            crud.update(self._conn, EVENTS_TABLE, {"id": event_id}, _draft_to_row(merged))
            updated = self._fetch(event_id)
        logger.info("Updated event %s", event_id)
        return updated

    def delete(self, event_id: int) -> None:
        """Delete an event.

        Raises:
            NotFoundError: If no event has this id.
            PersistenceError: On I/O failure.
        """
        self._check_id(event_id)
        with transaction(existing_connection=self._conn):
            deleted = crud.delete(self._conn, EVENTS_TABLE, {"id": event_id})
            if deleted == 0:
                raise NotFoundError(f"Event {event_id} not found")
        logger.info("Deleted event %s", event_id)
