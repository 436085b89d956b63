"""Tests for EventStore create/read/list/update/delete."""

from __future__ import annotations

import random
import sqlite3
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from babylog.database import IntegrityError, MigrationError, NotFoundError, PersistenceError, crud
from babylog.database.migrations import rollback
from babylog.events import EventDraft, EventFilter, EventStore, EventType, ValidationError


def _row(store: EventStore, event_id: int) -> dict[str, object]:
    row = store.connection.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
    return dict(row)


@pytest.mark.integration
class TestCreateRead:
    """Tests for create and read."""

    def test_read_returns_created_event(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        drafts = [
            make_draft(),
            make_draft(detail="breast", quantity=25, notes="left side"),
            make_draft(event_type=EventType.DIAPER_CHANGE, detail="mixed", quantity=None),
            make_draft(event_type=EventType.SLEEP, detail=None, quantity=95),
            make_draft(event_type=EventType.PUMP, detail=None, quantity=120),
            make_draft(event_type=EventType.SKIN_TO_SKIN, detail=None, quantity=30),
        ]
        for draft in drafts:
            event_id = store.create(draft)
            event = store.read(event_id)
            assert event.id == event_id
            assert event.to_draft() == draft

    def test_ids_are_unique(self, store: EventStore, make_draft: Callable[..., EventDraft]) -> None:
        ids = [store.create(make_draft()) for _ in range(5)]
        assert len(set(ids)) == 5

    def test_ids_are_not_reused_after_delete(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        first = store.create(make_draft())
        store.delete(first)
        assert store.create(make_draft()) != first

    def test_timestamps_stored_canonically(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        event_id = store.create(make_draft())
        row = _row(store, event_id)
        assert row["occurred_at"] == "2024-03-01T08:00:00Z"
        assert row["created_at"]
        assert row["updated_at"]

    def test_invalid_draft_is_not_written(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        with pytest.raises(ValidationError):
            store.create(make_draft(quantity=5000))
        assert store.count() == 0

    def test_constraint_failure_is_persistence_error(self, store: EventStore, t0: datetime) -> None:
        with pytest.raises(sqlite3.IntegrityError):
            store.connection.execute(
                "INSERT INTO events (event_type, occurred_at, created_at, updated_at)"
                " VALUES ('bath', '2024-03-01T08:00:00Z', 'x', 'x')"
            )
        store.connection.rollback()

        with pytest.raises(IntegrityError):
            crud.insert(
                store.connection,
                "events",
                {"event_type": "bath", "occurred_at": "2024-03-01T08:00:00Z"},
            )
        assert issubclass(IntegrityError, PersistenceError)


@pytest.mark.integration
class TestMissingIds:
    """read/update/delete of an absent id fail with NotFoundError."""

    @pytest.mark.parametrize("event_id", [0, 1, 999, -5])
    def test_absent_ids(self, store: EventStore, event_id: int) -> None:
        with pytest.raises(NotFoundError):
            store.read(event_id)
        with pytest.raises(NotFoundError):
            store.update(event_id, {"notes": "x"})
        with pytest.raises(NotFoundError):
            store.delete(event_id)

    @pytest.mark.parametrize("event_id", [2**63, -(2**63) - 1, 10**30])
    def test_ids_beyond_integer_range(
        self, store: EventStore, make_draft: Callable[..., EventDraft], event_id: int
    ) -> None:
        store.create(make_draft())
        with pytest.raises(NotFoundError):
            store.read(event_id)
        with pytest.raises(NotFoundError):
            store.update(event_id, {"notes": "x"})
        with pytest.raises(NotFoundError):
            store.delete(event_id)
        assert store.count() == 1

    def test_delete_999_on_empty_storage(self, store: EventStore) -> None:
        with pytest.raises(NotFoundError, match="999"):
            store.delete(999)

    def test_delete_twice(self, store: EventStore, make_draft: Callable[..., EventDraft]) -> None:
        event_id = store.create(make_draft())
        store.delete(event_id)
        with pytest.raises(NotFoundError):
            store.delete(event_id)


@pytest.mark.integration
class TestList:
    """Tests for the lazy, restartable listing."""

    def test_newest_first_for_any_insertion_order(
        self, store: EventStore, make_draft: Callable[..., EventDraft], t0: datetime
    ) -> None:
        offsets = list(range(12))
        random.Random(42).shuffle(offsets)
        for minutes in offsets:
            store.create(make_draft(occurred_at=t0 + timedelta(minutes=minutes * 17)))

        times = [event.occurred_at for event in store.list()]
        assert times == sorted(times, reverse=True)
        assert len(times) == 12

    def test_ties_break_by_latest_entry(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        first = store.create(make_draft())
        second = store.create(make_draft(quantity=60))
        assert [event.id for event in store.list()] == [second, first]

    def test_feeding_then_diaper_scenario(
        self, store: EventStore, make_draft: Callable[..., EventDraft], t0: datetime
    ) -> None:
        feeding = store.create(make_draft(quantity=90))
        assert store.list().first().id == feeding

        diaper = store.create(
            make_draft(
                event_type=EventType.DIAPER_CHANGE,
                occurred_at=t0 + timedelta(hours=1),
                detail="wet",
                quantity=None,
            )
        )
        assert [event.id for event in store.list()] == [diaper, feeding]

    def test_listing_is_lazy_and_restartable(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        listing = store.list()
        assert list(listing) == []
        store.create(make_draft())
        assert len(list(listing)) == 1
        assert list(listing) == list(listing)

    def test_filters(
        self, store: EventStore, make_draft: Callable[..., EventDraft], t0: datetime
    ) -> None:
        store.create(make_draft())
        store.create(make_draft(event_type=EventType.SLEEP, detail=None, quantity=60,
                                occurred_at=t0 + timedelta(hours=2)))
        store.create(make_draft(occurred_at=t0 + timedelta(hours=4)))

        feedings = EventFilter(event_type=EventType.FEEDING)
        assert [e.event_type for e in store.list(feedings)] == [EventType.FEEDING] * 2
        assert store.count(feedings) == 2

        window = EventFilter(since=t0 + timedelta(hours=1), until=t0 + timedelta(hours=4))
        assert [e.event_type for e in store.list(window)] == [EventType.SLEEP]
        assert store.count() == 3


@pytest.mark.integration
class TestUpdate:
    """Tests for update."""

    def test_update_revalidates_and_persists(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        event_id = store.create(make_draft())
        updated = store.update(event_id, {"quantity": 120, "notes": "burped"})
        assert (updated.quantity, updated.notes) == (120, "burped")
        assert store.read(event_id) == updated

    def test_invalid_patch_leaves_event_untouched(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        event_id = store.create(make_draft())
        before = _row(store, event_id)
        with pytest.raises(ValidationError):
            store.update(event_id, {"quantity": -1})
        with pytest.raises(ValidationError):
            store.update(event_id, {"event_type": "sleep"})
        assert _row(store, event_id) == before

    def test_unchanged_patch_is_idempotent(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        event_id = store.create(make_draft(notes="calm"))
        before = _row(store, event_id)
        current = store.read(event_id)
        store.update(
            event_id,
            {
                "occurred_at": current.occurred_at,
                "quantity": current.quantity,
                "detail": current.detail,
                "notes": current.notes,
            },
        )
        assert _row(store, event_id) == before


@pytest.mark.integration
class TestBulkAndLifecycle:
    """Tests for create_many and opening stores."""

    def test_create_many_is_all_or_nothing(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        ids = store.create_many([make_draft(), make_draft(quantity=30)])
        assert len(ids) == 2
        with pytest.raises(ValidationError):
            store.create_many([make_draft(), make_draft(quantity=0)])
        assert store.count() == 2

    def test_open_with_pending_migrations_and_no_auto_migrate(self, sqlite_path: Path) -> None:
        with pytest.raises(MigrationError, match="Pending migrations"):
            EventStore.open(sqlite_path, auto_migrate=False)

    def test_open_applies_migrations(self, sqlite_path: Path) -> None:
        with EventStore.open(sqlite_path) as store:
            assert store.count() == 0
        with EventStore.open(sqlite_path, auto_migrate=False) as store:
            assert store.count() == 0

    def test_unreadable_file(self, sqlite_path: Path) -> None:
        sqlite_path.write_bytes(b"this is not a sqlite database, just some text" * 20)
        with pytest.raises(PersistenceError):
            EventStore.open(sqlite_path)

    def test_missing_table_is_persistence_error(
        self, store: EventStore, make_draft: Callable[..., EventDraft]
    ) -> None:
        rollback(store.connection, steps=2)
        with pytest.raises(PersistenceError):
            store.create(make_draft())
        with pytest.raises(PersistenceError):
            list(store.list())
