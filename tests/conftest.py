from __future__ import annotations

import sqlite3
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from babylog.database.connection import get_connection
from babylog.events import EventDraft, EventStore, EventType

ENV_VARS = ("BABYLOG_DB_PATH", "DATABASE_URL", "BABYLOG_TZ", "TZ")


@pytest.fixture(autouse=True)
def app_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """
    Isolates every test from the real environment.
    Automatically applied to all tests.

    - Settings variables are cleared so defaults are predictable.
    - XDG roots point into tmp_path so no test touches the user's data or logs.
    """
    for name in ENV_VARS:
        # setenv first so teardown restores the original even if `.env` loading set it
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "xdg" / "data"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg" / "state"))


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """
    A dedicated temp root directory for each test.
    All filesystem writes in tests should be under this root (or tmp_path directly).
    """
    root = tmp_path / "proj"
    (root / "data" / "in").mkdir(parents=True)
    (root / "data" / "out").mkdir(parents=True)
    return root


@pytest.fixture(autouse=True)
def chdir_to_project_root(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Automatically change working directory to project_root for all tests.
    This ensures relative-path operations and `.env` lookups stay in the temp directory.
    """
    monkeypatch.chdir(project_root)


@pytest.fixture
def sqlite_path(project_root: Path) -> Path:
    """
    On-disk SQLite DB under the temp project root (more realistic than :memory:).
    """
    return project_root / "data" / "out" / "test.sqlite"


@pytest.fixture
def db_conn(sqlite_path: Path, project_root: Path) -> Iterator[sqlite3.Connection]:
    """
    A connection from the application's own connection factory, always
    closed after each test.

    Safety enforcement: DB must be under project_root (prevents touching real DBs).
    """
    try:
        sqlite_path.resolve().relative_to(project_root.resolve())
    except ValueError:
        raise AssertionError(
            f"SQLite path {sqlite_path} is not under project_root {project_root}. "
            "This prevents accidental writes to real databases."
        )

    conn = get_connection(sqlite_path)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def store(sqlite_path: Path) -> Iterator[EventStore]:
    """A migrated EventStore over the on-disk test database."""
    with EventStore.open(sqlite_path) as event_store:
        yield event_store


@pytest.fixture
def t0() -> datetime:
    return datetime(2024, 3, 1, 8, 0, 0, tzinfo=UTC)


@pytest.fixture
def make_draft(t0: datetime) -> Callable[..., EventDraft]:
    """Factory for valid drafts; defaults to a 90 ml breastmilk feeding at t0."""

    def _make(**overrides: object) -> EventDraft:
        values: dict[str, object] = {
            "event_type": EventType.FEEDING,
            "occurred_at": t0,
            "quantity": 90,
            "detail": "breastmilk",
            "notes": None,
        }
        values.update(overrides)
        return EventDraft(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture
def console() -> Console:
    """A recording console that never touches the real terminal."""
    return Console(file=StringIO(), width=120, force_terminal=False, color_system=None)


def scripted_keys(keys: list[str]) -> Callable[[], str]:
    """Key reader that replays key names, then raises EOFError like a closed terminal."""
    pending = iter(keys)

    def _read() -> str:
        try:
            return next(pending)
        except StopIteration:
            raise EOFError("No more scripted keys") from None

    return _read


@pytest.fixture
def keys_from() -> Callable[[list[str]], Callable[[], str]]:
    return scripted_keys
