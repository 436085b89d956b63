"""Versioned, reversible schema migrations.

Each migration is a directory under `global_config.DB_MIGRATIONS_DIR` named
`<version>_<name>` holding `up.sql` (forward) and `down.sql` (inverse).
Applied versions are recorded in the `schema_migrations` ledger table, in
the same transaction as the schema change itself.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path

from .. import global_config as g
from ..utils.time import now_ts_utc_z
from . import queries
from .connection import execute_script, transaction
from .errors import MigrationError, from_sqlite_error

logger = logging.getLogger(__name__)

LEDGER_TABLE = "schema_migrations"
MIGRATION_DIR_PATTERN = re.compile(r"^(?P<version>\d{4})_(?P<name>[a-z0-9_]+)$")


@dataclass(frozen=True)
class Migration:
    """One migration directory on disk."""

    version: str
    name: str
    path: Path

    @property
    def up_path(self) -> Path:
        return self.path / "up.sql"

    @property
    def down_path(self) -> Path:
        return self.path / "down.sql"

    @property
    def label(self) -> str:
        return f"{self.version}_{self.name}"

    def up_sql(self) -> str:
        return self.up_path.read_text(encoding="utf-8")

    def down_sql(self) -> str:
        return self.down_path.read_text(encoding="utf-8")


@dataclass(frozen=True)
class MigrationStatus:
    """Whether a known migration has been applied, and when."""

    migration: Migration
    applied_at: str | None

    @property
    def applied(self) -> bool:
        return self.applied_at is not None


def discover_migrations(migrations_dir: Path | None = None) -> list[Migration]:
    """Return all migrations on disk, ordered by version.

    Args:
        migrations_dir: Directory to scan. Defaults to global config.

    Returns:
        Migrations sorted by ascending version.

    Raises:
        MigrationError: If the directory is missing, a migration lacks
            `up.sql` or `down.sql`, or two migrations share a version.
    """
    root = migrations_dir or g.DB_MIGRATIONS_DIR
    if not root.is_dir():
        msg = f"Migrations directory not found: {root}"
        raise MigrationError(msg)

    found: dict[str, Migration] = {}
    for entry in sorted(root.iterdir()):
        if not entry.is_dir() or entry.name.startswith(("_", ".")):
            continue
        match = MIGRATION_DIR_PATTERN.match(entry.name)
        if match is None:
            msg = f"Invalid migration directory name: {entry.name}"
            raise MigrationError(msg)

        migration = Migration(version=match["version"], name=match["name"], path=entry)
        for sql_file in (migration.up_path, migration.down_path):
            if not sql_file.is_file():
                msg = f"Migration {migration.label} is missing {sql_file.name}"
                raise MigrationError(msg)
        if migration.version in found:
            msg = (
                f"Duplicate migration version {migration.version}: "
                f"{found[migration.version].label} and {migration.label}"
            )
            raise MigrationError(msg)
        found[migration.version] = migration

    return [found[version] for version in sorted(found)]


def ensure_ledger(conn: sqlite3.Connection) -> None:
    """Create the `schema_migrations` ledger table if it doesn't exist.

    Raises:
        PersistenceError: If the database cannot be written.
    """
    try:
        with transaction(existing_connection=conn):
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {LEDGER_TABLE} (
                    version TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    applied_at TEXT NOT NULL
                )
                """
            )
    except sqlite3.Error as exc:
        raise from_sqlite_error(exc) from exc


def applied_versions(conn: sqlite3.Connection) -> dict[str, str]:
    """Return applied migration versions mapped to their applied_at instant."""
    ensure_ledger(conn)
    try:
        rows = queries.fetch_all(
            conn, f"SELECT version, applied_at FROM {LEDGER_TABLE} ORDER BY version"  # noqa: S608
        )
    except sqlite3.Error as exc:
        raise from_sqlite_error(exc) from exc
    return {row["version"]: row["applied_at"] for row in rows}


def _known_and_applied(
    conn: sqlite3.Connection, migrations_dir: Path | None
) -> tuple[list[Migration], dict[str, str]]:
    migrations = discover_migrations(migrations_dir)
    applied = applied_versions(conn)
    known = {m.version for m in migrations}
    unknown = sorted(set(applied) - known)
    if unknown:
        msg = (
            f"Database has applied migrations unknown to this version: {', '.join(unknown)}. "
            "Upgrade babylog or point it at another database."
        )
        raise MigrationError(msg)
    return migrations, applied


def status(conn: sqlite3.Connection, migrations_dir: Path | None = None) -> list[MigrationStatus]:
    """Return the applied/pending status of every known migration, oldest first."""
    migrations, applied = _known_and_applied(conn, migrations_dir)
    return [MigrationStatus(migration=m, applied_at=applied.get(m.version)) for m in migrations]


def pending_migrations(
    conn: sqlite3.Connection, migrations_dir: Path | None = None
) -> list[Migration]:
    """Return migrations not yet applied, in the order they would run."""
    return [s.migration for s in status(conn, migrations_dir) if not s.applied]


def _apply(conn: sqlite3.Connection, migration: Migration) -> None:
    logger.info("Applying migration %s", migration.label)
    try:
        with transaction(existing_connection=conn):
            execute_script(conn, migration.up_sql(), description=f"{migration.label}/up.sql")
            conn.execute(
                f"INSERT INTO {LEDGER_TABLE} (version, name, applied_at) VALUES (?, ?, ?)",  # noqa: S608
                (migration.version, migration.name, now_ts_utc_z()),
            )
    except sqlite3.Error as exc:
        msg = f"Migration {migration.label} failed: {exc}"
        raise MigrationError(msg) from exc


def _revert(conn: sqlite3.Connection, migration: Migration) -> None:
    logger.info("Reverting migration %s", migration.label)
    try:
        with transaction(existing_connection=conn):
            execute_script(conn, migration.down_sql(), description=f"{migration.label}/down.sql")
            conn.execute(
                f"DELETE FROM {LEDGER_TABLE} WHERE version = ?",  # noqa: S608
                (migration.version,),
            )
    except sqlite3.Error as exc:
        msg = f"Reverting migration {migration.label} failed: {exc}"
        raise MigrationError(msg) from exc


def migrate(
    conn: sqlite3.Connection,
    *,
    target: str | None = None,
    migrations_dir: Path | None = None,
) -> list[Migration]:
    """Apply pending migrations in version order.

    Each migration and its ledger row commit together; a failure rolls back
    that migration only and stops, leaving earlier ones applied.

    Args:
        conn: Database connection.
        target: Highest version to apply (inclusive). Defaults to all.
        migrations_dir: Directory to scan. Defaults to global config.

    Returns:
        The migrations that were applied (empty if already current).

    Raises:
        MigrationError: If discovery fails or a migration fails to apply.

    Logs:
        - INFO: "Applying migration {label}" per migration.
        - INFO: "Database schema is up to date" when nothing is pending.
    """
    pending = pending_migrations(conn, migrations_dir)
    if target is not None:
        pending = [m for m in pending if m.version <= target]

    if not pending:
        logger.info("Database schema is up to date")
        return []

    for migration in pending:
        _apply(conn, migration)
    return pending


def rollback(
    conn: sqlite3.Connection,
    *,
    steps: int = 1,
    migrations_dir: Path | None = None,
) -> list[Migration]:
    """Revert the `steps` most recently applied migrations, newest first.

    Returns:
        The migrations that were reverted.

    Raises:
        ValueError: If steps is less than 1.
        MigrationError: If a down script fails.
    """
    if steps < 1:
        msg = f"steps must be at least 1, got {steps}"
        raise ValueError(msg)

    applied = [s.migration for s in status(conn, migrations_dir) if s.applied]
    to_revert = list(reversed(applied))[:steps]
    if not to_revert:
        logger.info("No applied migrations to roll back")

    for migration in to_revert:
        _revert(conn, migration)
    return to_revert


def redo(conn: sqlite3.Connection, *, migrations_dir: Path | None = None) -> Migration | None:
    """Revert and re-apply the latest applied migration.

    Exercises the inverse form of the newest migration: if `down.sql` does
    not cleanly undo `up.sql`, re-applying fails with MigrationError.

    Returns:
        The migration that was redone, or None if nothing is applied.
    """
    reverted = rollback(conn, steps=1, migrations_dir=migrations_dir)
    if not reverted:
        return None
    _apply(conn, reverted[0])
    return reverted[0]


def ensure_current(conn: sqlite3.Connection, *, auto_migrate: bool = True) -> list[Migration]:
    """Make sure the schema is current before the event store is used.

    Args:
        conn: Database connection.
        auto_migrate: Apply pending migrations. If False, pending
            migrations are an error.

    Returns:
        The migrations that were applied.

    Raises:
        MigrationError: If migrations are pending and auto_migrate is False,
            or if applying them fails.
    """
    if auto_migrate:
        return migrate(conn)

    pending = pending_migrations(conn)
    if pending:
        labels = ", ".join(m.label for m in pending)
        msg = f"Pending migrations: {labels}. Run `babylog db migrate`."
        raise MigrationError(msg)
    return []
