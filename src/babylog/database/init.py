"""Database lifecycle: initialize, delete and rebuild the database file.

Initialization means applying every pending migration from
`global_config.DB_MIGRATIONS_DIR`; see `babylog.database.migrations`.
"""

from __future__ import annotations

import errno
import logging
import sqlite3
from pathlib import Path

from .connection import get_connection
from .errors import PersistenceError
from .migrations import Migration, migrate

logger = logging.getLogger(__name__)


class DatabaseLockedError(PersistenceError):
    """Raised when database deletion fails because the database is in use."""


def initialize_database(db_path: Path | str) -> list[Migration]:
    """Create the database if needed and bring its schema up to date.

    Safe to run on a new database or re-run on an existing one.

    Args:
        db_path: Path to SQLite database file.

    Returns:
        The migrations that were applied.

    Raises:
        PersistenceError: If the file cannot be opened.
        MigrationError: If a migration fails.

    Logs:
        - INFO: "Initializing database at {path}" at start.
        - INFO: "Database initialization complete ({n} migration(s) applied)".
    """
    logger.info("Initializing database at %s", db_path)
    conn = get_connection(db_path)
    try:
        applied = migrate(conn)
    finally:
        conn.close()
    logger.info("Database initialization complete (%d migration(s) applied)", len(applied))
    return applied


def delete_database(db_path: Path | str) -> None:
    """Safely delete a SQLite database and its journal/WAL/SHM files.

    Performs a best-effort clean shutdown by opening a connection and
    checkpointing any WAL, then deletes the database file and companions.
    Deleting a database that does not exist is a no-op.

    Args:
        db_path: Path to SQLite database file.

    Raises:
        DatabaseLockedError: If any file deletion fails because the database
            is locked or in use.
        OSError: If deletion fails for other reasons (permissions, etc.).

    Logs:
        - INFO: "Attempting to delete database at {path}" at start.
        - INFO: "Database deleted successfully" on success.
        - ERROR: "Failed to delete {file}" with details on failure.
    """
    resolved = Path(db_path)
    logger.info("Attempting to delete database at %s", resolved)

    if not resolved.exists():
        logger.info("Database does not exist (already deleted)")
        return

    try:
        logger.debug("Checkpointing WAL before deletion")
        conn = sqlite3.connect(str(resolved), timeout=5.0)
        try:
            conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
        finally:
            conn.close()
    except sqlite3.Error:
        logger.warning("Failed to checkpoint WAL, proceeding with deletion")

    files_to_delete = [
        resolved,
        resolved.with_name(resolved.name + "-journal"),
        resolved.with_name(resolved.name + "-wal"),
        resolved.with_name(resolved.name + "-shm"),
    ]

    deleted_files: list[Path] = []
    failed_files: list[tuple[Path, str]] = []

    for file_path in files_to_delete:
        if not file_path.exists():
            continue

        try:
            file_path.unlink()
            deleted_files.append(file_path)
            logger.debug("Deleted %s", file_path)
        except OSError as exc:
            if exc.errno == errno.EBUSY or "locked" in str(exc).lower():
                failed_files.append((file_path, "locked"))
                logger.error("Failed to delete %s: database is locked", file_path)
            else:
                failed_files.append((file_path, str(exc)))
                logger.error("Failed to delete %s: %s", file_path, exc)

    if failed_files:
        if any(reason == "locked" for _, reason in failed_files):
            msg = "Database is in use; close every babylog session using it and retry."
            raise DatabaseLockedError(msg)

        error_details = "; ".join(f"{f.name}: {reason}" for f, reason in failed_files)
        raise OSError(f"Failed to delete database files: {error_details}")

    logger.info("Database deleted successfully (%d file(s) removed)", len(deleted_files))


def rebuild_database(db_path: Path | str) -> list[Migration]:
    """Delete and re-create a database from scratch.

    Returns:
        The migrations applied to the fresh database.
    """
    logger.info("Rebuilding database")
    delete_database(db_path)
    return initialize_database(db_path)
