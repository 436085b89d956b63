"""Database connection helpers.

This module provides a small, synchronous API for obtaining SQLite
connections configured for a local, single-user logbook. Connections are
plain handles owned by whoever opened them; nothing here is cached at
module level.
"""

from __future__ import annotations

import contextlib
import itertools
import logging
import sqlite3
from collections.abc import Iterator
from pathlib import Path

from .errors import PersistenceError

logger = logging.getLogger(__name__)


def _ensure_parent_dir(db_path: Path) -> None:
    """Ensure the parent directory for a database file exists."""
    db_path.parent.mkdir(parents=True, exist_ok=True)


def _configure_connection(conn: sqlite3.Connection) -> None:
    """Apply standard pragmas and row factory to a new connection.

    Configures the connection for use with the project by:
    - Setting row_factory to sqlite3.Row for dict-like access
    - Enabling foreign key constraints
    - Checking that the file is actually a readable SQLite database

    Args:
        conn: SQLite connection to configure.

    Raises:
        sqlite3.DatabaseError: If the file is not a database.
    """
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    # sqlite3.connect is lazy; touching the schema surfaces "file is not a database" now.
    conn.execute("SELECT count(*) FROM sqlite_master").fetchone()
    # Using default DELETE journal mode (no WAL) since this is single-user.


def get_connection(db_path: Path | str) -> sqlite3.Connection:
    """Return a configured SQLite connection.

    Creates a new SQLite connection with standard configuration (row factory,
    foreign keys enabled). Ensures parent directory exists before creating
    the database file. ":memory:" opens a private in-memory database.

    Args:
        db_path: Path to SQLite database file.

    Returns:
        Configured SQLite connection ready for use.

    Raises:
        PersistenceError: If the file cannot be opened or is not a database.

    Logs:
        - DEBUG: "Opening SQLite database at {path}" when creating connection.
    """
    target = str(db_path)
    if target != ":memory:":
        resolved = Path(db_path)
        _ensure_parent_dir(resolved)
        target = str(resolved)

    logger.debug("Opening SQLite database at %s", target)
    conn: sqlite3.Connection | None = None
    try:
        conn = sqlite3.connect(target)
        _configure_connection(conn)
    except (sqlite3.Error, OSError) as exc:
        if conn is not None:
            conn.close()
        msg = f"Cannot open database {target}: {exc}"
        raise PersistenceError(msg) from exc
    return conn


_savepoint_ids = itertools.count(1)


@contextlib.contextmanager
def _savepoint(conn: sqlite3.Connection) -> Iterator[None]:
    name = f"babylog_sp_{next(_savepoint_ids)}"
    conn.execute(f"SAVEPOINT {name}")
    logger.debug("Savepoint %s opened", name)
    try:
        yield
    except Exception:
        conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
        conn.execute(f"RELEASE SAVEPOINT {name}")
        logger.debug("Rolled back to savepoint %s", name)
        raise
    conn.execute(f"RELEASE SAVEPOINT {name}")


@contextlib.contextmanager
def transaction(
    db_path: Path | str | None = None,
    existing_connection: sqlite3.Connection | None = None,
) -> Iterator[sqlite3.Connection]:
    """Context manager for a transactional connection block.

    Manages transaction boundaries (commit on success, rollback on error).
    A block opened while the connection is already in a transaction runs
    under a SAVEPOINT instead: it never commits, and on error it undoes only
    its own work before re-raising. The outermost block decides the outcome.
    If an existing connection is provided, it is reused and not closed.
    Otherwise, creates and closes a new connection.

    Args:
        db_path: Path to database file (only used if existing_connection
            is None).
        existing_connection: Existing connection to reuse. If None, creates
            a new connection that will be closed on exit.

    Yields:
        SQLite connection ready for database operations.

    Raises:
        ValueError: If neither db_path nor existing_connection is given.

    Logs:
        - DEBUG: "Beginning transaction" at start
        - DEBUG: "Transaction committed" on success
        - DEBUG: "Transaction rolled back" on failure
        - DEBUG: "Connection closed" when closing owned connection.
    """
    if existing_connection is None and db_path is None:
        msg = "transaction() needs a db_path or an existing connection"
        raise ValueError(msg)

    owns_connection = existing_connection is None
    conn = existing_connection or get_connection(db_path)

    if conn.in_transaction:
        with _savepoint(conn):
            yield conn
        return

    try:
        # DDL does not open an implicit transaction; make the whole block atomic.
        conn.execute("BEGIN")
        logger.debug("Beginning transaction")
        yield conn
        conn.commit()
        logger.debug("Transaction committed")
    except Exception as exc:
        conn.rollback()
        logger.debug("Transaction rolled back (%s)", type(exc).__name__)
        raise
    finally:
        if owns_connection:
            conn.close()
            logger.debug("Connection closed")


def execute_script(conn: sqlite3.Connection, sql: str, *, description: str) -> None:
    """Execute a multi-statement SQL script with logging.

    Statements run inside the caller's transaction: the script is wrapped
    in individual `execute` calls rather than `executescript`, which would
    commit any pending transaction first.

    Args:
        conn: Database connection to execute script on.
        sql: Multi-statement SQL script to execute.
        description: Human-readable description for logging purposes.

    Raises:
        sqlite3.Error: If script execution fails.

    Logs:
        - INFO: "Executing SQL script: {description}" before execution.
        - ERROR: "Failed while executing SQL script: {description}" with
            exception details on failure.
    """
    logger.info("Executing SQL script: %s", description)
    try:
        for statement in split_statements(sql):
            conn.execute(statement)
    except sqlite3.Error:
        logger.exception("Failed while executing SQL script: %s", description)
        raise


def split_statements(sql: str) -> list[str]:
    """Split a SQL script into complete statements.

    Uses `sqlite3.complete_statement` so semicolons inside string literals
    or trigger bodies do not split a statement. `--` comment-only chunks are
    dropped.
    """
    statements: list[str] = []
    buffer = ""
    for line in sql.splitlines(keepends=True):
        buffer += line
        if sqlite3.complete_statement(buffer):
            statement = buffer.strip()
            buffer = ""
            if _has_sql(statement):
                statements.append(statement)

    if _has_sql(buffer):
        msg = f"Incomplete SQL statement at end of script: {buffer.strip()[:80]!r}"
        raise sqlite3.OperationalError(msg)
    return statements


def _has_sql(chunk: str) -> bool:
    return any(
        line.strip() and not line.strip().startswith("--") for line in chunk.splitlines()
    )
