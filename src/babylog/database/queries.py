"""Thin wrappers over `sqlite3` cursors.

Rows come back as plain dicts so nothing above this layer holds a
`sqlite3.Row`. Raw `sqlite3.Error`s propagate; translating them into the
persistence taxonomy is the caller's job.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from typing import Any

logger = logging.getLogger(__name__)

Params = tuple | dict | None


def execute_query(conn: sqlite3.Connection, sql: str, params: Params = None) -> sqlite3.Cursor:
    """Run one statement and hand back its cursor."""
    logger.debug("SQL: %s %r", " ".join(sql.split())[:120], params or ())
    return conn.execute(sql, params or ())


def fetch_one(conn: sqlite3.Connection, sql: str, params: Params = None) -> dict[str, Any] | None:
    row = execute_query(conn, sql, params).fetchone()
    return None if row is None else dict(row)


def fetch_all(conn: sqlite3.Connection, sql: str, params: Params = None) -> list[dict[str, Any]]:
    return [dict(row) for row in execute_query(conn, sql, params)]


def iter_rows(
    conn: sqlite3.Connection,
    sql: str,
    params: Params = None,
    *,
    batch_size: int = 100,
) -> Iterator[dict[str, Any]]:
    """Yield rows lazily, fetching `batch_size` at a time.

    Nothing runs until the first `next()`. The cursor is closed once the
    generator finishes or is discarded.
    """
    cursor = execute_query(conn, sql, params)
    try:
        while batch := cursor.fetchmany(batch_size):
            for row in batch:
                yield dict(row)
    finally:
        cursor.close()


def execute_update(conn: sqlite3.Connection, sql: str, params: Params = None) -> int:
    """Run an UPDATE or DELETE and return the affected row count."""
    count = execute_query(conn, sql, params).rowcount
    logger.debug("%s row(s) affected", count)
    return count


def execute_insert(conn: sqlite3.Connection, sql: str, params: Params = None) -> int:
    """Run an INSERT and return the new rowid."""
    row_id = execute_query(conn, sql, params).lastrowid
    if row_id is None:
        msg = "INSERT produced no rowid"
        raise sqlite3.OperationalError(msg)
    return int(row_id)
