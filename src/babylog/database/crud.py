"""Row-level helpers keyed by table name and column mappings.

Callers own the connection and the transaction; nothing here commits.
Identifiers are checked before they are spliced into SQL, values always
travel as parameters.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Mapping
from typing import Any

from ..utils.time import now_ts_utc_z
from . import queries
from .errors import from_sqlite_error

logger = logging.getLogger(__name__)


def _validate_identifier(name: str) -> None:
    """Raise ValueError unless name is letters, digits and underscores."""
    if not name.replace("_", "").isalnum():
        msg = f"Unsafe SQL identifier: {name!r}"
        raise ValueError(msg)


def _where(filters: Mapping[str, Any]) -> tuple[str, list[Any]]:
    if not filters:
        msg = "Refusing to touch every row: no filters given"
        raise ValueError(msg)
    clauses: list[str] = []
    params: list[Any] = []
    for col, value in filters.items():
        _validate_identifier(col)
        if value is None:
            clauses.append(f"{col} IS NULL")
        else:
            clauses.append(f"{col} = ?")
            params.append(value)
    return " WHERE " + " AND ".join(clauses), params


def _run(op: str, fn: Callable[..., Any], *args: Any) -> Any:
    try:
        return fn(*args)
    except sqlite3.Error as exc:
        logger.debug("%s failed: %s", op, exc)
        raise from_sqlite_error(exc) from exc


def insert(conn: sqlite3.Connection, table: str, data: Mapping[str, Any]) -> int:
    """Insert one row and return its id.

    `created_at` and `updated_at` are stamped with the current UTC instant
    unless data already carries them.

    Raises:
        ValueError: On an unsafe table or column name.
        IntegrityError: If a constraint rejects the row.
        PersistenceError: On any other storage failure.
    """
    _validate_identifier(table)
    stamp = now_ts_utc_z()
    row = {"created_at": stamp, "updated_at": stamp, **data}
    for col in row:
        _validate_identifier(col)

    sql = "INSERT INTO {} ({}) VALUES ({})".format(  # noqa: S608
        table, ", ".join(row), ", ".join("?" * len(row))
    )
    row_id = _run(f"insert into {table}", queries.execute_insert, conn, sql, tuple(row.values()))
    logger.debug("Inserted row %s into %s", row_id, table)
    return row_id


def select_one(
    conn: sqlite3.Connection, table: str, filters: Mapping[str, Any]
) -> dict[str, Any] | None:
    """Return the first row matching every filter (None matches NULL), or None."""
    _validate_identifier(table)
    where_sql, params = _where(filters)
    sql = f"SELECT * FROM {table}{where_sql} LIMIT 1"  # noqa: S608
    return _run(f"select from {table}", queries.fetch_one, conn, sql, tuple(params))


def update(
    conn: sqlite3.Connection,
    table: str,
    filters: Mapping[str, Any],
    values: Mapping[str, Any],
) -> int:
    """Set values on matching rows, bump `updated_at`, return the row count.

    Raises:
        ValueError: On unsafe identifiers or empty filters.
        IntegrityError: If a constraint rejects the new values.
        PersistenceError: On any other storage failure.
    """
    _validate_identifier(table)
    changes = {**values, "updated_at": now_ts_utc_z()}
    for col in changes:
        _validate_identifier(col)
    where_sql, where_params = _where(filters)

    assignments = ", ".join(f"{col} = ?" for col in changes)
    sql = f"UPDATE {table} SET {assignments}{where_sql}"  # noqa: S608
    params = (*changes.values(), *where_params)
    return _run(f"update {table}", queries.execute_update, conn, sql, params)


def delete(conn: sqlite3.Connection, table: str, filters: Mapping[str, Any]) -> int:
    """Delete matching rows and return how many went."""
    _validate_identifier(table)
    where_sql, params = _where(filters)
    sql = f"DELETE FROM {table}{where_sql}"  # noqa: S608
    return _run(f"delete from {table}", queries.execute_update, conn, sql, tuple(params))
