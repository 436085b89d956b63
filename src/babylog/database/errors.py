"""Database-specific exception types for the project."""

from __future__ import annotations

import sqlite3
from typing import Any


class PersistenceError(Exception):
    """Base exception for I/O and constraint failures in the storage layer."""


class IntegrityError(PersistenceError):
    """Raised when a constraint violation occurs."""


class MigrationError(PersistenceError):
    """Raised when migrations cannot be discovered, applied or reverted."""


class NotFoundError(Exception):
    """Raised when a requested row cannot be found."""


def from_sqlite_error(error: sqlite3.Error) -> PersistenceError:
    """Map a raw sqlite3 error to a project-level PersistenceError.

    IntegrityError is mapped to IntegrityError, all others to PersistenceError.

    Args:
        error: SQLite exception to convert.

    Returns:
        PersistenceError or IntegrityError instance with error message.
    """
    if isinstance(error, sqlite3.IntegrityError):
        return IntegrityError(str(error))
    return PersistenceError(str(error))


def ensure_found(row: Any, message: str = "Row not found") -> Any:
    """Raise NotFoundError if a row is missing, otherwise return it.

    Args:
        row: Row result to check (may be None).
        message: Error message to use if row is None.

    Returns:
        The row value if it's not None.

    Raises:
        NotFoundError: If row is None.
    """
    if row is None:
        raise NotFoundError(message)
    return row
