"""Public interface for the database package.

This module exposes the main primitives needed by the rest of the
project: connection helpers, migrations, lifecycle entrypoints, generic
CRUD utilities and the error taxonomy.
"""

from .connection import get_connection, transaction
from .crud import delete, insert, select_one, update
from .errors import (
    IntegrityError,
    MigrationError,
    NotFoundError,
    PersistenceError,
)
from .init import (
    DatabaseLockedError,
    delete_database,
    initialize_database,
    rebuild_database,
)
from .migrations import (
    Migration,
    MigrationStatus,
    ensure_current,
    migrate,
    pending_migrations,
    redo,
    rollback,
    status,
)

__all__ = [
    "get_connection",
    "transaction",
    "initialize_database",
    "delete_database",
    "rebuild_database",
    "DatabaseLockedError",
    "Migration",
    "MigrationStatus",
    "ensure_current",
    "migrate",
    "pending_migrations",
    "redo",
    "rollback",
    "status",
    "insert",
    "select_one",
    "update",
    "delete",
    "PersistenceError",
    "IntegrityError",
    "MigrationError",
    "NotFoundError",
]
