"""CLI commands for database management."""

from __future__ import annotations

from contextlib import closing
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from ...database import (
    MigrationStatus,
    delete_database,
    get_connection,
    migrate,
    rebuild_database,
    redo,
    rollback,
    status,
)
from ..base import BaseCLI, handle_errors, resolve_settings

db_app = typer.Typer(help="Database management commands.")

DbPathOption = Annotated[
    Path | None,
    typer.Option(
        "--db-path",
        help="Path to SQLite database file (defaults to BABYLOG_DB_PATH, DATABASE_URL or the XDG data dir)",
    ),
]


class DatabaseCLI(BaseCLI):
    """CLI helpers for database management."""

    def __init__(self) -> None:
        """Initialize DatabaseCLI with db domain name."""
        super().__init__("db")

    def migrate_db(self, *, db_path: Path, target: str | None = None) -> dict[str, Any]:
        """Apply pending migrations.

        Args:
            db_path: Path to SQLite database.
            target: Highest version to apply. Defaults to all.

        Returns:
            Standardized result dictionary listing applied migrations.
        """
        return self.handle_cli_operation(
            operation="db migrate",
            op_callable=lambda: self._migrate_operation(db_path=db_path, target=target),
            pre_message=f"Migrating {db_path}...",
        )

    def rollback_db(self, *, db_path: Path, steps: int) -> dict[str, Any]:
        """Revert the most recently applied migrations."""
        return self.handle_cli_operation(
            operation="db rollback",
            op_callable=lambda: self._rollback_operation(db_path=db_path, steps=steps),
            pre_message=f"Rolling back {steps} migration(s)...",
        )

    def redo_db(self, *, db_path: Path) -> dict[str, Any]:
        """Revert and re-apply the latest migration."""
        return self.handle_cli_operation(
            operation="db redo",
            op_callable=lambda: self._redo_operation(db_path=db_path),
        )

    def status_db(self, *, db_path: Path, console: Console | None = None) -> dict[str, Any]:
        """Print a table of known migrations and whether each is applied."""
        return self.handle_cli_operation(
            operation="db status",
            op_callable=lambda: self._status_operation(db_path=db_path, console=console),
        )

    def delete_db(self, *, db_path: Path) -> dict[str, Any]:
        """Delete database using CLI operation handler.

        Deletes the database file and any journal/WAL/SHM companions. Returns
        a standardized result dictionary.

        User Output:
            - "Deleting database..." pre-message.
            - Formatted result via BaseCLI.handle_cli_operation.
        """
        return self.handle_cli_operation(
            operation="db delete",
            op_callable=lambda: self._delete_operation(db_path=db_path),
            pre_message="Deleting database...",
        )

    def rebuild_db(self, *, db_path: Path) -> dict[str, Any]:
        """Rebuild database using CLI operation handler.

        Deletes the existing database (if present) and creates a fresh one
        with every migration applied.

        User Output:
            - "Rebuilding database..." pre-message.
            - Formatted result via BaseCLI.handle_cli_operation.
        """
        return self.handle_cli_operation(
            operation="db rebuild",
            op_callable=lambda: self._rebuild_operation(db_path=db_path),
            pre_message="Rebuilding database...",
        )

    def _migrate_operation(self, *, db_path: Path, target: str | None) -> dict[str, Any]:
        with closing(get_connection(db_path)) as conn:
            applied = migrate(conn, target=target)
        if not applied:
            return {"success": True, "message": "Database schema is up to date"}
        return {
            "success": True,
            "succeeded": len(applied),
            "message": f"Applied {len(applied)} migration(s)",
            "items": [m.label for m in applied],
        }

    def _rollback_operation(self, *, db_path: Path, steps: int) -> dict[str, Any]:
        with closing(get_connection(db_path)) as conn:
            reverted = rollback(conn, steps=steps)
        if not reverted:
            return {"success": True, "message": "No applied migrations to roll back"}
        return {
            "success": True,
            "succeeded": len(reverted),
            "message": f"Rolled back {len(reverted)} migration(s)",
            "items": [m.label for m in reverted],
        }

    def _redo_operation(self, *, db_path: Path) -> dict[str, Any]:
        with closing(get_connection(db_path)) as conn:
            migration = redo(conn)
        if migration is None:
            return {"success": True, "message": "No applied migrations to redo"}
        return {"success": True, "message": f"Redid migration {migration.label}"}

    def _status_operation(self, *, db_path: Path, console: Console | None) -> dict[str, Any]:
        with closing(get_connection(db_path)) as conn:
            rows = status(conn)
        (console or Console()).print(_status_table(rows, db_path=db_path))
        applied = sum(1 for row in rows if row.applied)
        return {
            "success": True,
            "total": len(rows),
            "message": f"{applied} applied, {len(rows) - applied} pending",
        }

    def _delete_operation(self, *, db_path: Path) -> dict[str, Any]:
        """Internal delete operation that returns standardized result.

        Raises:
            DatabaseLockedError: If database is in use (handled by handle_cli_operation).
            OSError: If deletion fails for other reasons (handled by handle_cli_operation).
        """
        delete_database(db_path)
        return {"success": True, "message": "Database deleted successfully"}

    def _rebuild_operation(self, *, db_path: Path) -> dict[str, Any]:
        """Internal rebuild operation that returns standardized result.

        Raises:
            DatabaseLockedError: If database is in use (handled by handle_cli_operation).
            MigrationError: If a migration fails (handled by handle_cli_operation).
        """
        applied = rebuild_database(db_path)
        return {
            "success": True,
            "message": f"Database rebuilt successfully ({len(applied)} migration(s) applied)",
        }


def _status_table(rows: list[MigrationStatus], *, db_path: Path) -> Table:
    table = Table(title=f"Migrations for {db_path}")
    table.add_column("Version", no_wrap=True)
    table.add_column("Name")
    table.add_column("Applied at")
    for row in rows:
        applied = row.applied_at or "[yellow]pending[/yellow]"
        table.add_row(row.migration.version, row.migration.name, applied)
    return table


cli = DatabaseCLI()


def _db_path(ctx: typer.Context, db_path: Path | None) -> Path:
    with handle_errors("load settings", logger=cli.logger):
        return resolve_settings(ctx, db_path=db_path).db_path


@db_app.command("migrate")
def migrate_command(
    ctx: typer.Context,
    db_path: DbPathOption = None,
    target: Annotated[
        str | None,
        typer.Option("--target", help="Highest migration version to apply (e.g. 0001)"),
    ] = None,
) -> None:
    """Apply pending migrations in version order.

    Each migration and its ledger row are committed together. Exits with
    code 1 if a migration fails; earlier migrations stay applied.
    """
    result = cli.migrate_db(db_path=_db_path(ctx, db_path), target=target)
    if not result.get("success"):
        raise typer.Exit(1)


@db_app.command("rollback")
def rollback_command(
    ctx: typer.Context,
    db_path: DbPathOption = None,
    steps: Annotated[
        int,
        typer.Option("--steps", "-n", min=1, help="Number of migrations to revert"),
    ] = 1,
) -> None:
    """Revert the most recently applied migrations, newest first."""
    result = cli.rollback_db(db_path=_db_path(ctx, db_path), steps=steps)
    if not result.get("success"):
        raise typer.Exit(1)


@db_app.command("redo")
def redo_command(ctx: typer.Context, db_path: DbPathOption = None) -> None:
    """Revert and re-apply the latest migration to check its down script."""
    result = cli.redo_db(db_path=_db_path(ctx, db_path))
    if not result.get("success"):
        raise typer.Exit(1)


@db_app.command("status")
def status_command(ctx: typer.Context, db_path: DbPathOption = None) -> None:
    """Show every known migration and when it was applied."""
    cli.status_db(db_path=_db_path(ctx, db_path))


@db_app.command("delete")
def delete_command(ctx: typer.Context, db_path: DbPathOption = None) -> None:
    """Delete the database and associated journal/WAL/SHM files.

    If deletion fails because the database is in use, exits with a clear
    error message instructing the user to close all processes using the
    database.

    Exits with code 1 if deletion fails (e.g., database is locked).
    """
    result = cli.delete_db(db_path=_db_path(ctx, db_path))
    if not result.get("success"):
        raise typer.Exit(1)


@db_app.command("rebuild")
def rebuild_command(ctx: typer.Context, db_path: DbPathOption = None) -> None:
    """Delete and rebuild the database from scratch.

    All events are lost. The fresh database has every migration applied.

    Exits with code 1 if rebuild fails (e.g., database is locked or a
    migration fails).
    """
    result = cli.rebuild_db(db_path=_db_path(ctx, db_path))
    if not result.get("success"):
        raise typer.Exit(1)


app = db_app
