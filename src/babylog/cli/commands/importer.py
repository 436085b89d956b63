"""CLI command for importing events from CSV."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import typer

from ...events import EventStore, import_events_csv
from ..base import BaseCLI, resolve_settings


class ImportCLI(BaseCLI):
    """CLI helpers for bulk imports."""

    def __init__(self) -> None:
        super().__init__("import")

    def import_csv(
        self,
        ctx: typer.Context | None,
        *,
        file: Path,
        db_path: Path | None,
        tz: str | None,
        strict: bool,
        no_migrate: bool,
    ) -> dict[str, Any]:
        """Import a CSV file and print a summary of inserted and failed rows.

        Returns:
            Standardized result dictionary (see `import_events_csv`).
        """

        def _run() -> dict[str, Any]:
            settings = resolve_settings(ctx, db_path=db_path, tz=tz)
            with EventStore.open(settings.db_path, auto_migrate=not no_migrate) as store:
                return import_events_csv(store, file, tz=settings.tz, strict=strict)

        return self.handle_cli_operation(
            operation="import csv",
            op_callable=_run,
            pre_message=f"Importing {file}...",
        )


cli = ImportCLI()


def import_csv_command(
    ctx: typer.Context,
    file: Annotated[
        Path,
        typer.Argument(exists=True, dir_okay=False, readable=True, help="CSV file to import"),
    ],
    db_path: Annotated[
        Path | None,
        typer.Option("--db-path", help="Path to SQLite database file"),
    ] = None,
    tz: Annotated[
        str | None,
        typer.Option("--tz", help="IANA zone for timestamps without an offset"),
    ] = None,
    strict: Annotated[
        bool,
        typer.Option("--strict", help="Import nothing if any row is invalid"),
    ] = False,
) -> None:
    """Import events from a CSV file.

    Accepts the typed layout (event_type,occurred_at,quantity,detail,notes)
    or the wide layout (dt,urine,stool,skin2skin,breastfeed,breastmilk,
    formula,pump). Invalid rows are reported by line number and skipped;
    valid rows are inserted in one transaction.

    Exits with code 1 if any row failed.
    """
    options = ctx.obj
    no_migrate = bool(getattr(options, "no_migrate", False))
    result = cli.import_csv(
        ctx,
        file=file,
        db_path=db_path,
        tz=tz,
        strict=strict,
        no_migrate=no_migrate,
    )
    if not result.get("success"):
        raise typer.Exit(1)
