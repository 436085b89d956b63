from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from ..config import Settings, load_settings, session_log_path
from ..database.errors import PersistenceError
from ..events.store import EventStore
from ..tui.keys import read_key
from ..tui.session import Session
from .base import GlobalOptions, configure_logging, get_logger, run_cli_task
from .commands.db import app as db_app
from .commands.importer import import_csv_command

app = typer.Typer(
    help="Log feedings, diaper changes, sleep and more from the terminal.",
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(db_app, name="db")
app.command("import-csv")(import_csv_command)

logger = get_logger(__name__)


def launch_session(
    settings: Settings,
    *,
    auto_migrate: bool = True,
    console: Console | None = None,
    key_reader: Callable[[], str] = read_key,
) -> int:
    """Open the store and run the interactive session until the user quits.

    Args:
        settings: Resolved database path and timezone.
        auto_migrate: Apply pending migrations before starting. If False,
            pending migrations are a startup failure.
        console: Console to draw on. Defaults to stdout.
        key_reader: Source of key names. Defaults to the terminal.

    Returns:
        0 on normal quit, 1 if the database cannot be opened or migrated.

    User Output:
        - Red "✗ Cannot start: {error}" on startup failure.
    """
    try:
        store = EventStore.open(settings.db_path, auto_migrate=auto_migrate)
    except PersistenceError as exc:
        logger.exception("Cannot open %s", settings.db_path)
        typer.secho(f"✗ Cannot start: {exc}", fg=typer.colors.RED, err=True)
        return 1

    with store:
        session = Session(store, console=console, key_reader=key_reader, tz=settings.tz)
        return run_cli_task(session.run)


@app.callback(invoke_without_command=True)
def babylog(
    ctx: typer.Context,
    db_path: Annotated[
        Path | None,
        typer.Option(
            "--db-path",
            help="Path to SQLite database file (defaults to BABYLOG_DB_PATH, DATABASE_URL or the XDG data dir)",
        ),
    ] = None,
    tz: Annotated[
        str | None,
        typer.Option("--tz", help="IANA zone for showing and entering times (defaults to BABYLOG_TZ, TZ or UTC)"),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("-v", "--verbose", help="Log at DEBUG level"),
    ] = False,
    no_migrate: Annotated[
        bool,
        typer.Option("--no-migrate", help="Fail instead of applying pending migrations"),
    ] = False,
) -> None:
    """Log infant care events in a local SQLite database.

    Without a subcommand, opens the interactive session. Keys: a add,
    e/enter edit, d delete, f filter by type, r reload, j/k or arrows move,
    q quit.
    """
    ctx.obj = GlobalOptions(db_path=db_path, tz=tz, verbose=verbose, no_migrate=no_migrate)
    level = logging.DEBUG if verbose else logging.INFO

    if ctx.invoked_subcommand is not None:
        configure_logging(level)
        return

    # The screen belongs to the session; logs go to a file
    configure_logging(level, log_file=session_log_path(), force=True)
    try:
        settings = load_settings(db_path=db_path, tz=tz)
    except ValueError as exc:
        logger.error("Invalid settings: %s", exc)
        typer.secho(f"✗ Cannot start: {exc}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1) from exc

    raise typer.Exit(launch_session(settings, auto_migrate=not no_migrate))


def main() -> None:
    """Main entry point for package CLI.

    Invokes the Typer application, which handles command parsing and
    execution.

    Side Effects:
        - Processes CLI arguments and executes commands.
        - May exit with non-zero code on errors.
    """
    app()


if __name__ == "__main__":
    main()
