"""Shared plumbing for the babylog command groups.

Every subcommand returns a result dict (`success`, counts, `message`,
`failures`, `items`) and lets `BaseCLI.handle_cli_operation` print it.
Exceptions stop at `handle_errors`, which logs the traceback and exits 1.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import typer

from ..config import Settings, load_settings

_LOGGING_CONFIGURED = False

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

STAT_KEYS = ("total", "succeeded", "failed", "skipped")


def configure_logging(
    level: int = logging.INFO,
    *,
    log_file: Path | None = None,
    force: bool = False,
) -> None:
    """Configure root logging once per process.

    Args:
        level: Root logging level.
        log_file: Send records here instead of stderr. The interactive
            session uses this so log lines never land on its screen.
        force: Drop handlers installed by an earlier call.

    Side Effects:
        - Creates the log file's parent directory.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED and not force:
        return

    handlers: list[logging.Handler] | None = None
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers = [logging.FileHandler(log_file, encoding="utf-8")]

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=force)
    _LOGGING_CONFIGURED = True


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)


@dataclass(frozen=True)
class GlobalOptions:
    """Options given to the top-level `babylog` command.

    Stored on the Typer context so subcommands fall back to them.
    """

    db_path: Path | None = None
    tz: str | None = None
    verbose: bool = False
    no_migrate: bool = False


def resolve_settings(
    ctx: typer.Context | None,
    *,
    db_path: Path | None = None,
    tz: str | None = None,
) -> Settings:
    """Resolve settings for a subcommand.

    The subcommand's own options win, then the top-level options, then the
    environment and defaults (see `babylog.config`).
    """
    options = ctx.obj if ctx is not None and isinstance(ctx.obj, GlobalOptions) else GlobalOptions()
    return load_settings(db_path=db_path or options.db_path, tz=tz or options.tz)


@contextmanager
def handle_errors(
    operation: str,
    *,
    logger: logging.Logger | None = None,
) -> Generator[None, None, None]:
    """Turn any exception into a red one-line message and exit code 1.

    `typer.Exit` passes through untouched.

    Logs:
        - ERROR: "Error during {operation}" with the traceback.

    User Output:
        - "✗ {operation} failed: {exc}" in red.
    """
    logger = logger or get_logger(__name__)
    try:
        yield
    except typer.Exit:
        raise
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error during %s", operation)
        typer.secho(f"✗ {operation} failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(1) from exc


def format_result(result: dict[str, Any] | None, *, operation: str) -> str:
    """Render a result dict as a short block of CLI text.

    Example:
        ✓ import csv
          total: 3 | succeeded: 2 | failed: 1
          ℹ Imported 2 event(s)
          Failures:
            • line 4: Unknown event type 'nap'
    """
    if result is None:
        return f"✓ {operation}"

    icon = "✓" if result.get("success", True) else "✗"
    lines = [f"{icon} {operation}"]

    stats = [f"{key}: {result[key]}" for key in STAT_KEYS if result.get(key) is not None]
    if stats:
        lines.append("  " + " | ".join(stats))

    if result.get("message"):
        lines.append(f"  ℹ {result['message']}")

    failures = result.get("failures") or []
    if failures:
        lines.append("  Failures:")
        lines.extend(
            f"    • {failure.get('item', 'item')}: {failure.get('reason') or 'Unknown error'}"
            for failure in failures
        )

    items = result.get("items") or []
    if items:
        lines.append("  Items:")
        lines.extend(f"    • {item}" for item in items)

    return "\n".join(lines)


class BaseCLI:
    """Base class for command groups; `domain` names the group in logs."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        self.logger = get_logger(f"{__name__}.{domain}")

    def handle_cli_operation(
        self,
        *,
        operation: str,
        op_callable: Callable[[], dict[str, Any] | None],
        pre_message: str | None = None,
    ) -> dict[str, Any]:
        """Run op_callable under `handle_errors` and print its result.

        Args:
            operation: Name used in the result header and error message.
            op_callable: Does the work and returns a result dict.
            pre_message: Echoed before the work starts.

        Returns:
            The result dict (empty if the callable returned None).
        """
        if pre_message:
            typer.echo(pre_message)

        with handle_errors(operation, logger=self.logger):
            result = op_callable()

        typer.echo(format_result(result, operation=operation))
        return result or {}


def run_cli_task(task: Callable[[], int | None]) -> int:
    """Run a long-lived task and map an unexpected crash to exit code 1.

    Logs:
        - ERROR: "Unhandled error during CLI task" with the traceback.
    """
    logger = get_logger(__name__)
    try:
        result = task()
    except Exception:  # noqa: BLE001
        logger.exception("Unhandled error during CLI task")
        return 1
    return int(result) if result is not None else 0
