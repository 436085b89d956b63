"""Runtime settings resolved from CLI options, the environment and `.env`.

Precedence for every setting is: explicit value, environment, default.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import find_dotenv, load_dotenv

from . import global_config as g
from .utils.time import assert_iana_zone

logger = logging.getLogger(__name__)

SQLITE_URL_PREFIX = "sqlite://"


@dataclass(frozen=True)
class Settings:
    """Resolved runtime settings for one process."""

    db_path: Path
    tz: str


def _strip_sqlite_url(url: str) -> str:
    # sqlite://relative.db and sqlite:///absolute/path.db
    if url.startswith(SQLITE_URL_PREFIX):
        return url[len(SQLITE_URL_PREFIX) :]
    return url


def resolve_db_path(db_path: Path | str | None = None) -> Path:
    """Resolve the database file path.

    Args:
        db_path: Explicit path (e.g. from `--db-path`). Wins when given.

    Returns:
        Path to the SQLite database file. `BABYLOG_DB_PATH`, then
        `DATABASE_URL` (with an optional `sqlite://` prefix), then
        `global_config.DEFAULT_DB_PATH`.
    """
    if db_path:
        return Path(db_path).expanduser()

    env_path = os.environ.get(g.ENV_DB_PATH)
    if env_path:
        return Path(env_path).expanduser()

    url = os.environ.get(g.ENV_DATABASE_URL)
    if url:
        return Path(_strip_sqlite_url(url)).expanduser()

    return g.DEFAULT_DB_PATH


def resolve_tz(tz: str | None = None) -> str:
    """Resolve the IANA zone used to display and enter local times.

    Raises:
        ValueError: If the resolved name is not a valid IANA zone.
    """
    resolved = tz or os.environ.get(g.ENV_TZ) or os.environ.get("TZ") or g.DEFAULT_TZ
    assert_iana_zone(resolved)
    return resolved


def session_log_path() -> Path:
    """Log file used while the interactive session owns the screen.

    Read at call time so a changed `XDG_STATE_HOME` is honoured.
    """
    state_home = os.environ.get("XDG_STATE_HOME")
    if state_home:
        return Path(state_home) / g.PROJECT_NAME / g.SESSION_LOG_PATH.name
    return g.SESSION_LOG_PATH


def load_settings(
    *,
    db_path: Path | str | None = None,
    tz: str | None = None,
    dotenv_path: Path | None = None,
) -> Settings:
    """Load `.env` (without overriding the real environment) and resolve settings.

    Args:
        db_path: Explicit database path, overrides the environment.
        tz: Explicit IANA zone, overrides the environment.
        dotenv_path: `.env` file to read. Defaults to searching from the
            current working directory.

    Returns:
        Resolved `Settings`.

    Raises:
        ValueError: If the timezone is invalid.
    """
    load_dotenv(dotenv_path or find_dotenv(usecwd=True), override=False)
    settings = Settings(db_path=resolve_db_path(db_path), tz=resolve_tz(tz))
    logger.debug("Resolved settings: db_path=%s tz=%s", settings.db_path, settings.tz)
    return settings
