"""Global, project-wide configuration constants.

This module intentionally contains **no business logic** – only simple,
shared filesystem anchors and cross-cutting constants that many modules
can import.

Runtime settings that depend on the environment (database path, display
timezone) are resolved in `babylog.config`, building on these anchors.
"""

import os
from pathlib import Path

# Core roots
PACKAGE_ROOT: Path = Path(__file__).resolve().parent

# Core Names
PROJECT_NAME = "babylog"

# Per-user data and state roots (XDG base directories)
XDG_DATA_HOME: Path = Path(os.environ.get("XDG_DATA_HOME") or Path.home() / ".local" / "share")
XDG_STATE_HOME: Path = Path(os.environ.get("XDG_STATE_HOME") or Path.home() / ".local" / "state")

# Database
DB_DIR: Path = XDG_DATA_HOME / PROJECT_NAME
DEFAULT_DB_PATH: Path = DB_DIR / f"{PROJECT_NAME}.sqlite"

# SQL directory
SQL_DIR: Path = PACKAGE_ROOT / "sql"
DB_MIGRATIONS_DIR: Path = SQL_DIR / "migrations"

# Logs directories
LOGS_DIR: Path = XDG_STATE_HOME / PROJECT_NAME
SESSION_LOG_PATH: Path = LOGS_DIR / f"{PROJECT_NAME}.log"

# Environment variable names
ENV_DB_PATH = "BABYLOG_DB_PATH"
ENV_DATABASE_URL = "DATABASE_URL"
ENV_TZ = "BABYLOG_TZ"

DEFAULT_TZ = "UTC"
