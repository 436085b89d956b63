"""Canonical time and date utilities.

This module provides a single source of truth for all time/date operations:
- Canonical instant strings: YYYY-MM-DDTHH:MM:SSZ (seconds-only, UTC)
- DST-safe naive local time conversion with explicit error handling
- Parsing and formatting of the local "YYYY-MM-DD HH:MM" form used for input

All timestamps at rest (DB, CSV exports) are strings in ...Z format.
Internal operations use tz-aware datetime objects; boundaries serialize to strings.
"""

from __future__ import annotations

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

# Local input form shown in the terminal session
LOCAL_INPUT_FORMAT = "%Y-%m-%d %H:%M"
LOCAL_INPUT_FORMATS = (
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d %H:%M:%S",
)


class AmbiguousLocalTimeError(ValueError):
    """Raised when a naive local time is ambiguous due to DST fall-back.

    This occurs when a clock "falls back" and the same local time occurs twice.
    We must not guess which occurrence was intended.
    """


class NonexistentLocalTimeError(ValueError):
    """Raised when a naive local time does not exist due to DST spring-forward.

    This occurs when clocks "spring forward" and skip an hour.
    We must not invent a time that never occurred.
    """


def utc_now() -> datetime:
    """Return current UTC time as tz-aware datetime, truncated to seconds."""
    return datetime.now(UTC).replace(microsecond=0)


def format_ts_utc_z(dt: datetime) -> str:
    """Format a datetime as canonical UTC instant string (YYYY-MM-DDTHH:MM:SSZ).

    Converts any aware datetime to UTC before formatting. Sub-second
    precision is dropped.

    Args:
        dt: Datetime to format. Must be timezone-aware.

    Returns:
        Canonical instant string: YYYY-MM-DDTHH:MM:SSZ (exactly 20 characters).

    Raises:
        ValueError: If dt is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            f"Cannot format naive datetime {dt}. "
            "Provide timezone context or use local_naive_to_utc() first."
        )

    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")


def now_ts_utc_z() -> str:
    """Return current UTC time as canonical instant string."""
    return format_ts_utc_z(utc_now())


def parse_ts_utc(s: str) -> datetime:
    """Parse a UTC instant string to tz-aware UTC datetime.

    Accepts ...Z and explicit offsets (normalized to UTC).

    Raises:
        ValueError: If string format is invalid or the timestamp is naive.
    """
    raw = s[:-1] + "+00:00" if s.endswith("Z") else s
    try:
        dt = datetime.fromisoformat(raw)
    except ValueError as e:
        raise ValueError(f"Invalid timestamp format: {s}") from e

    if dt.tzinfo is None:
        raise ValueError(f"Timestamp {s} is naive. Provide UTC timestamp with Z or +00:00.")
    return dt.astimezone(UTC)


def assert_iana_zone(s: str) -> None:
    """Validate that a string is a valid IANA timezone identifier.

    Raises:
        ValueError: If string is not a valid IANA zone.
    """
    if not isinstance(s, str) or not s:
        raise ValueError(f"Invalid IANA timezone: {s!r}")

    try:
        ZoneInfo(s)
    except Exception as e:
        raise ValueError(f"Invalid IANA timezone: {s}") from e


def local_naive_to_utc(dt_naive: datetime, *, tz: str, field: str | None = None) -> datetime:
    """Convert a naive local datetime to UTC, with DST ambiguity checks.

    Interprets the naive datetime in the given IANA zone and converts to UTC.

    Args:
        dt_naive: Naive datetime (no timezone info).
        tz: IANA timezone identifier (e.g., "America/Vancouver").
        field: Optional field name for error messages.

    Returns:
        Tz-aware UTC datetime.

    Raises:
        AmbiguousLocalTimeError: If local time is ambiguous (DST fall-back).
        NonexistentLocalTimeError: If local time does not exist (DST spring-forward).
        ValueError: If dt_naive is aware or tz is not a valid IANA zone.
    """
    if dt_naive.tzinfo is not None:
        raise ValueError(f"Expected naive datetime, got timezone-aware: {dt_naive}")

    try:
        zone = ZoneInfo(tz)
    except Exception as e:
        raise ValueError(f"Invalid IANA timezone: {tz}") from e

    # Both folds map to the same instant unless the wall time is in a DST gap/overlap
    utc_fold0 = dt_naive.replace(tzinfo=zone, fold=0).astimezone(UTC)
    utc_fold1 = dt_naive.replace(tzinfo=zone, fold=1).astimezone(UTC)

    def matches_original(utc_dt: datetime) -> bool:
        return utc_dt.astimezone(zone).replace(tzinfo=None) == dt_naive

    context = f"{dt_naive.isoformat()} in {tz} (field={field or 'unknown'})"

    if utc_fold0 != utc_fold1:
        if matches_original(utc_fold0) or matches_original(utc_fold1):
            raise AmbiguousLocalTimeError(f"Ambiguous local time: {context}")
        raise NonexistentLocalTimeError(f"Nonexistent local time: {context}")

    if not matches_original(utc_fold0):
        raise NonexistentLocalTimeError(f"Nonexistent local time: {context}")

    return utc_fold0


def parse_local_input(raw: str, *, tz: str, field: str | None = None) -> datetime:
    """Parse a user-entered local time ("YYYY-MM-DD HH:MM") to aware UTC.

    Raises:
        ValueError: If the text matches none of LOCAL_INPUT_FORMATS, or the
            time is ambiguous/nonexistent in `tz`.
    """
    text = raw.strip()
    for fmt in LOCAL_INPUT_FORMATS:
        try:
            dt_naive = datetime.strptime(text, fmt)
        except ValueError:
            continue
        return local_naive_to_utc(dt_naive, tz=tz, field=field)

    raise ValueError(f"Cannot parse time {raw!r}; expected YYYY-MM-DD HH:MM")


def format_local_input(dt: datetime, *, tz: str) -> str:
    """Format an aware datetime in the "YYYY-MM-DD HH:MM" input form for `tz`."""
    if dt.tzinfo is None:
        raise ValueError("Cannot format naive datetime")
    return dt.astimezone(ZoneInfo(tz)).strftime(LOCAL_INPUT_FORMAT)


def normalize_instant(raw: str, *, tz: str, field: str | None = None) -> datetime:
    """Normalize a raw timestamp string from an external source to aware UTC.

    Handles canonical ...Z strings, ISO strings with offsets, and naive
    timestamps, which are interpreted in `tz`.

    Raises:
        AmbiguousLocalTimeError: If a naive timestamp is ambiguous in `tz`.
        NonexistentLocalTimeError: If a naive timestamp does not exist in `tz`.
        ValueError: If the string cannot be parsed.
    """
    text = raw.strip()
    try:
        dt = datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text)
    except ValueError:
        return parse_local_input(text, tz=tz, field=field)

    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(microsecond=0)

    return local_naive_to_utc(dt.replace(microsecond=0), tz=tz, field=field)


def format_ts_for_display(ts_utc: str | datetime, *, tz: str) -> str:
    """Format a UTC timestamp for human-readable display in local timezone.

    This is a view-only operation; never persist the result.
    """
    if isinstance(ts_utc, str):
        dt_utc = parse_ts_utc(ts_utc)
    else:
        if ts_utc.tzinfo is None:
            raise ValueError("Cannot display naive datetime")
        dt_utc = ts_utc

    return dt_utc.astimezone(ZoneInfo(tz)).strftime("%a %Y-%m-%d %H:%M")


def format_duration_minutes(minutes: int) -> str:
    """Render a minute count as "1h 05m" / "45m"."""
    hours, mins = divmod(int(minutes), 60)
    if hours:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"


