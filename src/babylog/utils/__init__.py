"""Time helpers shared by storage, import and the session.

Stored instants are canonical UTC strings; everything the user sees or
types is in the configured IANA zone.
"""

from .time import (
    AmbiguousLocalTimeError,
    NonexistentLocalTimeError,
    assert_iana_zone,
    format_duration_minutes,
    format_local_input,
    format_ts_for_display,
    format_ts_utc_z,
    local_naive_to_utc,
    normalize_instant,
    now_ts_utc_z,
    parse_local_input,
    parse_ts_utc,
    utc_now,
)

__all__ = [
    "AmbiguousLocalTimeError",
    "NonexistentLocalTimeError",
    "assert_iana_zone",
    "format_duration_minutes",
    "format_local_input",
    "format_ts_for_display",
    "format_ts_utc_z",
    "local_naive_to_utc",
    "normalize_instant",
    "now_ts_utc_z",
    "parse_local_input",
    "parse_ts_utc",
    "utc_now",
]
