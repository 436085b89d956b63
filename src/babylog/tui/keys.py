"""Keypress reading and normalisation.

`click.getchar()` returns raw terminal input: single characters, control
characters and ANSI escape sequences. The session works with key names
instead, so that tests can script input as plain strings like "a", "tab",
"enter".
"""

from __future__ import annotations

import click

ENTER = "enter"
TAB = "tab"
BACKTAB = "backtab"
BACKSPACE = "backspace"
ESC = "esc"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
CTRL_C = "ctrl+c"
UNKNOWN = "unknown"

_SEQUENCES = {
    "\r": ENTER,
    "\n": ENTER,
    "\r\n": ENTER,
    "\t": TAB,
    "\x1b[Z": BACKTAB,
    "\x7f": BACKSPACE,
    "\x08": BACKSPACE,
    "\x1b": ESC,
    "\x03": CTRL_C,
    "\x1b[A": UP,
    "\x1b[B": DOWN,
    "\x1b[C": RIGHT,
    "\x1b[D": LEFT,
    "\x1bOA": UP,
    "\x1bOB": DOWN,
    "\x1bOC": RIGHT,
    "\x1bOD": LEFT,
    # Windows console arrows
    "\xe0H": UP,
    "\xe0P": DOWN,
    "\xe0M": RIGHT,
    "\xe0K": LEFT,
    "\x00H": UP,
    "\x00P": DOWN,
    "\x00M": RIGHT,
    "\x00K": LEFT,
}


def normalize_key(raw: str) -> str:
    """Map raw terminal input to a key name.

    Printable single characters are returned unchanged. Anything else that
    is not a known sequence becomes "unknown".
    """
    if raw in _SEQUENCES:
        return _SEQUENCES[raw]
    if len(raw) == 1 and raw.isprintable():
        return raw
    return UNKNOWN


def is_printable(key: str) -> bool:
    """True for key names that insert a character into a text field."""
    return len(key) == 1 and key.isprintable()


def read_key() -> str:
    """Block for one keypress on the terminal and return its key name.

    Raises:
        EOFError: On Ctrl+D or when input is exhausted.
    """
    try:
        raw = click.getchar()
    except KeyboardInterrupt:
        return CTRL_C
    if raw == "":
        raise EOFError("Input closed")
    return normalize_key(raw)
