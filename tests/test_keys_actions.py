"""Tests for key normalisation and listing key bindings."""

from __future__ import annotations

import pytest

from babylog.tui import keys
from babylog.tui.actions import DEFAULT_BINDINGS, Action, ActionMap, KeyConflictError


@pytest.mark.unit
class TestNormalizeKey:
    """Tests for normalize_key."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("\r", keys.ENTER),
            ("\n", keys.ENTER),
            ("\t", keys.TAB),
            ("\x1b[Z", keys.BACKTAB),
            ("\x7f", keys.BACKSPACE),
            ("\x08", keys.BACKSPACE),
            ("\x1b", keys.ESC),
            ("\x1b[A", keys.UP),
            ("\x1bOB", keys.DOWN),
            ("\x1b[C", keys.RIGHT),
            ("\xe0K", keys.LEFT),
            ("\x03", keys.CTRL_C),
            ("a", "a"),
            (" ", " "),
            ("\x1b[15~", keys.UNKNOWN),
        ],
    )
    def test_sequences(self, raw: str, expected: str) -> None:
        assert keys.normalize_key(raw) == expected

    def test_read_key_translates_interrupt(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def _interrupt() -> str:
            raise KeyboardInterrupt

        monkeypatch.setattr(keys.click, "getchar", _interrupt)
        assert keys.read_key() == keys.CTRL_C

    def test_read_key_treats_empty_read_as_eof(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(keys.click, "getchar", lambda: "")
        with pytest.raises(EOFError):
            keys.read_key()

    def test_is_printable(self) -> None:
        assert keys.is_printable("x")
        assert not keys.is_printable(keys.ENTER)
        assert not keys.is_printable("\x1b")


@pytest.mark.unit
class TestActionMap:
    """Tests for ActionMap."""

    def test_default_bindings(self) -> None:
        action_map = ActionMap()
        assert action_map.resolve("q") is Action.QUIT
        assert action_map.resolve(keys.CTRL_C) is Action.QUIT
        assert action_map.resolve("a") is Action.ADD_EVENT
        assert action_map.resolve(keys.ENTER) is Action.EDIT_EVENT
        assert action_map.resolve("j") is Action.MOVE_DOWN
        assert action_map.resolve("z") is None

    def test_every_action_is_bound(self) -> None:
        assert set(DEFAULT_BINDINGS) == set(Action)

    def test_conflicts_are_all_reported(self) -> None:
        bindings = dict(DEFAULT_BINDINGS)
        bindings[Action.RELOAD] = ("q", "a")
        with pytest.raises(KeyConflictError) as exc:
            ActionMap(bindings)
        message = str(exc.value)
        assert "'q' -> QUIT, RELOAD" in message
        assert "'a' -> ADD_EVENT, RELOAD" in message

    def test_menu_uses_primary_keys(self) -> None:
        menu = dict(ActionMap().menu())
        assert menu["a"] == "Add"
        assert menu["q"] == "Quit"
