"""Listing-mode actions and the keys bound to them."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import Enum

from . import keys


class Action(Enum):
    QUIT = "quit"
    ADD_EVENT = "add"
    EDIT_EVENT = "edit"
    DELETE_EVENT = "delete"
    RELOAD = "reload"
    FILTER_TYPE = "filter"
    MOVE_UP = "up"
    MOVE_DOWN = "down"


DEFAULT_BINDINGS: dict[Action, tuple[str, ...]] = {
    Action.QUIT: ("q", keys.CTRL_C),
    Action.ADD_EVENT: ("a",),
    Action.EDIT_EVENT: ("e", keys.ENTER),
    Action.DELETE_EVENT: ("d",),
    Action.RELOAD: ("r",),
    Action.FILTER_TYPE: ("f",),
    Action.MOVE_UP: (keys.UP, "k"),
    Action.MOVE_DOWN: (keys.DOWN, "j"),
}

ACTION_LABELS: dict[Action, str] = {
    Action.QUIT: "Quit",
    Action.ADD_EVENT: "Add",
    Action.EDIT_EVENT: "Edit",
    Action.DELETE_EVENT: "Delete",
    Action.RELOAD: "Reload",
    Action.FILTER_TYPE: "Filter",
    Action.MOVE_UP: "Up",
    Action.MOVE_DOWN: "Down",
}

# Shown in the menu line; navigation is implied
MENU_ACTIONS = (
    Action.ADD_EVENT,
    Action.EDIT_EVENT,
    Action.DELETE_EVENT,
    Action.FILTER_TYPE,
    Action.RELOAD,
    Action.QUIT,
)


class KeyConflictError(ValueError):
    """Raised when the same key is bound to more than one action."""


class ActionMap:
    """Resolve key names to actions.

    Args:
        bindings: Action to the keys that trigger it.

    Raises:
        KeyConflictError: If any key is bound twice. The message lists every
            conflicting key, not only the first one found.
    """

    def __init__(self, bindings: Mapping[Action, Iterable[str]] | None = None) -> None:
        self.bindings = {
            action: tuple(bound) for action, bound in (bindings or DEFAULT_BINDINGS).items()
        }

        owners: dict[str, list[Action]] = {}
        for action, bound in self.bindings.items():
            for key in bound:
                owners.setdefault(key, []).append(action)

        conflicts = {key: acts for key, acts in owners.items() if len(acts) > 1}
        if conflicts:
            details = "; ".join(
                f"{key!r} -> {', '.join(a.name for a in acts)}"
                for key, acts in sorted(conflicts.items())
            )
            raise KeyConflictError(f"Conflicting key bindings: {details}")

        self._by_key = {key: acts[0] for key, acts in owners.items()}

    def resolve(self, key: str) -> Action | None:
        return self._by_key.get(key)

    def menu(self) -> list[tuple[str, str]]:
        """(primary key, label) pairs for the menu line."""
        return [
            (self.bindings[action][0], ACTION_LABELS[action])
            for action in MENU_ACTIONS
            if self.bindings.get(action)
        ]
