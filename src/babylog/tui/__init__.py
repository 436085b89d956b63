"""Terminal user interface: key handling, forms, rendering and the session loop."""

from .actions import Action, ActionMap, KeyConflictError
from .form import EventForm, FormCommand
from .session import Session
from .state import Mode, SessionState, StatusLevel

__all__ = [
    "Action",
    "ActionMap",
    "KeyConflictError",
    "EventForm",
    "FormCommand",
    "Session",
    "Mode",
    "SessionState",
    "StatusLevel",
]
