from .selection import stabilize_selection, stabilize_selections
from .state import ConsoleState, Notification
from .store import ConsoleStore
from .sync import SnapshotSync

__all__ = [
    "ConsoleState",
    "ConsoleStore",
    "Notification",
    "SnapshotSync",
    "stabilize_selection",
    "stabilize_selections",
]
