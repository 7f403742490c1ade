from .events import Correlation, Event, EventKind, decode_event
from .models import MergeState, Project, Snapshot, Task, TaskExecution, TaskFlow, TaskGraph

__all__ = [
    "Correlation",
    "Event",
    "EventKind",
    "MergeState",
    "Project",
    "Snapshot",
    "Task",
    "TaskExecution",
    "TaskFlow",
    "TaskGraph",
    "decode_event",
]
