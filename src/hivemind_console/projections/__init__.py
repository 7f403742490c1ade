"""Pure, derived views over the store contents."""

from .attempts import AttemptContext, AttemptKey, resolve_active_attempts, resolve_selected_session, session_events
from .checkpoints import Checkpoint, CheckpointSummary, project_checkpoints
from .event_log import EventLog, correlated_with, filter_events, newest_first
from .kanban import KanbanBoard, build_board, classify, plan_move

__all__ = [
    "AttemptContext",
    "AttemptKey",
    "Checkpoint",
    "CheckpointSummary",
    "EventLog",
    "KanbanBoard",
    "build_board",
    "classify",
    "correlated_with",
    "filter_events",
    "newest_first",
    "plan_move",
    "project_checkpoints",
    "resolve_active_attempts",
    "resolve_selected_session",
    "session_events",
]
