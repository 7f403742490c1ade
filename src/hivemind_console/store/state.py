from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from ..domain.models import MergeState, Project, Task, TaskFlow, TaskGraph
from ..projections.attempts import AttemptKey
from ..projections.event_log import EventLog
from ..utils import _iso, _now

ConnectionState = Literal["connecting", "connected", "disconnected"]
NotificationType = Literal["info", "success", "warning", "error"]


def _notification_id() -> str:
    return f"notif-{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class Notification:
    type: NotificationType
    title: str
    message: Optional[str] = None
    id: str = field(default_factory=_notification_id)
    timestamp: datetime = field(default_factory=_now)
    read: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "timestamp": _iso(self.timestamp),
            "read": self.read,
        }


@dataclass(frozen=True)
class ConsoleState:
    """Everything the console knows: canonical entities plus UI state.

    ``revision`` increases on every entity replacement and ``events_revision``
    on every event-log replacement, so callers can key caches on them.
    """

    projects: tuple[Project, ...] = ()
    tasks: tuple[Task, ...] = ()
    graphs: tuple[TaskGraph, ...] = ()
    flows: tuple[TaskFlow, ...] = ()
    merge_states: tuple[MergeState, ...] = ()
    events: EventLog = field(default_factory=EventLog)

    connection: ConnectionState = "connecting"
    last_error: Optional[str] = None
    last_synced_at: Optional[datetime] = None
    paused: bool = False

    selected_project_id: Optional[str] = None
    selected_flow_id: Optional[str] = None
    selected_task_id: Optional[str] = None
    selected_session: Optional[AttemptKey] = None

    notifications: tuple[Notification, ...] = ()

    revision: int = 0
    events_revision: int = 0
