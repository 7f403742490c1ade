from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Mapping, Optional

from ..utils import EPOCH, _iso, _parse_iso
from .events import Event, decode_event


TaskState = Literal["open", "closed"]
TaskExecState = Literal[
    "pending",
    "ready",
    "running",
    "verifying",
    "success",
    "retry",
    "failed",
    "escalated",
]
FlowState = Literal["created", "running", "paused", "completed", "merged", "aborted"]


def _opt_str(value: Any) -> Optional[str]:
    return str(value) if value not in (None, "") else None


def _as_list(value: Any) -> list[Any]:
    return list(value) if isinstance(value, (list, tuple)) else []


@dataclass(frozen=True)
class Project:
    id: str
    name: str = ""
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Project":
        return cls(
            id=str(data.get("id") or ""),
            name=str(data.get("name") or ""),
            description=_opt_str(data.get("description")),
            created_at=_opt_str(data.get("created_at")),
            updated_at=_opt_str(data.get("updated_at")),
        )


@dataclass(frozen=True)
class Task:
    id: str
    project_id: str
    title: str = ""
    description: Optional[str] = None
    state: TaskState = "open"

    @property
    def is_closed(self) -> bool:
        return self.state == "closed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "state": self.state,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        state = str(data.get("state") or "open").lower()
        return cls(
            id=str(data.get("id") or ""),
            project_id=str(data.get("project_id") or ""),
            title=str(data.get("title") or ""),
            description=_opt_str(data.get("description")),
            state="closed" if state == "closed" else "open",
        )


@dataclass(frozen=True)
class TaskExecution:
    """Execution record of one task inside one flow."""

    task_id: str
    state: TaskExecState = "pending"
    attempt_count: int = 0
    updated_at: datetime = EPOCH
    blocked_reason: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "state": self.state,
            "attempt_count": self.attempt_count,
            "updated_at": _iso(self.updated_at),
            "blocked_reason": self.blocked_reason,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], *, task_id: str = "") -> "TaskExecution":
        attempts = data.get("attempt_count")
        return cls(
            task_id=str(data.get("task_id") or task_id),
            state=str(data.get("state") or "pending").lower(),  # type: ignore[arg-type]
            attempt_count=attempts if isinstance(attempts, int) and not isinstance(attempts, bool) else 0,
            updated_at=_parse_iso(data.get("updated_at")) or EPOCH,
            blocked_reason=_opt_str(data.get("blocked_reason")),
        )


@dataclass(frozen=True)
class TaskGraph:
    id: str
    project_id: str = ""
    name: str = ""
    state: str = "draft"
    task_ids: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "state": self.state,
            "task_ids": list(self.task_ids),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskGraph":
        raw_tasks = data.get("tasks")
        if isinstance(raw_tasks, Mapping):
            task_ids = tuple(str(key) for key in raw_tasks)
        else:
            task_ids = tuple(
                str(item.get("id") or item.get("task_id")) if isinstance(item, Mapping) else str(item)
                for item in _as_list(raw_tasks)
            )
        return cls(
            id=str(data.get("id") or ""),
            project_id=str(data.get("project_id") or ""),
            name=str(data.get("name") or ""),
            state=str(data.get("state") or data.get("status") or "draft"),
            task_ids=task_ids,
        )


@dataclass(frozen=True)
class TaskFlow:
    id: str
    graph_id: str = ""
    project_id: Optional[str] = None
    state: FlowState = "created"
    task_executions: Mapping[str, TaskExecution] = field(default_factory=dict)
    created_at: Optional[str] = None
    started_at: Optional[str] = None
    completed_at: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "graph_id": self.graph_id,
            "project_id": self.project_id,
            "state": self.state,
            "task_executions": {task_id: ex.to_dict() for task_id, ex in self.task_executions.items()},
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "TaskFlow":
        raw_execs = data.get("task_executions")
        executions: dict[str, TaskExecution] = {}
        if isinstance(raw_execs, Mapping):
            for task_id, raw in raw_execs.items():
                if isinstance(raw, Mapping):
                    executions[str(task_id)] = TaskExecution.from_dict(raw, task_id=str(task_id))
        return cls(
            id=str(data.get("id") or ""),
            graph_id=str(data.get("graph_id") or ""),
            project_id=_opt_str(data.get("project_id")),
            state=str(data.get("state") or "created").lower(),  # type: ignore[arg-type]
            task_executions=executions,
            created_at=_opt_str(data.get("created_at")),
            started_at=_opt_str(data.get("started_at")),
            completed_at=_opt_str(data.get("completed_at")),
        )


@dataclass(frozen=True)
class MergeState:
    flow_id: str
    status: str = "prepared"
    target_branch: Optional[str] = None
    conflicts: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "flow_id": self.flow_id,
            "status": self.status,
            "target_branch": self.target_branch,
            "conflicts": list(self.conflicts),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MergeState":
        return cls(
            flow_id=str(data.get("flow_id") or ""),
            status=str(data.get("status") or "prepared"),
            target_branch=_opt_str(data.get("target_branch")),
            conflicts=tuple(str(item) for item in _as_list(data.get("conflicts"))),
        )


@dataclass(frozen=True)
class Snapshot:
    """One canonical state payload; replaces the local read model wholesale."""

    projects: tuple[Project, ...] = ()
    tasks: tuple[Task, ...] = ()
    graphs: tuple[TaskGraph, ...] = ()
    flows: tuple[TaskFlow, ...] = ()
    merge_states: tuple[MergeState, ...] = ()
    events: tuple[Event, ...] = ()

    def counts(self) -> dict[str, int]:
        return {
            "projects": len(self.projects),
            "tasks": len(self.tasks),
            "graphs": len(self.graphs),
            "flows": len(self.flows),
            "merge_states": len(self.merge_states),
            "events": len(self.events),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Snapshot":
        def _items(key: str) -> list[Mapping[str, Any]]:
            return [item for item in _as_list(data.get(key)) if isinstance(item, Mapping)]

        return cls(
            projects=tuple(Project.from_dict(item) for item in _items("projects")),
            tasks=tuple(Task.from_dict(item) for item in _items("tasks")),
            graphs=tuple(TaskGraph.from_dict(item) for item in _items("graphs")),
            flows=tuple(TaskFlow.from_dict(item) for item in _items("flows")),
            merge_states=tuple(MergeState.from_dict(item) for item in _items("merge_states")),
            events=tuple(decode_event(item) for item in _items("events")),
        )
