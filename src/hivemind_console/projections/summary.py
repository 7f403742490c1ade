"""Project and flow summaries shown on the dashboard."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

from ..domain.events import Event
from ..domain.models import MergeState, Task, TaskFlow


@dataclass(frozen=True)
class FlowProgress:
    flow_id: str
    succeeded: int
    total: int
    by_state: dict[str, int] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.succeeded}/{self.total}"


def flow_progress(flow: TaskFlow) -> FlowProgress:
    states = Counter(execution.state for execution in flow.task_executions.values())
    return FlowProgress(
        flow_id=flow.id,
        succeeded=states.get("success", 0),
        total=sum(states.values()),
        by_state=dict(states),
    )


@dataclass(frozen=True)
class ProjectSummary:
    project_id: str
    open_tasks: int
    running_flows: int
    paused_flows: int
    completed_flows: int
    merges: int
    pending_merges: int
    exec_state_totals: dict[str, int]
    recent_events: tuple[Event, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_id": self.project_id,
            "open_tasks": self.open_tasks,
            "running_flows": self.running_flows,
            "paused_flows": self.paused_flows,
            "completed_flows": self.completed_flows,
            "merges": self.merges,
            "pending_merges": self.pending_merges,
            "exec_state_totals": dict(self.exec_state_totals),
            "recent_events": [event.id for event in self.recent_events],
        }


def summarize_project(
    project_id: str,
    tasks: Iterable[Task],
    flows: Sequence[TaskFlow],
    merges: Sequence[MergeState],
    events: Sequence[Event],
    *,
    recent_limit: int,
) -> ProjectSummary:
    """Aggregate already project-scoped entities into dashboard counters."""
    flow_states = Counter(flow.state for flow in flows)
    exec_totals: Counter[str] = Counter()
    for flow in flows:
        if flow.state != "running":
            continue
        exec_totals.update(execution.state for execution in flow.task_executions.values())
    return ProjectSummary(
        project_id=project_id,
        open_tasks=sum(1 for task in tasks if not task.is_closed),
        running_flows=flow_states.get("running", 0),
        paused_flows=flow_states.get("paused", 0),
        completed_flows=flow_states.get("completed", 0) + flow_states.get("merged", 0),
        merges=len(merges),
        pending_merges=sum(1 for merge in merges if merge.status != "completed"),
        exec_state_totals=dict(exec_totals),
        recent_events=tuple(events[: max(recent_limit, 0)]),
    )
