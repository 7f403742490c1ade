"""Pure read-side selectors over ``ConsoleState``.

Nothing here mutates state or keeps data between calls; every projection is
recomputed from the state passed in.
"""

from __future__ import annotations

from typing import Iterable, Optional

from ..constants import DEFAULT_SESSION_EVENT_LIMIT, PROJECT_RECENT_EVENTS
from ..domain.events import Event
from ..domain.models import MergeState, Task, TaskFlow, TaskGraph
from ..projections.attempts import (
    AttemptContext,
    resolve_active_attempts,
    resolve_selected_session,
    runtime_events,
    session_events,
)
from ..projections.checkpoints import CheckpointSummary, project_checkpoints, with_validation_checkpoint
from ..projections.event_log import EventLog, by_category
from ..projections.kanban import KanbanBoard, build_board
from ..projections.summary import ProjectSummary, summarize_project
from .state import ConsoleState, Notification


def flow_project_id(state: ConsoleState, flow: TaskFlow) -> Optional[str]:
    """A flow's project, falling back to the project of its graph."""
    if flow.project_id:
        return flow.project_id
    for graph in state.graphs:
        if graph.id == flow.graph_id:
            return graph.project_id or None
    return None


def project_tasks(state: ConsoleState, project_id: str) -> list[Task]:
    return [task for task in state.tasks if task.project_id == project_id]


def project_graphs(state: ConsoleState, project_id: str) -> list[TaskGraph]:
    return [graph for graph in state.graphs if graph.project_id == project_id]


def project_flows(state: ConsoleState, project_id: str) -> list[TaskFlow]:
    return [flow for flow in state.flows if flow_project_id(state, flow) == project_id]


def project_merges(state: ConsoleState, project_id: str) -> list[MergeState]:
    flow_ids = {flow.id for flow in project_flows(state, project_id)}
    return [merge for merge in state.merge_states if merge.flow_id in flow_ids]


def project_events(state: ConsoleState, project_id: str) -> EventLog:
    return state.events.for_project(project_id)


def graph_for_flow(state: ConsoleState, flow: TaskFlow) -> Optional[TaskGraph]:
    return next((graph for graph in state.graphs if graph.id == flow.graph_id), None)


def kanban_board(state: ConsoleState, project_id: str) -> KanbanBoard:
    # Current execution looks across every flow a task runs in.
    return build_board(project_tasks(state, project_id), state.flows)


def active_sessions(state: ConsoleState, project_id: str) -> list[AttemptContext]:
    tasks = {task.id: task for task in project_tasks(state, project_id)}
    return resolve_active_attempts(project_flows(state, project_id), tasks, project_events(state, project_id))


def selected_session(state: ConsoleState, project_id: str) -> Optional[AttemptContext]:
    return resolve_selected_session(active_sessions(state, project_id), state.selected_session)


def session_stream(
    state: ConsoleState,
    project_id: str,
    *,
    limit: int = DEFAULT_SESSION_EVENT_LIMIT,
) -> list[Event]:
    context = selected_session(state, project_id)
    if context is None:
        return []
    return session_events(project_events(state, project_id), context, limit=limit)


def session_runtime_events(state: ConsoleState, project_id: str, *, limit: int = DEFAULT_SESSION_EVENT_LIMIT) -> list[Event]:
    return runtime_events(session_stream(state, project_id, limit=limit))


def session_checkpoints(
    state: ConsoleState,
    project_id: str,
    *,
    limit: int = DEFAULT_SESSION_EVENT_LIMIT,
) -> CheckpointSummary:
    context = selected_session(state, project_id)
    if context is None:
        return CheckpointSummary()
    stream = session_events(project_events(state, project_id), context, limit=limit)
    return with_validation_checkpoint(project_checkpoints(stream), context.exec_state)


def task_checkpoints(state: ConsoleState, task_id: str, attempt_id: Optional[str] = None) -> CheckpointSummary:
    return project_checkpoints(state.events.for_task(task_id, attempt_id))


def project_overview(state: ConsoleState, project_id: str) -> ProjectSummary:
    return summarize_project(
        project_id,
        project_tasks(state, project_id),
        project_flows(state, project_id),
        project_merges(state, project_id),
        project_events(state, project_id),
        recent_limit=PROJECT_RECENT_EVENTS,
    )


def events_in_categories(state: ConsoleState, categories: Iterable[str]) -> list[Event]:
    return by_category(state.events, categories)


def unread_notifications(state: ConsoleState) -> list[Notification]:
    return [n for n in state.notifications if not n.read]
