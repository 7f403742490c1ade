"""Resolve the in-flight (task, flow) execution contexts of a project.

A context is "active" while its execution state is running, verifying or
retry. Its attempt id and start time come from the most recent
``AttemptStarted`` event correlated to the same flow and task; without one the
attempt is unknown and the execution's ``updated_at`` stands in for the start.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Mapping, NamedTuple, Optional, Sequence

from ..constants import ACTIVE_EXEC_STATES, DEFAULT_SESSION_EVENT_LIMIT, RUNTIME_EVENT_CATEGORIES
from ..domain.events import Event, EventKind, compare_events
from ..domain.models import Task, TaskFlow
from ..utils import _iso
from .event_log import correlated_with, filter_events, newest_first


def is_active_exec_state(state: Optional[str]) -> bool:
    return state in ACTIVE_EXEC_STATES


class AttemptKey(NamedTuple):
    """Addresses one session across recomputations."""

    task_id: str
    flow_id: str
    attempt_id: Optional[str]

    def __str__(self) -> str:
        return f"{self.task_id}::{self.flow_id}::{self.attempt_id or '-'}"


@dataclass(frozen=True)
class AttemptContext:
    key: AttemptKey
    task_id: str
    task_title: str
    flow_id: str
    exec_state: str
    attempt_id: Optional[str]
    started_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": str(self.key),
            "task_id": self.task_id,
            "task_title": self.task_title,
            "flow_id": self.flow_id,
            "exec_state": self.exec_state,
            "attempt_id": self.attempt_id,
            "started_at": _iso(self.started_at),
        }


def _latest_attempt_started(events: Sequence[Event], flow_id: str, task_id: str) -> Optional[Event]:
    latest: Optional[Event] = None
    for event in events:
        if event.kind is not EventKind.ATTEMPT_STARTED:
            continue
        if event.correlation.flow_id != flow_id or event.correlation.task_id != task_id:
            continue
        # Strictly newer only: among equal timestamps the first one given wins.
        if latest is None or compare_events(event, latest) > 0:
            latest = event
    return latest


def resolve_active_attempts(
    flows: Iterable[TaskFlow],
    tasks: Mapping[str, Task],
    events: Sequence[Event],
) -> list[AttemptContext]:
    """List every active execution context, newest start first.

    Executions whose task is not in ``tasks`` (outside the project scope) are
    skipped.
    """
    contexts: list[AttemptContext] = []
    for flow in flows:
        for task_id, execution in flow.task_executions.items():
            if not is_active_exec_state(execution.state):
                continue
            task = tasks.get(task_id)
            if task is None:
                continue
            started = _latest_attempt_started(events, flow.id, task_id)
            attempt_id = started.correlation.attempt_id if started is not None else None
            started_at = started.timestamp if started is not None else execution.updated_at
            contexts.append(
                AttemptContext(
                    key=AttemptKey(task_id, flow.id, attempt_id),
                    task_id=task_id,
                    task_title=task.title,
                    flow_id=flow.id,
                    exec_state=execution.state,
                    attempt_id=attempt_id,
                    started_at=started_at,
                )
            )
    return sorted(contexts, key=lambda ctx: ctx.started_at, reverse=True)


def resolve_selected_session(
    contexts: Sequence[AttemptContext],
    selected: Optional[AttemptKey],
) -> Optional[AttemptContext]:
    """Keep ``selected`` when it is still active, else default to the newest."""
    if not contexts:
        return None
    if selected is not None:
        for ctx in contexts:
            if ctx.key == selected:
                return ctx
    return contexts[0]


def session_events(
    events: Iterable[Event],
    context: AttemptContext,
    *,
    limit: int = DEFAULT_SESSION_EVENT_LIMIT,
) -> list[Event]:
    """Slice the event stream of one session, newest first, at most ``limit`` long.

    With a known attempt id only events of that attempt are kept. Otherwise only
    attempt-less events at or after the context start are kept, so nothing from
    before the attempt leaks in.
    """
    scoped = filter_events(events, correlated_with(flow_id=context.flow_id, task_id=context.task_id))
    if context.attempt_id is not None:
        stream = [event for event in scoped if event.correlation.attempt_id == context.attempt_id]
    else:
        stream = [
            event
            for event in scoped
            if event.correlation.attempt_id is None and event.timestamp >= context.started_at
        ]
    return newest_first(stream)[: max(limit, 0)]


def runtime_events(stream: Iterable[Event]) -> list[Event]:
    return [
        event
        for event in stream
        if event.category in RUNTIME_EVENT_CATEGORIES or event.kind is EventKind.FILE_MODIFIED
    ]
