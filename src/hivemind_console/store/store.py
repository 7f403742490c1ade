"""Constructible state container for the console.

``ConsoleStore`` owns one immutable ``ConsoleState`` at a time. Command
handlers build the next state and swap it in; reads go through the pure
functions in ``selectors``. Nothing here is global: construct one store per
dashboard (or per test) and inject the command gateway it should use.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable, Optional

from loguru import logger

from ..api.client import TaskCommands
from ..domain.events import Event
from ..domain.models import Snapshot
from ..errors import InvalidTransition
from ..projections.attempts import AttemptKey
from ..projections.event_log import EventLog
from ..projections.kanban import MoveOutcome, current_executions, dispatch_move, plan_move
from ..utils import _now
from .selection import stabilize_selections
from .state import ConsoleState, Notification, NotificationType


Listener = Callable[[ConsoleState], None]


class ConsoleStore:
    def __init__(
        self,
        commands: Optional[TaskCommands] = None,
        *,
        initial: Optional[ConsoleState] = None,
    ) -> None:
        self._commands = commands
        self._state = initial or ConsoleState()
        self._listeners: list[Listener] = []

    @property
    def state(self) -> ConsoleState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Call ``listener`` after every state change; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _set(self, state: ConsoleState) -> ConsoleState:
        self._state = state
        for listener in list(self._listeners):
            listener(state)
        return state

    # -- snapshot reconciliation -------------------------------------------

    def apply_snapshot(self, snapshot: Snapshot, *, replace_events: bool = True) -> ConsoleState:
        """Replace every entity collection wholesale.

        The event log is replaced too unless ``replace_events`` is false, in
        which case it is left exactly as it was.
        """
        current = self._state
        if current.connection != "connected":
            logger.info("Connected to backend")
        state = replace(
            current,
            projects=snapshot.projects,
            tasks=snapshot.tasks,
            graphs=snapshot.graphs,
            flows=snapshot.flows,
            merge_states=snapshot.merge_states,
            connection="connected",
            last_error=None,
            last_synced_at=_now(),
            revision=current.revision + 1,
        )
        if replace_events:
            state = replace(state, events=EventLog(snapshot.events), events_revision=current.events_revision + 1)
        state = stabilize_selections(state)
        logger.debug(
            "Snapshot applied (revision {}, events {}): {}",
            state.revision,
            "replaced" if replace_events else "kept",
            snapshot.counts(),
        )
        return self._set(state)

    def mark_disconnected(self, message: str) -> ConsoleState:
        """Record a transport failure; entities stay at their last good values."""
        if self._state.connection != "disconnected":
            logger.warning("Backend unreachable: {}", message)
        return self._set(replace(self._state, connection="disconnected", last_error=message))

    def record_error(self, message: str) -> ConsoleState:
        """Surface a backend-reported failure; entities stay untouched."""
        logger.warning("Backend reported an error: {}", message)
        return self._set(replace(self._state, last_error=message))

    # -- event stream ------------------------------------------------------

    def set_paused(self, paused: bool) -> ConsoleState:
        if paused == self._state.paused:
            return self._state
        logger.info("Event stream {}", "paused" if paused else "resumed")
        return self._set(replace(self._state, paused=paused))

    def toggle_pause(self) -> ConsoleState:
        return self.set_paused(not self._state.paused)

    def append_event(self, event: Event) -> ConsoleState:
        state = self._state
        return self._set(
            replace(state, events=state.events.appended(event), events_revision=state.events_revision + 1)
        )

    # -- selections --------------------------------------------------------

    def select_project(self, project_id: Optional[str]) -> ConsoleState:
        return self._set(replace(self._state, selected_project_id=project_id))

    def select_flow(self, flow_id: Optional[str]) -> ConsoleState:
        state = replace(self._state, selected_flow_id=flow_id)
        flow = next((f for f in state.flows if f.id == flow_id), None)
        if flow is not None and flow.project_id:
            state = replace(state, selected_project_id=flow.project_id)
        return self._set(state)

    def select_task(self, task_id: Optional[str]) -> ConsoleState:
        return self._set(replace(self._state, selected_task_id=task_id))

    def select_session(self, key: Optional[AttemptKey]) -> ConsoleState:
        return self._set(replace(self._state, selected_session=key))

    # -- notifications -----------------------------------------------------

    def add_notification(self, type: NotificationType, title: str, message: Optional[str] = None) -> Notification:
        notification = Notification(type=type, title=title, message=message)
        self._set(replace(self._state, notifications=(notification, *self._state.notifications)))
        return notification

    def mark_notification_read(self, notification_id: str) -> ConsoleState:
        notifications = tuple(
            replace(n, read=True) if n.id == notification_id else n for n in self._state.notifications
        )
        return self._set(replace(self._state, notifications=notifications))

    def clear_notifications(self) -> ConsoleState:
        return self._set(replace(self._state, notifications=()))

    # -- kanban ------------------------------------------------------------

    async def move_task(
        self,
        task_id: str,
        target: str,
        *,
        confirm: Optional[Callable[[str], bool]] = None,
    ) -> MoveOutcome:
        """Validate and dispatch a kanban move.

        Invalid moves come back as a ``rejected`` outcome without any network
        call. The board itself only changes once the next snapshot arrives.
        """
        state = self._state
        task = next((t for t in state.tasks if t.id == task_id), None)
        if task is None:
            return MoveOutcome(task_id, target, "rejected", f"Unknown task '{task_id}'")
        try:
            plan = plan_move(task, current_executions(state.flows).get(task_id), target)
        except InvalidTransition as exc:
            logger.info("Rejected move of {} to {}: {}", task_id, target, exc.message)
            return MoveOutcome(task_id, target, "rejected", exc.message)
        if plan.unchanged:
            return MoveOutcome(task_id, target, "unchanged")
        if self._commands is None:
            raise RuntimeError("ConsoleStore has no command gateway; pass commands= to dispatch moves")

        outcome = await dispatch_move(plan, self._commands, confirm)
        if outcome.status == "dispatched":
            self.add_notification("success", "Action completed", f"Move {task.title or task_id} to {target} succeeded")
        elif outcome.status == "failed":
            self.add_notification("error", f"Move {task.title or task_id} to {target} failed", outcome.message)
        return outcome
