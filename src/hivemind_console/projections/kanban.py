"""Kanban classification and column-move validation.

Column placement is a total function of the task's lifecycle state and its
current execution (the one with the latest ``updated_at`` across all flows).
Moves are validated locally into a ``MovePlan`` first; only a valid plan that
actually changes column is ever dispatched to the backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable, Iterable, Literal, Mapping, Optional

from loguru import logger

from ..constants import ACTIVE_EXEC_STATES, BLOCKED_EXEC_STATES, RETRYABLE_EXEC_STATES
from ..domain.models import Task, TaskFlow
from ..errors import ConsoleError, InvalidTransition

if TYPE_CHECKING:
    from ..api.client import TaskCommands

KanbanColumn = Literal["todo", "in_progress", "blocked", "done"]
KANBAN_COLUMNS: tuple[KanbanColumn, ...] = ("todo", "in_progress", "blocked", "done")

CommandName = Literal["start", "abort", "complete", "retry", "close"]


@dataclass(frozen=True)
class CurrentExecution:
    task_id: str
    flow_id: str
    state: str
    updated_at: datetime


def classify(task: Task, exec_state: Optional[str]) -> KanbanColumn:
    if task.is_closed:
        return "done"
    if exec_state is None:
        return "todo"
    if exec_state == "success":
        return "done"
    if exec_state in BLOCKED_EXEC_STATES:
        return "blocked"
    if exec_state in ACTIVE_EXEC_STATES:
        return "in_progress"
    return "todo"


def current_executions(flows: Iterable[TaskFlow]) -> dict[str, CurrentExecution]:
    """Pick, per task, the execution with the latest ``updated_at`` across flows.

    On equal timestamps the execution seen first is kept.
    """
    latest: dict[str, CurrentExecution] = {}
    for flow in flows:
        for task_id, execution in flow.task_executions.items():
            existing = latest.get(task_id)
            if existing is None or execution.updated_at > existing.updated_at:
                latest[task_id] = CurrentExecution(
                    task_id=task_id,
                    flow_id=flow.id,
                    state=execution.state,
                    updated_at=execution.updated_at,
                )
    return latest


@dataclass(frozen=True)
class KanbanCard:
    task: Task
    exec_state: Optional[str]
    flow_id: Optional[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task.id,
            "title": self.task.title,
            "task_state": self.task.state,
            "exec_state": self.exec_state,
            "flow_id": self.flow_id,
        }


@dataclass(frozen=True)
class KanbanBoard:
    columns: Mapping[KanbanColumn, tuple[KanbanCard, ...]]

    def counts(self) -> dict[str, int]:
        return {column: len(self.columns.get(column, ())) for column in KANBAN_COLUMNS}

    @property
    def total(self) -> int:
        return sum(self.counts().values())

    def column_of(self, task_id: str) -> Optional[KanbanColumn]:
        for column in KANBAN_COLUMNS:
            if any(card.task.id == task_id for card in self.columns.get(column, ())):
                return column
        return None

    def to_dict(self) -> dict[str, Any]:
        return {column: [card.to_dict() for card in self.columns.get(column, ())] for column in KANBAN_COLUMNS}


def build_board(tasks: Iterable[Task], flows: Iterable[TaskFlow]) -> KanbanBoard:
    """Place every task in exactly one column."""
    latest = current_executions(flows)
    grouped: dict[KanbanColumn, list[KanbanCard]] = {column: [] for column in KANBAN_COLUMNS}
    for task in tasks:
        current = latest.get(task.id)
        exec_state = current.state if current is not None else None
        grouped[classify(task, exec_state)].append(
            KanbanCard(task=task, exec_state=exec_state, flow_id=current.flow_id if current is not None else None)
        )
    return KanbanBoard(columns={column: tuple(cards) for column, cards in grouped.items()})


# ---------------------------------------------------------------------------
# Moves
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MoveStep:
    command: CommandName
    arguments: Mapping[str, Any] = field(default_factory=dict)
    best_effort: bool = False


@dataclass(frozen=True)
class MovePlan:
    task_id: str
    task_title: str
    source: KanbanColumn
    target: KanbanColumn
    steps: tuple[MoveStep, ...] = ()
    confirmation: Optional[str] = None

    @property
    def unchanged(self) -> bool:
        return self.source == self.target


MoveStatus = Literal["dispatched", "unchanged", "rejected", "cancelled", "failed"]


@dataclass(frozen=True)
class MoveOutcome:
    task_id: str
    target: str
    status: MoveStatus
    message: str = ""
    dispatched: tuple[CommandName, ...] = ()

    @property
    def accepted(self) -> bool:
        return self.status in ("dispatched", "unchanged")

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "target": self.target,
            "status": self.status,
            "message": self.message,
            "dispatched": list(self.dispatched),
        }


def plan_move(task: Task, current: Optional[CurrentExecution], target: str) -> MovePlan:
    """Validate a column move and list the commands it requires.

    Raises:
        InvalidTransition: the move is illegal from the task's current state.
    """
    if target not in KANBAN_COLUMNS:
        raise InvalidTransition(f"Unknown kanban column '{target}'", task_id=task.id, target=target)
    exec_state = current.state if current is not None else None
    source = classify(task, exec_state)
    plan = MovePlan(task_id=task.id, task_title=task.title, source=source, target=target)  # type: ignore[arg-type]
    if plan.unchanged:
        return plan

    if target == "todo":
        if task.is_closed:
            raise InvalidTransition(
                "Cannot move closed task back to Todo (re-open command not available).",
                task_id=task.id,
                target=target,
            )
        if exec_state not in RETRYABLE_EXEC_STATES:
            raise InvalidTransition(
                f"Only failed, escalated or retrying tasks can move back to Todo (current: {exec_state or 'none'}).",
                task_id=task.id,
                target=target,
            )
        steps = (MoveStep("retry", {"mode": "clean", "reset_count": False}),)
        return MovePlan(task.id, task.title, source, "todo", steps)

    if target == "in_progress":
        return MovePlan(task.id, task.title, source, "in_progress", (MoveStep("start"),))

    if target == "blocked":
        return MovePlan(
            task.id,
            task.title,
            source,
            "blocked",
            (MoveStep("abort", {"reason": "Moved to Blocked from project kanban"}),),
            confirmation=f'Move task "{task.title}" to Blocked? This will abort the current task execution.',
        )

    return MovePlan(
        task.id,
        task.title,
        source,
        "done",
        (
            MoveStep("complete", best_effort=True),
            MoveStep("close", {"reason": "Moved to Done from project kanban"}),
        ),
        confirmation=f'Move task "{task.title}" to Done? This will close the task.',
    )


async def _run_step(commands: "TaskCommands", task_id: str, step: MoveStep) -> None:
    if step.command == "start":
        await commands.start_task(task_id)
    elif step.command == "abort":
        await commands.abort_task(task_id, reason=step.arguments.get("reason"))
    elif step.command == "complete":
        await commands.complete_task(task_id)
    elif step.command == "retry":
        await commands.retry_task(
            task_id,
            mode=step.arguments.get("mode", "clean"),
            reset_count=bool(step.arguments.get("reset_count", False)),
        )
    elif step.command == "close":
        await commands.close_task(task_id, reason=step.arguments.get("reason"))
    else:
        raise ValueError(f"Unsupported kanban command '{step.command}'")


async def dispatch_move(
    plan: MovePlan,
    commands: "TaskCommands",
    confirm: Optional[Callable[[str], bool]] = None,
) -> MoveOutcome:
    """Run the commands of a validated plan in order.

    A best-effort step may fail without stopping the plan; any other failing
    step ends it with a ``failed`` outcome.
    """
    if plan.unchanged:
        return MoveOutcome(plan.task_id, plan.target, "unchanged")
    if plan.confirmation is not None and (confirm is None or not confirm(plan.confirmation)):
        return MoveOutcome(plan.task_id, plan.target, "cancelled", "Move not confirmed")

    dispatched: list[CommandName] = []
    for step in plan.steps:
        try:
            await _run_step(commands, plan.task_id, step)
        except ConsoleError as exc:
            if step.best_effort:
                logger.warning("Best-effort {} failed for task {}: {}", step.command, plan.task_id, exc)
                continue
            logger.warning("Kanban move of {} to {} failed at {}: {}", plan.task_id, plan.target, step.command, exc)
            return MoveOutcome(plan.task_id, plan.target, "failed", str(exc), tuple(dispatched))
        dispatched.append(step.command)
    return MoveOutcome(
        plan.task_id,
        plan.target,
        "dispatched",
        f"Moved task to {plan.target}",
        tuple(dispatched),
    )
