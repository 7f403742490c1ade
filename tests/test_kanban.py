"""Tests for kanban classification, move planning and dispatch."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from hivemind_console.domain.models import Task, TaskExecution, TaskFlow
from hivemind_console.errors import DomainError, InvalidTransition
from hivemind_console.projections.kanban import (
    KANBAN_COLUMNS,
    build_board,
    classify,
    current_executions,
    dispatch_move,
    plan_move,
)

T0 = datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)


def _task(task_id: str = "t1", *, state: str = "open", title: str = "Build API") -> Task:
    return Task(id=task_id, project_id="p1", title=title, state=state)  # type: ignore[arg-type]


def _flow(flow_id: str, task_id: str, state: str, updated_at: datetime) -> TaskFlow:
    return TaskFlow(
        id=flow_id,
        graph_id="g1",
        project_id="p1",
        state="running",
        task_executions={task_id: TaskExecution(task_id=task_id, state=state, updated_at=updated_at)},  # type: ignore[arg-type]
    )


class FakeCommands:
    def __init__(self, fail: Optional[set[str]] = None) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.fail = fail or set()

    async def _record(self, name: str, task_id: str, **kwargs: Any) -> None:
        self.calls.append((name, task_id, kwargs))
        if name in self.fail:
            raise DomainError(f"{name} refused", category="conflict", code="invalid_state")

    async def start_task(self, task_id: str) -> None:
        await self._record("start", task_id)

    async def complete_task(self, task_id: str) -> None:
        await self._record("complete", task_id)

    async def retry_task(self, task_id: str, *, mode: str = "clean", reset_count: bool = False) -> None:
        await self._record("retry", task_id, mode=mode, reset_count=reset_count)

    async def abort_task(self, task_id: str, *, reason: Optional[str] = None) -> None:
        await self._record("abort", task_id, reason=reason)

    async def close_task(self, task_id: str, *, reason: Optional[str] = None) -> None:
        await self._record("close", task_id, reason=reason)


@pytest.mark.parametrize("exec_state", [None, "pending", "running", "failed", "success"])
def test_closed_task_is_always_done(exec_state: Optional[str]) -> None:
    assert classify(_task(state="closed"), exec_state) == "done"


@pytest.mark.parametrize(
    ("exec_state", "column"),
    [
        (None, "todo"),
        ("pending", "todo"),
        ("ready", "todo"),
        ("running", "in_progress"),
        ("verifying", "in_progress"),
        ("retry", "in_progress"),
        ("failed", "blocked"),
        ("escalated", "blocked"),
        ("success", "done"),
        ("something-new", "todo"),
    ],
)
def test_classify_open_task(exec_state: Optional[str], column: str) -> None:
    assert classify(_task(), exec_state) == column


def test_latest_updated_execution_wins_across_flows() -> None:
    flows = [
        _flow("F1", "t1", "running", T0),
        _flow("F2", "t1", "success", T0 + timedelta(minutes=5)),
    ]

    current = current_executions(flows)["t1"]
    board = build_board([_task()], flows)

    assert current.flow_id == "F2"
    assert board.column_of("t1") == "done"


def test_equal_updated_at_keeps_first_seen_execution() -> None:
    flows = [_flow("F1", "t1", "failed", T0), _flow("F2", "t1", "running", T0)]

    assert current_executions(flows)["t1"].flow_id == "F1"


def test_board_places_every_task_exactly_once() -> None:
    tasks = [_task("t1"), _task("t2"), _task("t3", state="closed"), _task("t4")]
    flows = [_flow("F1", "t1", "running", T0), _flow("F2", "t2", "escalated", T0), _flow("F3", "t9", "running", T0)]

    board = build_board(tasks, flows)

    assert board.total == len(tasks)
    assert board.counts() == {"todo": 1, "in_progress": 1, "blocked": 1, "done": 1}
    assert sorted(board.to_dict()) == sorted(KANBAN_COLUMNS)


def test_escalated_move_to_todo_retries_clean_without_reset() -> None:
    task = _task()
    current = current_executions([_flow("F1", "t1", "escalated", T0)])["t1"]

    plan = plan_move(task, current, "todo")

    assert plan.source == "blocked"
    assert [(s.command, dict(s.arguments)) for s in plan.steps] == [("retry", {"mode": "clean", "reset_count": False})]
    assert plan.confirmation is None


def test_closed_task_cannot_move_to_todo() -> None:
    with pytest.raises(InvalidTransition) as excinfo:
        plan_move(_task(state="closed"), None, "todo")

    assert "re-open" in excinfo.value.message
    assert excinfo.value.target == "todo"


def test_pending_task_cannot_move_back_to_todo_from_in_progress() -> None:
    current = current_executions([_flow("F1", "t1", "running", T0)])["t1"]

    with pytest.raises(InvalidTransition):
        plan_move(_task(), current, "todo")


def test_unknown_column_is_rejected() -> None:
    with pytest.raises(InvalidTransition):
        plan_move(_task(), None, "archive")


def test_same_column_move_is_unchanged() -> None:
    plan = plan_move(_task(), None, "todo")

    assert plan.unchanged
    assert plan.steps == ()


def test_blocked_and_done_moves_need_confirmation() -> None:
    blocked = plan_move(_task(), None, "blocked")
    done = plan_move(_task(), None, "done")

    assert blocked.confirmation == 'Move task "Build API" to Blocked? This will abort the current task execution.'
    assert [s.command for s in blocked.steps] == ["abort"]
    assert done.confirmation == 'Move task "Build API" to Done? This will close the task.'
    assert [(s.command, s.best_effort) for s in done.steps] == [("complete", True), ("close", False)]


@pytest.mark.anyio
async def test_dispatch_start_move() -> None:
    commands = FakeCommands()

    outcome = await dispatch_move(plan_move(_task(), None, "in_progress"), commands)

    assert outcome.status == "dispatched"
    assert outcome.dispatched == ("start",)
    assert commands.calls == [("start", "t1", {})]


@pytest.mark.anyio
async def test_dispatch_retry_move() -> None:
    commands = FakeCommands()
    current = current_executions([_flow("F1", "t1", "failed", T0)])["t1"]

    await dispatch_move(plan_move(_task(), current, "todo"), commands)

    assert commands.calls == [("retry", "t1", {"mode": "clean", "reset_count": False})]


@pytest.mark.anyio
async def test_unconfirmed_move_dispatches_nothing() -> None:
    commands = FakeCommands()

    outcome = await dispatch_move(plan_move(_task(), None, "blocked"), commands, confirm=lambda _msg: False)
    missing = await dispatch_move(plan_move(_task(), None, "blocked"), commands)

    assert outcome.status == "cancelled"
    assert missing.status == "cancelled"
    assert commands.calls == []


@pytest.mark.anyio
async def test_done_move_closes_even_when_complete_fails() -> None:
    commands = FakeCommands(fail={"complete"})

    outcome = await dispatch_move(plan_move(_task(), None, "done"), commands, confirm=lambda _msg: True)

    assert outcome.status == "dispatched"
    assert outcome.dispatched == ("close",)
    assert [name for name, _, _ in commands.calls] == ["complete", "close"]
    assert commands.calls[1][2] == {"reason": "Moved to Done from project kanban"}


@pytest.mark.anyio
async def test_failed_required_step_fails_the_move() -> None:
    commands = FakeCommands(fail={"abort"})

    outcome = await dispatch_move(plan_move(_task(), None, "blocked"), commands, confirm=lambda _msg: True)

    assert outcome.status == "failed"
    assert "abort refused" in outcome.message
    assert not outcome.accepted
