"""Keep UI selections pointing at entities that still exist."""

from __future__ import annotations

from dataclasses import replace
from typing import Optional, Sequence

from loguru import logger

from .state import ConsoleState


def stabilize_selection(selected: Optional[str], available_ids: Sequence[str]) -> Optional[str]:
    """Return ``selected`` if still present, else the first available id, else None.

    An empty selection stays empty.
    """
    if selected is None or selected in available_ids:
        return selected
    return available_ids[0] if available_ids else None


def stabilize_selections(state: ConsoleState) -> ConsoleState:
    """Correct project, flow and task selections after an entity replacement."""
    project_id = stabilize_selection(state.selected_project_id, [p.id for p in state.projects])
    flow_id = stabilize_selection(state.selected_flow_id, [f.id for f in state.flows])
    task_id = stabilize_selection(state.selected_task_id, [t.id for t in state.tasks])
    if (project_id, flow_id, task_id) == (
        state.selected_project_id,
        state.selected_flow_id,
        state.selected_task_id,
    ):
        return state
    logger.debug(
        "Selection corrected: project {} -> {}, flow {} -> {}, task {} -> {}",
        state.selected_project_id,
        project_id,
        state.selected_flow_id,
        flow_id,
        state.selected_task_id,
        task_id,
    )
    return replace(
        state,
        selected_project_id=project_id,
        selected_flow_id=flow_id,
        selected_task_id=task_id,
    )
