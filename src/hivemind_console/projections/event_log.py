"""Immutable event log and correlation filtering.

The log keeps events in the order the backend delivered them, most recent
first. Every helper here is deterministic and side-effect free: it consumes
events in the order given and returns new sequences.
"""

from __future__ import annotations

from functools import cmp_to_key
from typing import Callable, Iterable, Iterator, Optional, Sequence

from ..domain.events import Correlation, Event, compare_events

CorrelationPredicate = Callable[[Correlation], bool]

# Marks a correlation member as "must be null" in ``correlated_with``.
NULL = object()
_ANY = object()


def filter_events(events: Iterable[Event], predicate: CorrelationPredicate) -> list[Event]:
    """Keep the events whose correlation satisfies ``predicate``, preserving order."""
    return [event for event in events if predicate(event.correlation)]


def _matches(actual: Optional[str], expected: object) -> bool:
    if expected is _ANY:
        return True
    if expected is NULL:
        return actual is None
    return actual == expected


def correlated_with(
    *,
    project_id: object = _ANY,
    graph_id: object = _ANY,
    flow_id: object = _ANY,
    task_id: object = _ANY,
    attempt_id: object = _ANY,
) -> CorrelationPredicate:
    """Build a predicate matching correlation members by equality.

    Omitted members match anything; pass ``NULL`` to require a null member.
    """

    def _predicate(corr: Correlation) -> bool:
        return (
            _matches(corr.project_id, project_id)
            and _matches(corr.graph_id, graph_id)
            and _matches(corr.flow_id, flow_id)
            and _matches(corr.task_id, task_id)
            and _matches(corr.attempt_id, attempt_id)
        )

    return _predicate


def newest_first(events: Iterable[Event]) -> list[Event]:
    """Stable sort, newest first; ties keep their given order."""
    return sorted(events, key=cmp_to_key(compare_events), reverse=True)


def by_category(events: Iterable[Event], categories: Iterable[str]) -> list[Event]:
    wanted = set(categories)
    if not wanted:
        return list(events)
    return [event for event in events if event.category in wanted]


class EventLog(Sequence[Event]):
    """Append-only, immutable view over a slice of the backend event log."""

    __slots__ = ("_events",)

    def __init__(self, events: Iterable[Event] = ()) -> None:
        self._events: tuple[Event, ...] = tuple(events)

    def __getitem__(self, index):  # type: ignore[override]
        if isinstance(index, slice):
            return EventLog(self._events[index])
        return self._events[index]

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EventLog):
            return self._events == other._events
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._events)

    def __repr__(self) -> str:
        return f"EventLog({len(self._events)} events)"

    @property
    def events(self) -> tuple[Event, ...]:
        return self._events

    def filter(self, predicate: CorrelationPredicate) -> "EventLog":
        return EventLog(filter_events(self._events, predicate))

    def appended(self, event: Event) -> "EventLog":
        """Return a new log with ``event`` placed first (most-recent-first)."""
        return EventLog((event, *self._events))

    def recent(self, limit: int) -> "EventLog":
        return EventLog(self._events[: max(limit, 0)])

    def for_project(self, project_id: str) -> "EventLog":
        return self.filter(correlated_with(project_id=project_id))

    def for_flow(self, flow_id: str) -> "EventLog":
        return self.filter(correlated_with(flow_id=flow_id))

    def for_task(self, task_id: str, attempt_id: Optional[str] = None) -> "EventLog":
        if attempt_id is None:
            return self.filter(correlated_with(task_id=task_id))
        return self.filter(correlated_with(task_id=task_id, attempt_id=attempt_id))
