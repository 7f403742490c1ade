"""Typed domain events decoded from the backend event log.

Events arrive with an open key/value payload. They are decoded once, at the
edge, into a closed set of tagged variants so projections can dispatch on
``Event.kind`` instead of probing arbitrary keys. Anything unrecognized becomes
``EventKind.UNKNOWN`` with an ``UnknownPayload`` that still carries the raw
mapping and the progress hints every payload may contain.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Union

from ..utils import EPOCH, _iso, _parse_iso


class EventKind(str, Enum):
    """Event variants the console understands."""

    CHECKPOINT_COMMIT_CREATED = "CheckpointCommitCreated"
    ATTEMPT_STARTED = "AttemptStarted"
    FILE_MODIFIED = "FileModified"
    UNKNOWN = "Unknown"


def _normalize_tag(value: str) -> str:
    return re.sub(r"[^a-z0-9]", "", value.lower())


# "CheckpointCommitCreated", "checkpoint_commit_created" and
# "checkpoint-commit-created" all resolve to the same kind.
_KIND_BY_TAG = {
    _normalize_tag(kind.value): kind
    for kind in EventKind
    if kind is not EventKind.UNKNOWN
}


def kind_for_tag(tag: str) -> EventKind:
    return _KIND_BY_TAG.get(_normalize_tag(tag or ""), EventKind.UNKNOWN)


# ---------------------------------------------------------------------------
# Payload variants
# ---------------------------------------------------------------------------


def _as_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


@dataclass(frozen=True)
class ProgressHints:
    """Checkpoint progress fields any event payload may carry.

    ``total`` is the expected checkpoint count (``None`` when absent or not a
    number). ``all_completed`` is true when the payload sets either
    ``all_completed`` or ``all_checkpoints_completed`` to boolean true.
    """

    total: Optional[int] = None
    all_completed: bool = False

    @classmethod
    def from_payload(cls, raw: Mapping[str, Any]) -> "ProgressHints":
        return cls(
            total=_as_int(raw.get("total")),
            all_completed=raw.get("all_completed") is True or raw.get("all_checkpoints_completed") is True,
        )


@dataclass(frozen=True)
class CheckpointCommitPayload:
    checkpoint_id: Optional[str]
    commit_hash: Optional[str]
    progress: ProgressHints
    raw: Mapping[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True)
class AttemptStartedPayload:
    runtime: Optional[str]
    progress: ProgressHints
    raw: Mapping[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True)
class FileModifiedPayload:
    file: Optional[str]
    additions: Optional[int]
    deletions: Optional[int]
    progress: ProgressHints
    raw: Mapping[str, Any] = field(repr=False, compare=False)


@dataclass(frozen=True)
class UnknownPayload:
    progress: ProgressHints
    raw: Mapping[str, Any] = field(repr=False, compare=False)


EventPayload = Union[CheckpointCommitPayload, AttemptStartedPayload, FileModifiedPayload, UnknownPayload]


def decode_payload(kind: EventKind, data: Any) -> EventPayload:
    """Decode a raw payload mapping into the typed variant for ``kind``.

    Missing, extra or mistyped fields never raise; they decode to ``None``.
    """
    raw: Mapping[str, Any] = MappingProxyType(dict(data) if isinstance(data, Mapping) else {})
    progress = ProgressHints.from_payload(raw)
    if kind is EventKind.CHECKPOINT_COMMIT_CREATED:
        return CheckpointCommitPayload(
            checkpoint_id=_as_str(raw.get("checkpoint_id")) or _as_str(raw.get("checkpoint")),
            commit_hash=_as_str(raw.get("commit_hash")) or _as_str(raw.get("commit")),
            progress=progress,
            raw=raw,
        )
    if kind is EventKind.ATTEMPT_STARTED:
        return AttemptStartedPayload(runtime=_as_str(raw.get("runtime")), progress=progress, raw=raw)
    if kind is EventKind.FILE_MODIFIED:
        return FileModifiedPayload(
            file=_as_str(raw.get("file")),
            additions=_as_int(raw.get("additions")),
            deletions=_as_int(raw.get("deletions")),
            progress=progress,
            raw=raw,
        )
    return UnknownPayload(progress=progress, raw=raw)


# ---------------------------------------------------------------------------
# Correlation + Event
# ---------------------------------------------------------------------------

_CORRELATION_KEYS = {
    "project_id": ("project_id", "projectId", "project"),
    "graph_id": ("graph_id", "taskGraphId", "graph"),
    "flow_id": ("flow_id", "taskFlowId", "flow"),
    "task_id": ("task_id", "taskId", "task"),
    "attempt_id": ("attempt_id", "attemptId", "attempt"),
}


@dataclass(frozen=True)
class Correlation:
    """Identifiers that scope an event; every member is nullable."""

    project_id: Optional[str] = None
    graph_id: Optional[str] = None
    flow_id: Optional[str] = None
    task_id: Optional[str] = None
    attempt_id: Optional[str] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "project_id": self.project_id,
            "graph_id": self.graph_id,
            "flow_id": self.flow_id,
            "task_id": self.task_id,
            "attempt_id": self.attempt_id,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "Correlation":
        if not isinstance(data, Mapping):
            return cls()
        values: dict[str, Optional[str]] = {}
        for name, aliases in _CORRELATION_KEYS.items():
            values[name] = next((_as_str(data.get(alias)) for alias in aliases if _as_str(data.get(alias))), None)
        return cls(**values)


@dataclass(frozen=True)
class Event:
    """One immutable entry of the backend event log."""

    id: str
    type: str
    kind: EventKind
    category: str
    timestamp: datetime
    correlation: Correlation
    payload: EventPayload
    sequence: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "category": self.category,
            "timestamp": _iso(self.timestamp),
            "sequence": self.sequence,
            "correlation": self.correlation.to_dict(),
            "payload": dict(self.payload.raw),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Event":
        return decode_event(data)


def decode_event(data: Mapping[str, Any]) -> Event:
    """Decode one wire event.

    An unparseable timestamp decodes to the oldest possible instant so the
    event still sorts deterministically (last in most-recent-first order).
    """
    tag = str(data.get("type") or "")
    kind = kind_for_tag(tag)
    correlation_raw = data.get("correlation")
    if correlation_raw is None:
        correlation_raw = data.get("correlations")
    return Event(
        id=str(data.get("id") or ""),
        type=tag,
        kind=kind,
        category=str(data.get("category") or ""),
        timestamp=_parse_iso(data.get("timestamp")) or EPOCH,
        sequence=_as_int(data.get("sequence")),
        correlation=Correlation.from_dict(correlation_raw),
        payload=decode_payload(kind, data.get("payload")),
    )


def compare_events(a: Event, b: Event) -> int:
    """Order two events oldest-to-newest.

    Timestamps decide first. A tie is broken by sequence number only when both
    events carry one; a null sequence never takes part in the comparison.
    """
    if a.timestamp != b.timestamp:
        return -1 if a.timestamp < b.timestamp else 1
    if a.sequence is not None and b.sequence is not None and a.sequence != b.sequence:
        return -1 if a.sequence < b.sequence else 1
    return 0
