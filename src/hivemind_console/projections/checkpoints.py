"""Project checkpoint progress for one task (or one attempt) from its events.

Rules:
- ``total_expected`` is the largest integer ``total`` seen on any payload.
- ``completed_all`` is set once any payload reports all checkpoints completed.
- Every ``CheckpointCommitCreated`` event completes one checkpoint, keyed by its
  identifier; a later event for the same identifier overwrites the earlier one.
- Events without an identifier get an ordinal in first-seen order, keyed by
  event id (when present) so replaying the same event never adds a second
  checkpoint.
- Missing checkpoints up to ``total_expected`` become ``pending`` placeholders,
  unless everything is already reported complete.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Iterable, Literal, Optional

from ..domain.events import CheckpointCommitPayload, Event, EventKind
from ..utils import EPOCH, _iso

CheckpointStatus = Literal["completed", "active", "pending"]

VALIDATION_CHECKPOINT_LABEL = "Current validation checkpoint"


@dataclass(frozen=True)
class Checkpoint:
    """One row of the checkpoint projection.

    ``synthesized`` marks entries the projector made up (placeholders, the
    validation marker, ordinals for id-less commits). Their identity lives in
    ``key``, which never shares a namespace with backend identifiers.
    """

    checkpoint_id: str
    status: CheckpointStatus
    commit_hash: Optional[str] = None
    completed_at: Optional[datetime] = None
    ordinal: Optional[int] = None
    synthesized: bool = False

    @property
    def key(self) -> tuple[str, str]:
        return ("synthesized" if self.synthesized else "backend", self.checkpoint_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkpoint_id": self.checkpoint_id,
            "status": self.status,
            "commit_hash": self.commit_hash,
            "completed_at": _iso(self.completed_at),
            "synthesized": self.synthesized,
        }


@dataclass(frozen=True)
class CheckpointSummary:
    checkpoints: tuple[Checkpoint, ...] = ()
    completed_count: int = 0
    total_expected: Optional[int] = None
    completed_all: bool = False

    @property
    def is_empty(self) -> bool:
        return not self.checkpoints

    def to_dict(self) -> dict[str, Any]:
        return {
            "checkpoints": [cp.to_dict() for cp in self.checkpoints],
            "completed_count": self.completed_count,
            "total_expected": self.total_expected,
            "completed_all": self.completed_all,
        }


@dataclass
class _Scan:
    completed: dict[tuple[str, str], Checkpoint] = field(default_factory=dict)
    ordinal_by_event: dict[str, int] = field(default_factory=dict)
    total_expected: Optional[int] = None
    completed_all: bool = False


def _record_commit(scan: _Scan, event: Event, payload: CheckpointCommitPayload) -> None:
    if payload.checkpoint_id is not None:
        checkpoint = Checkpoint(
            checkpoint_id=payload.checkpoint_id,
            status="completed",
            commit_hash=payload.commit_hash,
            completed_at=event.timestamp,
        )
    else:
        # Only a non-empty event id identifies a replay; anonymous events each count.
        ordinal = scan.ordinal_by_event.get(event.id) if event.id else None
        if ordinal is None:
            ordinal = len(scan.completed) + 1
            if event.id:
                scan.ordinal_by_event[event.id] = ordinal
        checkpoint = Checkpoint(
            checkpoint_id=f"checkpoint-{ordinal}",
            status="completed",
            commit_hash=payload.commit_hash,
            completed_at=event.timestamp,
            ordinal=ordinal,
            synthesized=True,
        )
    scan.completed[checkpoint.key] = checkpoint


def project_checkpoints(events: Iterable[Event]) -> CheckpointSummary:
    """Derive the checkpoint summary of an event slice.

    Pure: all accumulation lives in a scan object local to this call.
    No events yields an empty summary with unknown total.
    """
    scan = _Scan()
    for event in events:
        hints = event.payload.progress
        if hints.total is not None:
            scan.total_expected = hints.total if scan.total_expected is None else max(scan.total_expected, hints.total)
        if hints.all_completed:
            scan.completed_all = True
        if event.kind is EventKind.CHECKPOINT_COMMIT_CREATED and isinstance(event.payload, CheckpointCommitPayload):
            _record_commit(scan, event, event.payload)

    completed = sorted(
        scan.completed.values(),
        key=lambda cp: cp.completed_at or EPOCH,
        reverse=True,
    )
    completed_count = len(completed)

    pending: list[Checkpoint] = []
    if scan.total_expected is not None and scan.total_expected > completed_count and not scan.completed_all:
        for ordinal in range(completed_count + 1, scan.total_expected + 1):
            pending.append(
                Checkpoint(
                    checkpoint_id=f"Checkpoint {ordinal}",
                    status="pending",
                    ordinal=ordinal,
                    synthesized=True,
                )
            )

    return CheckpointSummary(
        checkpoints=tuple(completed + pending),
        completed_count=completed_count,
        total_expected=scan.total_expected,
        completed_all=scan.completed_all,
    )


def with_validation_checkpoint(summary: CheckpointSummary, exec_state: Optional[str]) -> CheckpointSummary:
    """Prefix an ``active`` validation marker while the attempt is verifying."""
    if summary.completed_all or exec_state != "verifying":
        return summary
    marker = Checkpoint(
        checkpoint_id=VALIDATION_CHECKPOINT_LABEL,
        status="active",
        synthesized=True,
    )
    return replace(summary, checkpoints=(marker, *summary.checkpoints))
