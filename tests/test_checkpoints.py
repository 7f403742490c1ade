"""Tests for checkpoint progress projection."""

from __future__ import annotations

from typing import Any

from hivemind_console.domain.events import Event, decode_event
from hivemind_console.projections.checkpoints import (
    VALIDATION_CHECKPOINT_LABEL,
    project_checkpoints,
    with_validation_checkpoint,
)
from hivemind_console.projections.event_log import EventLog


def _commit(event_id: str, at: str, **payload: Any) -> Event:
    return decode_event(
        {
            "id": event_id,
            "type": "checkpoint-commit-created",
            "category": "execution",
            "timestamp": at,
            "correlation": {"task_id": "t1", "attempt_id": "a1"},
            "payload": payload,
        }
    )


def _other(event_id: str, at: str, **payload: Any) -> Event:
    return decode_event({"id": event_id, "type": "FileModified", "timestamp": at, "payload": payload})


def test_single_commit_with_total_synthesizes_pending_placeholders() -> None:
    summary = project_checkpoints([_commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", commit_hash="abc123", total=3)])

    assert summary.completed_count == 1
    assert summary.total_expected == 3
    assert [(cp.checkpoint_id, cp.status) for cp in summary.checkpoints] == [
        ("cp1", "completed"),
        ("Checkpoint 2", "pending"),
        ("Checkpoint 3", "pending"),
    ]
    assert summary.checkpoints[0].commit_hash == "abc123"
    assert summary.checkpoints[0].synthesized is False
    assert all(cp.synthesized for cp in summary.checkpoints[1:])


def test_no_events_yields_empty_summary() -> None:
    summary = project_checkpoints([])

    assert summary.is_empty
    assert summary.completed_count == 0
    assert summary.total_expected is None
    assert summary.completed_all is False


def test_projection_is_idempotent() -> None:
    events = [
        _commit("e2", "2024-05-01T10:05:00Z", checkpoint_id="cp2", total=4),
        _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", total=4),
    ]

    assert project_checkpoints(events) == project_checkpoints(events)
    assert project_checkpoints(events + events) == project_checkpoints(events)


def test_replayed_id_less_commit_does_not_add_a_checkpoint() -> None:
    event = _commit("e1", "2024-05-01T10:00:00Z", commit_hash="abc")

    summary = project_checkpoints([event, event])

    assert summary.completed_count == 1
    assert summary.checkpoints[0].checkpoint_id == "checkpoint-1"
    assert summary.checkpoints[0].synthesized is True


def test_id_less_commits_get_ordinals_in_first_seen_order() -> None:
    summary = project_checkpoints(
        [
            _commit("e2", "2024-05-01T10:05:00Z"),
            _commit("e1", "2024-05-01T10:00:00Z"),
        ]
    )

    assert summary.completed_count == 2
    assert {cp.checkpoint_id: cp.ordinal for cp in summary.checkpoints} == {"checkpoint-1": 1, "checkpoint-2": 2}


def test_placeholder_never_collides_with_backend_identifier() -> None:
    summary = project_checkpoints(
        [
            _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="Checkpoint 2", total=2),
        ]
    )

    keys = [cp.key for cp in summary.checkpoints]
    assert len(keys) == len(set(keys))
    assert keys == [("backend", "Checkpoint 2"), ("synthesized", "Checkpoint 2")]


def test_later_commit_for_same_checkpoint_overwrites_earlier() -> None:
    summary = project_checkpoints(
        [
            _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", commit_hash="old"),
            _commit("e2", "2024-05-01T10:05:00Z", checkpoint_id="cp1", commit_hash="new"),
        ]
    )

    assert summary.completed_count == 1
    assert summary.checkpoints[0].commit_hash == "new"


def test_completed_sorted_newest_first() -> None:
    summary = project_checkpoints(
        [
            _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1"),
            _commit("e2", "2024-05-01T11:00:00Z", checkpoint_id="cp2"),
        ]
    )

    assert [cp.checkpoint_id for cp in summary.checkpoints] == ["cp2", "cp1"]


def test_total_expected_is_the_largest_total_seen() -> None:
    summary = project_checkpoints(
        [
            _other("e3", "2024-05-01T10:10:00Z", total=2),
            _commit("e2", "2024-05-01T10:05:00Z", checkpoint_id="cp1", total=5),
            _other("e1", "2024-05-01T10:00:00Z", total="7"),
        ]
    )

    assert summary.total_expected == 5
    assert len(summary.checkpoints) == 5


def test_completed_all_suppresses_placeholders() -> None:
    summary = project_checkpoints(
        [
            _other("e2", "2024-05-01T10:10:00Z", all_completed=True),
            _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", total=3),
        ]
    )

    assert summary.completed_all is True
    assert [cp.checkpoint_id for cp in summary.checkpoints] == ["cp1"]


def test_noise_events_do_not_create_checkpoints() -> None:
    summary = project_checkpoints([_other("e1", "2024-05-01T10:00:00Z", file="a.py")])

    assert summary.is_empty


def test_validation_marker_prefixed_while_verifying() -> None:
    base = project_checkpoints([_commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1")])

    verifying = with_validation_checkpoint(base, "verifying")
    running = with_validation_checkpoint(base, "running")

    assert verifying.checkpoints[0].checkpoint_id == VALIDATION_CHECKPOINT_LABEL
    assert verifying.checkpoints[0].status == "active"
    assert verifying.completed_count == 1
    assert running == base


def test_summary_to_dict() -> None:
    data = project_checkpoints([_commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", total=2)]).to_dict()

    assert data["completed_count"] == 1
    assert data["total_expected"] == 2
    assert data["checkpoints"][0]["completed_at"] == "2024-05-01T10:00:00Z"
    assert data["checkpoints"][1]["status"] == "pending"


def test_known_commits_after_completion_change_nothing() -> None:
    base = [
        _other("e2", "2024-05-01T10:10:00Z", all_completed=True),
        _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", total=1),
    ]
    replay = _commit("e3", "2024-05-01T10:20:00Z", checkpoint_id="cp1", commit_hash="later")

    before = project_checkpoints(base)
    after = project_checkpoints([replay, *base])

    assert after.completed_count == before.completed_count == 1
    assert after.total_expected == before.total_expected == 1


def test_other_task_events_do_not_affect_task_projection() -> None:
    own = _commit("e1", "2024-05-01T10:00:00Z", checkpoint_id="cp1", total=2)
    foreign = decode_event(
        {
            "id": "x1",
            "type": "CheckpointCommitCreated",
            "timestamp": "2024-05-01T10:30:00Z",
            "correlation": {"task_id": "t2", "attempt_id": "b1"},
            "payload": {"checkpoint_id": "cp9", "total": 9},
        }
    )

    alone = project_checkpoints(EventLog([own]).for_task("t1"))
    noisy = project_checkpoints(EventLog([foreign, own]).for_task("t1"))

    assert noisy == alone


def test_anonymous_id_less_commits_each_count() -> None:
    events = [
        decode_event({"type": "CheckpointCommitCreated", "timestamp": "2024-05-01T10:05:00Z", "payload": {"commit": "bbb"}}),
        decode_event({"type": "CheckpointCommitCreated", "timestamp": "2024-05-01T10:00:00Z", "payload": {"commit": "aaa"}}),
    ]

    summary = project_checkpoints(events)

    assert summary.completed_count == 2
    assert [cp.commit_hash for cp in summary.checkpoints] == ["bbb", "aaa"]
