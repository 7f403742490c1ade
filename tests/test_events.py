"""Tests for wire event decoding and ordering."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from hivemind_console.domain.events import (
    AttemptStartedPayload,
    CheckpointCommitPayload,
    EventKind,
    FileModifiedPayload,
    UnknownPayload,
    compare_events,
    decode_event,
    kind_for_tag,
)
from hivemind_console.utils import EPOCH


@pytest.mark.parametrize(
    "tag",
    ["CheckpointCommitCreated", "checkpoint_commit_created", "checkpoint-commit-created", "CHECKPOINT COMMIT CREATED"],
)
def test_kind_for_tag_normalizes_spelling(tag: str) -> None:
    assert kind_for_tag(tag) is EventKind.CHECKPOINT_COMMIT_CREATED


def test_kind_for_unrecognized_tag_is_unknown() -> None:
    assert kind_for_tag("flow.started") is EventKind.UNKNOWN
    assert kind_for_tag("") is EventKind.UNKNOWN


def test_decode_checkpoint_commit_event() -> None:
    event = decode_event(
        {
            "id": "ev-1",
            "type": "checkpoint-commit-created",
            "category": "execution",
            "timestamp": "2024-05-01T10:00:00Z",
            "sequence": 7,
            "correlation": {"projectId": "p1", "taskFlowId": "f1", "taskId": "t1", "attemptId": "a1"},
            "payload": {"checkpoint_id": "cp1", "commit_hash": "abc123", "total": 3},
        }
    )

    assert event.kind is EventKind.CHECKPOINT_COMMIT_CREATED
    assert event.timestamp == datetime(2024, 5, 1, 10, 0, tzinfo=timezone.utc)
    assert event.sequence == 7
    assert event.correlation.project_id == "p1"
    assert event.correlation.flow_id == "f1"
    assert event.correlation.task_id == "t1"
    assert event.correlation.attempt_id == "a1"
    assert event.correlation.graph_id is None
    assert isinstance(event.payload, CheckpointCommitPayload)
    assert event.payload.checkpoint_id == "cp1"
    assert event.payload.commit_hash == "abc123"
    assert event.payload.progress.total == 3
    assert event.payload.progress.all_completed is False


def test_decode_accepts_plural_correlations_key_and_short_aliases() -> None:
    event = decode_event({"id": "e", "type": "x", "correlations": {"flow": "f1", "task_id": "t1"}})

    assert event.correlation.flow_id == "f1"
    assert event.correlation.task_id == "t1"


def test_mistyped_payload_fields_decode_to_none() -> None:
    event = decode_event(
        {
            "id": "e",
            "type": "FileModified",
            "payload": {"file": 12, "additions": "3", "deletions": True, "total": "four", "all_completed": "yes"},
        }
    )

    assert isinstance(event.payload, FileModifiedPayload)
    assert event.payload.file is None
    assert event.payload.additions is None
    assert event.payload.deletions is None
    assert event.payload.progress.total is None
    assert event.payload.progress.all_completed is False


def test_checkpoint_payload_falls_back_to_short_keys() -> None:
    event = decode_event({"id": "e", "type": "CheckpointCommitCreated", "payload": {"checkpoint": "cp9", "commit": "ff00"}})

    assert event.payload.checkpoint_id == "cp9"
    assert event.payload.commit_hash == "ff00"


def test_all_checkpoints_completed_alias_sets_hint() -> None:
    event = decode_event({"id": "e", "type": "AttemptStarted", "payload": {"all_checkpoints_completed": True, "runtime": "codex"}})

    assert isinstance(event.payload, AttemptStartedPayload)
    assert event.payload.runtime == "codex"
    assert event.payload.progress.all_completed is True


def test_unknown_event_keeps_raw_payload_read_only() -> None:
    event = decode_event({"id": "e", "type": "flow.paused", "payload": {"reason": "manual"}})

    assert event.kind is EventKind.UNKNOWN
    assert isinstance(event.payload, UnknownPayload)
    assert event.payload.raw["reason"] == "manual"
    with pytest.raises(TypeError):
        event.payload.raw["reason"] = "changed"  # type: ignore[index]


def test_non_mapping_payload_and_bad_timestamp() -> None:
    event = decode_event({"id": "e", "type": "AttemptStarted", "timestamp": "not a date", "payload": ["x"]})

    assert event.timestamp == EPOCH
    assert dict(event.payload.raw) == {}


def test_compare_events_uses_sequence_only_when_both_present() -> None:
    at = "2024-05-01T10:00:00Z"
    first = decode_event({"id": "a", "type": "x", "timestamp": at, "sequence": 1})
    second = decode_event({"id": "b", "type": "x", "timestamp": at, "sequence": 2})
    unsequenced = decode_event({"id": "c", "type": "x", "timestamp": at})
    later = decode_event({"id": "d", "type": "x", "timestamp": "2024-05-01T10:00:01Z"})

    assert compare_events(first, second) == -1
    assert compare_events(second, first) == 1
    assert compare_events(first, unsequenced) == 0
    assert compare_events(unsequenced, second) == 0
    assert compare_events(later, second) == 1


def test_event_to_dict_round_trips_wire_shape() -> None:
    raw = {
        "id": "ev-1",
        "type": "FileModified",
        "category": "filesystem",
        "timestamp": "2024-05-01T10:00:00Z",
        "correlation": {"task_id": "t1"},
        "payload": {"file": "src/app.py", "additions": 4, "deletions": 1},
    }

    data = decode_event(raw).to_dict()

    assert data["timestamp"] == "2024-05-01T10:00:00Z"
    assert data["correlation"]["task_id"] == "t1"
    assert data["payload"] == raw["payload"]
