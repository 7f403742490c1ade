"""Configure logging and summarize events for logs and CLI output."""

import json
import sys
from typing import Any, Optional

from loguru import logger

from .domain.events import AttemptStartedPayload, CheckpointCommitPayload, Event, FileModifiedPayload
from .utils import _iso


def configure_logging(level: str = "INFO", *, json_logs: bool = False) -> int:
    """Route loguru output to a single stderr sink.

    Args:
        level: Minimum level to emit.
        json_logs: Emit one JSON object per record instead of text.

    Returns:
        The loguru handler id of the installed sink.
    """
    logger.remove()
    return logger.add(sys.stderr, level=level.upper(), serialize=json_logs, backtrace=False, diagnose=False)


def summarize_event(event: Optional[Event]) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of an event.

    Args:
        event: Decoded event (or None).

    Returns:
        A dictionary suitable for logging or serialization.
    """
    if event is None:
        return {"event": None}

    d: dict[str, Any] = {
        "event": event.type or event.kind.value,
        "id": event.id,
        "category": event.category,
        "at": _iso(event.timestamp),
    }
    for name, value in event.correlation.to_dict().items():
        if value is not None:
            d[name] = value

    payload = event.payload
    if isinstance(payload, CheckpointCommitPayload):
        d["checkpoint"] = payload.checkpoint_id
        if payload.commit_hash:
            d["commit"] = payload.commit_hash[:12]
    elif isinstance(payload, AttemptStartedPayload):
        if payload.runtime:
            d["runtime"] = payload.runtime
    elif isinstance(payload, FileModifiedPayload):
        d["file"] = payload.file
        d["diff"] = f"+{payload.additions or 0}/-{payload.deletions or 0}"

    if payload.progress.total is not None:
        d["total"] = payload.progress.total
    if payload.progress.all_completed:
        d["all_completed"] = True
    return d


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable output.

    Args:
        obj: Object to serialize.
        indent: Indentation level for JSON output.

    Returns:
        A JSON string when possible; otherwise `str(obj)`.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
