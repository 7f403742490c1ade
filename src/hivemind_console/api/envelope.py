"""Pydantic models for backend response envelopes.

Success: ``{"success": true, "data": {...}}``
Failure: ``{"success": false, "error": {"category", "code", "message", "hint"?}}``
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..domain.models import Snapshot
from ..errors import DomainError, TransportError


class ApiErrorBody(BaseModel):
    """Failure details."""

    model_config = ConfigDict(extra="ignore")

    category: str = "unknown"
    code: str = "unknown"
    message: str = "Request failed"
    hint: Optional[str] = None

    def to_error(self) -> DomainError:
        return DomainError(self.message, category=self.category, code=self.code, hint=self.hint)


class StatePayload(BaseModel):
    """Canonical state collections; items are decoded defensively later."""

    model_config = ConfigDict(extra="ignore")

    projects: list[Any] = Field(default_factory=list)
    tasks: list[Any] = Field(default_factory=list)
    graphs: list[Any] = Field(default_factory=list)
    flows: list[Any] = Field(default_factory=list)
    merge_states: list[Any] = Field(default_factory=list)
    events: list[Any] = Field(default_factory=list)


class StateEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    data: Optional[StatePayload] = None
    error: Optional[ApiErrorBody] = None


class CommandEnvelope(BaseModel):
    model_config = ConfigDict(extra="ignore")

    success: bool
    error: Optional[ApiErrorBody] = None


def _failure(error: Optional[ApiErrorBody]) -> DomainError:
    return (error or ApiErrorBody()).to_error()


def decode_state_response(body: Any) -> Snapshot:
    """Decode a parsed ``/api/state`` body into a ``Snapshot``.

    Raises:
        DomainError: well-formed failure envelope.
        TransportError: body does not match either envelope.
    """
    try:
        envelope = StateEnvelope.model_validate(body)
    except ValidationError as exc:
        raise TransportError(f"Malformed state response: {exc.error_count()} validation error(s)") from exc
    if not envelope.success:
        raise _failure(envelope.error)
    if envelope.data is None:
        raise TransportError("Malformed state response: missing data")
    return Snapshot.from_dict(envelope.data.model_dump())


def decode_command_response(body: Any) -> None:
    """Check a command acknowledgement; its data payload is ignored."""
    try:
        envelope = CommandEnvelope.model_validate(body)
    except ValidationError as exc:
        raise TransportError(f"Malformed command response: {exc.error_count()} validation error(s)") from exc
    if not envelope.success:
        raise _failure(envelope.error)
