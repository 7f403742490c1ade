"""Error types raised by the console core.

- ConsoleError: base class, carries a user-facing message
- TransportError: network, HTTP or decode failure while talking to the backend
- DomainError: the backend answered with a well-formed failure envelope
- InvalidTransition: a kanban move rejected locally, before any network call
"""

from __future__ import annotations

from typing import Optional


class ConsoleError(Exception):
    """Base error for the console core."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class TransportError(ConsoleError):
    """Request could not be completed or the response could not be decoded."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.url = url


class DomainError(ConsoleError):
    """Backend rejected the request with a failure envelope."""

    def __init__(
        self,
        message: str,
        *,
        category: str = "unknown",
        code: str = "unknown",
        hint: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.code = code
        self.hint = hint

    def __str__(self) -> str:
        text = f"[{self.category}/{self.code}] {self.message}"
        if self.hint:
            text += f" (hint: {self.hint})"
        return text


class InvalidTransition(ConsoleError):
    def __init__(self, message: str, *, task_id: str, target: str) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.target = target
