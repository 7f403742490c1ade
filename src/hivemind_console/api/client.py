"""HTTP client for the Hivemind backend.

Only ``fetch_state`` returns data. Commands return nothing on success: their
effects become visible through the next snapshot poll.
"""

from __future__ import annotations

import json
from typing import Any, Optional, Protocol

import httpx
from loguru import logger

from ..constants import DEFAULT_REQUEST_TIMEOUT, STATE_PATH
from ..domain.models import Snapshot
from ..errors import TransportError
from .envelope import decode_command_response, decode_state_response


class StateSource(Protocol):
    async def fetch_state(self, events_limit: int) -> Snapshot: ...


class TaskCommands(Protocol):
    async def start_task(self, task_id: str) -> None: ...

    async def complete_task(self, task_id: str) -> None: ...

    async def retry_task(self, task_id: str, *, mode: str = "clean", reset_count: bool = False) -> None: ...

    async def abort_task(self, task_id: str, *, reason: Optional[str] = None) -> None: ...

    async def close_task(self, task_id: str, *, reason: Optional[str] = None) -> None: ...


class HivemindClient:
    """Async client over ``httpx.AsyncClient``.

    Usage::

        async with HivemindClient("http://127.0.0.1:8787") as client:
            snapshot = await client.fetch_state(events_limit=200)
            await client.start_task("task-1")
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    async def __aenter__(self) -> "HivemindClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = await self._http.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise TransportError(f"{exc.__class__.__name__}: {exc}", url=url) from exc
        try:
            body = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise TransportError(
                f"HTTP {response.status_code}: response is not JSON",
                url=url,
            ) from exc
        # Failure envelopes may come with 4xx/5xx; let the decoder surface them.
        if response.is_error and not (isinstance(body, dict) and body.get("success") is False):
            raise TransportError(f"HTTP {response.status_code} from {path}", url=url)
        return body

    async def fetch_state(self, events_limit: int) -> Snapshot:
        """Fetch the canonical state; ``events_limit=0`` omits events."""
        body = await self._request("GET", STATE_PATH, params={"events_limit": max(int(events_limit), 0)})
        snapshot = decode_state_response(body)
        logger.debug("Fetched state: {}", snapshot.counts())
        return snapshot

    async def _command(self, path: str, payload: dict[str, Any]) -> None:
        body = await self._request("POST", path, json={k: v for k, v in payload.items() if v is not None})
        decode_command_response(body)
        logger.debug("Command {} acknowledged", path)

    # -- task lifecycle ----------------------------------------------------

    async def start_task(self, task_id: str) -> None:
        await self._command("/api/tasks/start", {"task_id": task_id})

    async def complete_task(self, task_id: str) -> None:
        await self._command("/api/tasks/complete", {"task_id": task_id})

    async def retry_task(self, task_id: str, *, mode: str = "clean", reset_count: bool = False) -> None:
        await self._command("/api/tasks/retry", {"task_id": task_id, "mode": mode, "reset_count": reset_count})

    async def abort_task(self, task_id: str, *, reason: Optional[str] = None) -> None:
        await self._command("/api/tasks/abort", {"task_id": task_id, "reason": reason})

    async def close_task(self, task_id: str, *, reason: Optional[str] = None) -> None:
        await self._command("/api/tasks/close", {"task_id": task_id, "reason": reason})

    # -- flow lifecycle ----------------------------------------------------

    async def start_flow(self, flow_id: str) -> None:
        await self._command("/api/flows/start", {"flow_id": flow_id})

    async def pause_flow(self, flow_id: str) -> None:
        await self._command("/api/flows/pause", {"flow_id": flow_id})

    async def resume_flow(self, flow_id: str) -> None:
        await self._command("/api/flows/resume", {"flow_id": flow_id})

    async def abort_flow(self, flow_id: str, *, reason: Optional[str] = None, force: bool = False) -> None:
        await self._command("/api/flows/abort", {"flow_id": flow_id, "reason": reason, "force": force})

    # -- graphs ------------------------------------------------------------

    async def validate_graph(self, graph_id: str) -> None:
        await self._command("/api/graphs/validate", {"graph_id": graph_id})

    async def create_flow(self, graph_id: str) -> None:
        await self._command("/api/flows/create", {"graph_id": graph_id})

    # -- merges ------------------------------------------------------------

    async def prepare_merge(self, flow_id: str, *, target_branch: Optional[str] = None) -> None:
        await self._command("/api/merges/prepare", {"flow_id": flow_id, "target_branch": target_branch})

    async def approve_merge(self, flow_id: str) -> None:
        await self._command("/api/merges/approve", {"flow_id": flow_id})

    async def execute_merge(self, flow_id: str) -> None:
        await self._command("/api/merges/execute", {"flow_id": flow_id})
