"""Periodic snapshot polling.

Each tick fetches the canonical state and reconciles it into the store:

- entities are always replaced wholesale on success;
- the event log is replaced too, unless the stream is paused, in which case
  the fetch asks for zero events and the local log is left untouched;
- a transport failure marks the connection disconnected and keeps the last
  good state; the next tick retries with no backoff;
- any other exception is a bug: it stops the timer and is re-raised from
  ``stop()``.

Ticks never overlap: a tick that fires while the previous fetch is still in
flight is skipped, so responses are applied in the order they were issued.
"""

from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from ..api.client import StateSource
from ..constants import DEFAULT_EVENTS_LIMIT, DEFAULT_POLL_INTERVAL
from ..errors import DomainError, TransportError
from .store import ConsoleStore


class SnapshotSync:
    def __init__(
        self,
        store: ConsoleStore,
        source: StateSource,
        *,
        interval: float = DEFAULT_POLL_INTERVAL,
        events_limit: int = DEFAULT_EVENTS_LIMIT,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._store = store
        self._source = source
        self.interval = interval
        self.events_limit = events_limit
        self._in_flight = False
        self._timer: Optional[asyncio.Task[None]] = None
        self._ticks: set[asyncio.Task[bool]] = set()
        self._failure: Optional[BaseException] = None
        self.completed_ticks = 0
        self.skipped_ticks = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    async def tick(self) -> bool:
        """Run one fetch-and-reconcile cycle.

        Returns True when a snapshot was applied, False when the tick was
        skipped or the fetch failed.
        """
        if self._in_flight:
            self.skipped_ticks += 1
            logger.debug("Snapshot tick skipped: previous fetch still in flight")
            return False
        self._in_flight = True
        paused_at_issue = self._store.state.paused
        try:
            snapshot = await self._source.fetch_state(0 if paused_at_issue else self.events_limit)
        except TransportError as exc:
            self._store.mark_disconnected(exc.message)
            return False
        except DomainError as exc:
            self._store.record_error(str(exc))
            return False
        finally:
            self._in_flight = False

        # A pause that started while the fetch was in flight also freezes the log.
        replace_events = not (paused_at_issue or self._store.state.paused)
        self._store.apply_snapshot(snapshot, replace_events=replace_events)
        self.completed_ticks += 1
        return True

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            task = loop.create_task(self.tick())
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            task.add_done_callback(self._on_tick_done)
            await asyncio.sleep(self.interval)

    def _on_tick_done(self, task: "asyncio.Task[bool]") -> None:
        if task.cancelled() or task.exception() is None:
            return
        exc = task.exception()
        logger.opt(exception=exc).error("Snapshot tick crashed; stopping sync")
        if self._failure is None:
            self._failure = exc
        if self._timer is not None:
            self._timer.cancel()

    def start(self) -> None:
        """Start the fixed-cadence timer on the running event loop."""
        if self.running:
            return
        logger.debug("Snapshot sync started (every {}s, events_limit={})", self.interval, self.events_limit)
        self._timer = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Cancel the timer. A fetch already in flight is left to finish.

        Raises:
            Exception: the error that crashed a tick, if any. ``ConsoleError``
                never crashes a tick; anything else is a bug and surfaces here.
        """
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
            logger.debug("Snapshot sync stopped")
        failure, self._failure = self._failure, None
        if failure is not None:
            raise failure

    async def __aenter__(self) -> "SnapshotSync":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()
