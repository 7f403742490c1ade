"""Provide the public `hivemind_console` package exports."""

from __future__ import annotations

from .api.client import HivemindClient
from .store.store import ConsoleStore
from .store.sync import SnapshotSync

__all__ = ["ConsoleStore", "HivemindClient", "SnapshotSync"]
