"""Shared constants for the console core."""

from __future__ import annotations

STATE_DIR_NAME = ".hivemind_console"
CONFIG_FILE = "config.yaml"

DEFAULT_BASE_URL = "http://127.0.0.1:8787"
DEFAULT_POLL_INTERVAL = 1.5  # seconds
DEFAULT_EVENTS_LIMIT = 200
DEFAULT_SESSION_EVENT_LIMIT = 80
DEFAULT_REQUEST_TIMEOUT = 10.0  # seconds
DEFAULT_LOG_LEVEL = "INFO"

ENV_BASE_URL = "HIVEMIND_CONSOLE_BASE_URL"
ENV_LOG_LEVEL = "HIVEMIND_CONSOLE_LOG_LEVEL"

STATE_PATH = "/api/state"

ACTIVE_EXEC_STATES = frozenset({"running", "verifying", "retry"})
BLOCKED_EXEC_STATES = frozenset({"failed", "escalated"})
RETRYABLE_EXEC_STATES = frozenset({"failed", "escalated", "retry"})

RUNTIME_EVENT_CATEGORIES = frozenset({"runtime", "execution", "filesystem"})

PROJECT_RECENT_EVENTS = 20
