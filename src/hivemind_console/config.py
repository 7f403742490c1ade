"""Load optional console configuration from `.hivemind_console/config.yaml`."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

from .constants import (
    CONFIG_FILE,
    DEFAULT_BASE_URL,
    DEFAULT_EVENTS_LIMIT,
    DEFAULT_LOG_LEVEL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_SESSION_EVENT_LIMIT,
    ENV_BASE_URL,
    ENV_LOG_LEVEL,
    STATE_DIR_NAME,
)
from .io_utils import _load_data_with_error

VALID_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class ConsoleConfig:
    """Resolved console configuration."""

    base_url: str = DEFAULT_BASE_URL
    poll_interval: float = DEFAULT_POLL_INTERVAL
    events_limit: int = DEFAULT_EVENTS_LIMIT
    session_event_limit: int = DEFAULT_SESSION_EVENT_LIMIT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def default_config_path(work_dir: Path) -> Path:
    return work_dir.resolve() / STATE_DIR_NAME / CONFIG_FILE


def load_console_config(path: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _positive_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value) if value > 0 else None


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value > 0 else None


def _log_level(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip().upper() in VALID_LOG_LEVELS:
        return value.strip().upper()
    return None


def _base_url(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip().startswith(("http://", "https://")):
        return value.strip().rstrip("/")
    return None


def get_console_config(
    config: Mapping[str, Any],
    *,
    env: Optional[Mapping[str, str]] = None,
    cli_base_url: Optional[str] = None,
    cli_log_level: Optional[str] = None,
) -> ConsoleConfig:
    """Resolve config values; file < environment < CLI flags.

    An invalid value never raises: it is ignored and the lower-precedence value
    (ultimately the default) is kept.
    """
    env = os.environ if env is None else env
    defaults = ConsoleConfig()
    raw = config if isinstance(config, Mapping) else {}

    base_url = (
        _base_url(cli_base_url)
        or _base_url(env.get(ENV_BASE_URL))
        or _base_url(raw.get("base_url"))
        or defaults.base_url
    )
    log_level = (
        _log_level(cli_log_level)
        or _log_level(env.get(ENV_LOG_LEVEL))
        or _log_level(raw.get("log_level"))
        or defaults.log_level
    )
    return ConsoleConfig(
        base_url=base_url,
        poll_interval=_positive_float(raw.get("poll_interval")) or defaults.poll_interval,
        events_limit=_positive_int(raw.get("events_limit")) or defaults.events_limit,
        session_event_limit=_positive_int(raw.get("session_event_limit")) or defaults.session_event_limit,
        request_timeout=_positive_float(raw.get("request_timeout")) or defaults.request_timeout,
        log_level=log_level,
    )
