"""Tests for console configuration loading and precedence."""

from __future__ import annotations

from pathlib import Path

from hivemind_console.config import ConsoleConfig, default_config_path, get_console_config, load_console_config
from hivemind_console.constants import ENV_BASE_URL, ENV_LOG_LEVEL


def _write_config(tmp_path: Path, text: str) -> Path:
    path = default_config_path(tmp_path)
    path.parent.mkdir(parents=True)
    path.write_text(text, encoding="utf-8")
    return path


def test_missing_file_yields_defaults(tmp_path: Path) -> None:
    raw, err = load_console_config(default_config_path(tmp_path))

    assert raw == {}
    assert err is None
    assert get_console_config(raw, env={}) == ConsoleConfig()


def test_file_values_are_used(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path,
        "base_url: http://backend:9000/\npoll_interval: 3\nevents_limit: 50\nsession_event_limit: 10\nlog_level: debug\n",
    )

    raw, err = load_console_config(path)
    cfg = get_console_config(raw, env={})

    assert err is None
    assert cfg.base_url == "http://backend:9000"
    assert cfg.poll_interval == 3.0
    assert cfg.events_limit == 50
    assert cfg.session_event_limit == 10
    assert cfg.log_level == "DEBUG"


def test_invalid_yaml_reports_error(tmp_path: Path) -> None:
    path = _write_config(tmp_path, "base_url: [unclosed\n")

    raw, err = load_console_config(path)

    assert raw == {}
    assert err is not None


def test_invalid_values_fall_back_to_defaults() -> None:
    cfg = get_console_config(
        {"base_url": "ftp://nope", "poll_interval": -1, "events_limit": True, "request_timeout": "fast", "log_level": "LOUD"},
        env={},
    )

    assert cfg == ConsoleConfig()


def test_env_overrides_file_and_cli_overrides_env() -> None:
    raw = {"base_url": "http://file:1", "log_level": "WARNING"}
    env = {ENV_BASE_URL: "http://env:2", ENV_LOG_LEVEL: "ERROR"}

    from_env = get_console_config(raw, env=env)
    from_cli = get_console_config(raw, env=env, cli_base_url="http://cli:3", cli_log_level="trace")

    assert (from_env.base_url, from_env.log_level) == ("http://env:2", "ERROR")
    assert (from_cli.base_url, from_cli.log_level) == ("http://cli:3", "TRACE")


def test_non_mapping_document_is_ignored() -> None:
    assert get_console_config(["not", "a", "mapping"], env={}) == ConsoleConfig()  # type: ignore[arg-type]
