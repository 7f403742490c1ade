from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, Optional

from loguru import logger
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from .api.client import HivemindClient
from .config import ConsoleConfig, default_config_path, get_console_config, load_console_config
from .errors import ConsoleError
from .logging_utils import configure_logging, pretty, summarize_event
from .projections.kanban import KANBAN_COLUMNS, KanbanBoard
from .store import selectors
from .store.state import ConsoleState
from .store.store import ConsoleStore
from .store.sync import SnapshotSync

_COLUMN_TITLES = {"todo": "Todo", "in_progress": "In Progress", "blocked": "Blocked", "done": "Done"}


def _ctx(args: argparse.Namespace) -> ConsoleConfig:
    path = Path(args.config).expanduser() if args.config else default_config_path(Path.cwd())
    raw, err = load_console_config(path)
    cfg = get_console_config(raw, cli_base_url=args.base_url, cli_log_level=args.log_level)
    configure_logging(cfg.log_level)
    if err:
        logger.warning("Ignoring config file: {}", err)
    return cfg


def _make_client(cfg: ConsoleConfig) -> HivemindClient:
    return HivemindClient(cfg.base_url, timeout=cfg.request_timeout)


async def _fetch_store(client: HivemindClient, cfg: ConsoleConfig, events_limit: Optional[int] = None) -> ConsoleStore:
    store = ConsoleStore(client)
    snapshot = await client.fetch_state(cfg.events_limit if events_limit is None else events_limit)
    store.apply_snapshot(snapshot)
    return store


def _run(args: argparse.Namespace, work: Callable[[HivemindClient, ConsoleConfig], Any]) -> int:
    cfg = _ctx(args)

    async def _main() -> int:
        async with _make_client(cfg) as client:
            return int(await work(client, cfg) or 0)

    try:
        return asyncio.run(_main())
    except ConsoleError as exc:
        sys.stderr.write(str(exc) + "\n")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


def _write(payload: Any) -> None:
    sys.stdout.write(pretty(payload) + "\n")


def _render_board(board: KanbanBoard) -> None:
    table = Table(title="Kanban")
    for column in KANBAN_COLUMNS:
        table.add_column(f"{_COLUMN_TITLES[column]} ({len(board.columns[column])})")
    depth = max((len(cards) for cards in board.columns.values()), default=0)
    for row in range(depth):
        cells = []
        for column in KANBAN_COLUMNS:
            cards = board.columns[column]
            if row < len(cards):
                card = cards[row]
                cells.append(f"{card.task.title or card.task.id}\n[dim]{card.exec_state or 'no execution'}[/dim]")
            else:
                cells.append("")
        table.add_row(*cells)
    Console(file=sys.stdout).print(table)


def _snapshot(args: argparse.Namespace) -> int:
    async def work(client: HivemindClient, cfg: ConsoleConfig) -> int:
        snapshot = await client.fetch_state(cfg.events_limit if args.events is None else args.events)
        _write({"base_url": cfg.base_url, "connection": "connected", "counts": snapshot.counts()})
        return 0

    return _run(args, work)


def _board(args: argparse.Namespace) -> int:
    async def work(client: HivemindClient, cfg: ConsoleConfig) -> int:
        store = await _fetch_store(client, cfg)
        board = selectors.kanban_board(store.state, args.project_id)
        if args.json:
            _write({"project_id": args.project_id, "counts": board.counts(), "columns": board.to_dict()})
        else:
            _render_board(board)
        return 0

    return _run(args, work)


def _sessions(args: argparse.Namespace) -> int:
    async def work(client: HivemindClient, cfg: ConsoleConfig) -> int:
        store = await _fetch_store(client, cfg)
        contexts = selectors.active_sessions(store.state, args.project_id)
        selected = selectors.selected_session(store.state, args.project_id)
        stream = selectors.session_stream(store.state, args.project_id, limit=cfg.session_event_limit)
        _write(
            {
                "project_id": args.project_id,
                "selected": str(selected.key) if selected else None,
                "sessions": [ctx.to_dict() for ctx in contexts],
                "stream": [summarize_event(event) for event in stream],
            }
        )
        return 0

    return _run(args, work)


def _checkpoints(args: argparse.Namespace) -> int:
    async def work(client: HivemindClient, cfg: ConsoleConfig) -> int:
        store = await _fetch_store(client, cfg)
        summary = selectors.task_checkpoints(store.state, args.task_id, args.attempt)
        payload = summary.to_dict()
        if summary.is_empty:
            payload["message"] = "No checkpoint events for this task yet"
        _write(payload)
        return 0

    return _run(args, work)


def _overview_line(state: ConsoleState, project_id: str) -> dict[str, Any]:
    overview = selectors.project_overview(state, project_id)
    return {
        "revision": state.revision,
        "connection": state.connection,
        "paused": state.paused,
        "error": state.last_error,
        "events": len(state.events),
        "board": selectors.kanban_board(state, project_id).counts(),
        "summary": overview.to_dict(),
    }


def _watch(args: argparse.Namespace) -> int:
    async def work(client: HivemindClient, cfg: ConsoleConfig) -> int:
        store = ConsoleStore(client)
        store.set_paused(args.paused)
        last: dict[str, Any] = {"key": None}
        updates = {"count": 0}

        def _on_change(state: ConsoleState) -> None:
            key = (state.revision, state.connection, state.last_error)
            if key == last["key"]:
                return
            last["key"] = key
            updates["count"] += 1
            sys.stdout.write(json.dumps(_overview_line(state, args.project_id), default=str) + "\n")
            sys.stdout.flush()

        unsubscribe = store.subscribe(_on_change)
        try:
            async with SnapshotSync(store, client, interval=cfg.poll_interval, events_limit=cfg.events_limit):
                while args.ticks is None or updates["count"] < args.ticks:
                    await asyncio.sleep(min(cfg.poll_interval, 0.25))
        finally:
            unsubscribe()
        return 0

    return _run(args, work)


def _move(args: argparse.Namespace) -> int:
    def confirm(message: str) -> bool:
        if args.yes:
            return True
        return Confirm.ask(message)

    async def work(client: HivemindClient, cfg: ConsoleConfig) -> int:
        store = await _fetch_store(client, cfg, events_limit=0)
        outcome = await store.move_task(args.task_id, args.column, confirm=confirm)
        _write(outcome.to_dict())
        if not outcome.accepted:
            sys.stderr.write((outcome.message or f"Move {outcome.status}") + "\n")
            return 1
        return 0

    return _run(args, work)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Hivemind console: snapshot sync and projections")
    parser.add_argument("--config", default=None, help="Config file (default: ./.hivemind_console/config.yaml)")
    parser.add_argument("--base-url", default=None, help="Backend base URL")
    parser.add_argument("--log-level", default=None, help="Log level (DEBUG, INFO, WARNING, ...)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    snapshot = subparsers.add_parser("snapshot", help="Fetch one snapshot and print entity counts")
    snapshot.add_argument("--events", default=None, type=int, help="Events to request (default: config events_limit)")
    snapshot.set_defaults(func=_snapshot)

    board = subparsers.add_parser("board", help="Show the kanban board of a project")
    board.add_argument("project_id")
    board.add_argument("--json", action="store_true")
    board.set_defaults(func=_board)

    sessions = subparsers.add_parser("sessions", help="List active attempt sessions of a project")
    sessions.add_argument("project_id")
    sessions.set_defaults(func=_sessions)

    checkpoints = subparsers.add_parser("checkpoints", help="Show checkpoint progress of a task")
    checkpoints.add_argument("task_id")
    checkpoints.add_argument("--attempt", default=None)
    checkpoints.set_defaults(func=_checkpoints)

    watch = subparsers.add_parser("watch", help="Poll snapshots and print a project summary per update")
    watch.add_argument("project_id")
    watch.add_argument("--ticks", default=None, type=int, help="Stop after this many updates")
    watch.add_argument("--paused", action="store_true", help="Start with the event stream paused")
    watch.set_defaults(func=_watch)

    move = subparsers.add_parser("move", help="Move a task to another kanban column")
    move.add_argument("task_id")
    move.add_argument("column", choices=list(KANBAN_COLUMNS))
    move.add_argument("--yes", action="store_true", help="Skip confirmation prompts")
    move.set_defaults(func=_move)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "func", None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == "__main__":
    raise SystemExit(main())
