"""Command-line entry point for the shift-session engine.

Usage:
    shiftstate status
    shiftstate --config terminal.yaml restore
    shiftstate set-staff S1 --name "Ana" --role cashier
    shiftstate emit-settings-updated
    shiftstate clear
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

import yaml
from rich.console import Console
from rich.table import Table
from rich.text import Text

from shiftstate.adapters.event_bus import EventBus
from shiftstate.adapters.events import TERMINAL_SETTINGS_UPDATED
from shiftstate.adapters.file_config import YamlTerminalConfig
from shiftstate.adapters.http_authority import HttpShiftAuthority
from shiftstate.adapters.session_bridge import SessionEventBridge
from shiftstate.engine.config import DEFAULT_HOME, SessionConfig
from shiftstate.engine.errors import ShiftSessionError
from shiftstate.engine.models import SessionState, SessionView
from shiftstate.engine.session import ShiftSession
from shiftstate.engine.yaml_config import ShiftStateConfig, load_yaml_config
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.cache import JsonFileCache
from shiftstate.shared.services.credentials import TerminalCredentialCache

logger = logging.getLogger(__name__)

LOG_FILE = DEFAULT_HOME / "logs" / "shiftstate.log"

_STATE_STYLES = {
    SessionState.ACTIVE: "bold green",
    SessionState.INACTIVE: "yellow",
    SessionState.RESTORING: "cyan",
    SessionState.UNINITIALIZED: "dim",
}


def setup_logging(level: str, verbose: bool = False, log_file: Path = LOG_FILE) -> None:
    """Rotating file log plus stderr. ``verbose`` forces DEBUG."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))
    root.handlers.clear()
    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s [pid=%(process)d] %(message)s"
    )
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8"
        )
    except OSError as exc:
        print(f"Warning: file logging disabled ({exc})", file=sys.stderr)
    else:
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.addHandler(stream_handler)


def load_config(config_path: str | None) -> ShiftStateConfig:
    if config_path:
        return load_yaml_config(config_path)
    return ShiftStateConfig(session=SessionConfig.from_env())


def build_session(
    config: ShiftStateConfig,
    cache_path: str | None = None,
) -> tuple[ShiftSession, HttpShiftAuthority | None]:
    """Wire cache, configuration service, credentials and authority."""
    session_config = config.session
    cache = JsonFileCache(Path(cache_path).expanduser() if cache_path else session_config.cache_path)
    config_service = (
        YamlTerminalConfig(config.source_path) if config.source_path else None
    )
    credentials = TerminalCredentialCache(config_service)

    authority = None
    if config.authority.base_url:
        authority = HttpShiftAuthority(
            config.authority.base_url,
            api_key=config.authority.resolve_api_key(),
            credentials=credentials,
            timeout_seconds=(
                config.authority.timeout_seconds
                or session_config.lookup_timeout_seconds
                or 10.0
            ),
        )
    else:
        logger.warning("No authority.base_url configured; remote lookups disabled")

    session = ShiftSession(
        cache=cache,
        authority=authority,
        config_service=config_service,
        credentials=credentials,
        config=session_config,
    )
    return session, authority


def render_view(console: Console, view: SessionView, last_terminal: str | None) -> None:
    table = Table(title="Shift session", show_header=False, box=None)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("state", Text(view.state.value, style=_STATE_STYLES[view.state]))

    staff = view.staff
    if staff is None:
        table.add_row("staff", Text("(none)", style="dim"))
    else:
        table.add_row("staff", Text(f"{staff.name} ({staff.staff_id}, {staff.role})"))
        table.add_row("organization", Text(staff.organization_id or "-"))

    shift = view.active_shift
    if shift is None:
        table.add_row("shift", Text("(none)", style="dim"))
    else:
        table.add_row("shift", Text(f"{shift.id} [{shift.status.value}]"))
        table.add_row("branch", Text(shift.branch_id or "-"))
        table.add_row("terminal", Text(shift.terminal_id or "-"))
    table.add_row("last terminal", Text(last_terminal or "-"))
    console.print(table)


async def _run(args: argparse.Namespace, config: ShiftStateConfig, console: Console) -> int:
    session, authority = build_session(config, args.cache)
    try:
        if args.command == "status":
            snapshot = session.cached_snapshot()
            render_view(
                console,
                SessionView(
                    state=(
                        SessionState.ACTIVE if snapshot.active_shift
                        else SessionState.INACTIVE
                    ),
                    staff=snapshot.staff,
                    active_shift=snapshot.active_shift,
                ),
                snapshot.last_known_terminal_id,
            )
        elif args.command == "restore":
            view = await session.start()
            render_view(console, view, session.snapshot().last_known_terminal_id)
        elif args.command == "clear":
            session.clear_shift()
            console.print("Session cleared.")
        elif args.command == "set-staff":
            await session.start()
            session.set_staff(Staff(
                staff_id=args.staff_id,
                name=args.name or config.session.default_staff_name,
                role=args.role,
            ))
            await session.wait_idle()
            render_view(console, session.view(), session.snapshot().last_known_terminal_id)
        elif args.command == "emit-settings-updated":
            await session.start()
            bus = EventBus(maxsize=config.session.event_queue_size)
            bridge = SessionEventBridge(session, bus)
            bridge.start()
            bus.publish(TERMINAL_SETTINGS_UPDATED)
            await bridge.stop()
            render_view(console, session.view(), session.snapshot().last_known_terminal_id)
        return 0
    finally:
        await session.close()
        if authority is not None:
            await authority.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="shiftstate",
        description="Restore and inspect the staff/shift session of a POS terminal",
    )
    parser.add_argument(
        "--config", "-c",
        default=os.getenv("SHIFT_CONFIG"),
        help="YAML config file (default: $SHIFT_CONFIG, else SHIFT_* env vars)",
    )
    parser.add_argument(
        "--cache",
        default=None,
        help="Session cache file (default: session.cache_path)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug logging on stderr",
    )
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("status", help="Show the cached session without contacting the authority")
    sub.add_parser("restore", help="Run startup reconciliation and show the result")
    sub.add_parser("clear", help="Clear staff and shift from the cache")
    staff_parser = sub.add_parser("set-staff", help="Log a staff member in and reconcile")
    staff_parser.add_argument("staff_id")
    staff_parser.add_argument("--name", default=None)
    staff_parser.add_argument("--role", default="staff")
    sub.add_parser(
        "emit-settings-updated",
        help="Signal that terminal settings changed and re-run terminal restore",
    )

    args = parser.parse_args()
    console = Console()

    try:
        config = load_config(args.config)
    except (OSError, ValueError, yaml.YAMLError, ShiftSessionError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    setup_logging(config.session.log_level, args.verbose)
    logger.info(
        "shiftstate %s cwd=%s config=%s log=%s",
        args.command, Path.cwd(), args.config or "<env>", LOG_FILE,
    )

    try:
        code = asyncio.run(_run(args, config, console))
    except KeyboardInterrupt:
        code = 130
    except ShiftSessionError as exc:
        logger.error("shiftstate %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        code = 1
    sys.exit(code)


if __name__ == "__main__":
    main()
