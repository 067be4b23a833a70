from __future__ import annotations

import io
import json
import sys
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console

from shiftstate.adapters.file_config import YamlTerminalConfig
from shiftstate.adapters.http_authority import HttpShiftAuthority
from shiftstate.app import build_session, load_config, main, render_view
from shiftstate.engine.models import SessionState, SessionView, ShiftStatus
from shiftstate.shared.models.shift import ActiveShift
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.session_cache import (
    ACTIVE_SHIFT_KEY,
    LAST_KNOWN_TERMINAL_KEY,
    STAFF_KEY,
)

CONFIG = (
    "session:\n"
    "  lookup_timeout_seconds: 1\n"
    "authority:\n"
    "  base_url: http://127.0.0.1:9/api\n"
    "terminal:\n"
    "  branch_id: B1\n"
    "  terminal_id: T1\n"
    "  organization_id: default-org\n"
)


@pytest.mark.asyncio
async def test_yaml_terminal_config_reads_file_on_every_call() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "terminal.yaml"
        config = YamlTerminalConfig(path)
        assert await config.get_terminal_id() is None

        path.write_text(CONFIG)
        assert await config.get_branch_id() == "B1"
        assert await config.get_terminal_id() == "T1"
        assert await config.get_setting("terminal", "missing") is None

        path.write_text(CONFIG.replace("T1", "T2"))
        assert await config.get_terminal_id() == "T2"


@pytest.mark.asyncio
async def test_build_session_wires_yaml_config_and_authority() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        config_path = Path(tmpdir) / "terminal.yaml"
        config_path.write_text(CONFIG)
        cache_path = Path(tmpdir) / "session.json"

        session, authority = build_session(load_config(str(config_path)), str(cache_path))
        try:
            assert isinstance(authority, HttpShiftAuthority)
            change = await session.check_terminal_change()
            assert change.current == "T1"
            stored = json.loads(cache_path.read_text())
            assert json.loads(stored[LAST_KNOWN_TERMINAL_KEY]) == "T1"
        finally:
            await session.close()
            await authority.close()


def test_render_view_shows_staff_and_shift() -> None:
    out = io.StringIO()
    console = Console(file=out, width=100, color_system=None)
    view = SessionView(
        state=SessionState.ACTIVE,
        staff=Staff(staff_id="S1", name="Ana", role="cashier", organization_id="O1"),
        active_shift=ActiveShift(id="sh1", staff_id="S1", branch_id="B1", status=ShiftStatus.ACTIVE),
    )

    render_view(console, view, "T1")

    text = out.getvalue()
    assert "Ana (S1, cashier)" in text
    assert "sh1 [active]" in text
    assert "T1" in text


def test_cli_clear_and_status() -> None:
    with tempfile.TemporaryDirectory() as tmpdir:
        cache_path = Path(tmpdir) / "session.json"
        cache_path.write_text(json.dumps({
            STAFF_KEY: json.dumps({"staffId": "S1", "name": "Ana"}),
            ACTIVE_SHIFT_KEY: json.dumps({"id": "sh1", "staff_id": "S1", "status": "active"}),
        }))

        with patch("shiftstate.app.setup_logging"):
            with patch.object(sys, "argv", ["shiftstate", "--cache", str(cache_path), "status"]):
                with pytest.raises(SystemExit) as exc_info:
                    main()
            assert exc_info.value.code == 0

            with patch.object(sys, "argv", ["shiftstate", "--cache", str(cache_path), "clear"]):
                with pytest.raises(SystemExit) as exc_info:
                    main()
            assert exc_info.value.code == 0

        stored = json.loads(cache_path.read_text())
        assert STAFF_KEY not in stored
        assert ACTIVE_SHIFT_KEY not in stored


def test_cli_reports_missing_config() -> None:
    with patch("shiftstate.app.setup_logging"):
        with patch.object(sys, "argv", ["shiftstate", "--config", "/nonexistent/x.yaml", "status"]):
            with pytest.raises(SystemExit) as exc_info:
                main()
    assert exc_info.value.code == 2
