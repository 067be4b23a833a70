"""Adapters package - Bridge between the session engine and the host.

This package contains the event bus, the session event bridge, the
HTTP shift authority and the file-backed terminal configuration.
"""
from __future__ import annotations

__all__ = [
    "EventBus",
    "HttpShiftAuthority",
    "SessionEventBridge",
    "YamlTerminalConfig",
]

from shiftstate.adapters.event_bus import EventBus
from shiftstate.adapters.file_config import YamlTerminalConfig
from shiftstate.adapters.http_authority import HttpShiftAuthority
from shiftstate.adapters.session_bridge import SessionEventBridge
