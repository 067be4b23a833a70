"""Terminal events that drive session reconciliation.

Each event corresponds to a signal dict from the host application
(``{"event": "terminal-settings-updated", ...}``), parsed into a typed
dataclass for safe consumption by the session bridge.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

TERMINAL_SETTINGS_UPDATED = "terminal-settings-updated"
TERMINAL_CONFIG_UPDATED = "terminal-config-updated"
TERMINAL_CREDENTIALS_UPDATED = "terminal-credentials-updated"
APP_RESET = "app-reset"


@dataclass
class TerminalEvent:
    """Base event from the host application."""
    event_type: str = ""


@dataclass
class TerminalSettingsUpdated(TerminalEvent):
    event_type: str = TERMINAL_SETTINGS_UPDATED


@dataclass
class TerminalConfigUpdated(TerminalEvent):
    event_type: str = TERMINAL_CONFIG_UPDATED
    branch_id: str | None = None
    organization_id: str | None = None


@dataclass
class TerminalCredentialsUpdated(TerminalEvent):
    event_type: str = TERMINAL_CREDENTIALS_UPDATED
    terminal_id: str | None = None
    organization_id: str | None = None
    api_key: str | None = None


@dataclass
class AppReset(TerminalEvent):
    event_type: str = APP_RESET
    reason: str = ""


_EVENT_MAP: dict[str, type[TerminalEvent]] = {
    TERMINAL_SETTINGS_UPDATED: TerminalSettingsUpdated,
    TERMINAL_CONFIG_UPDATED: TerminalConfigUpdated,
    TERMINAL_CREDENTIALS_UPDATED: TerminalCredentialsUpdated,
    APP_RESET: AppReset,
}

# Host payloads use camelCase.
_ALIASES = {
    "branchId": "branch_id",
    "organizationId": "organization_id",
    "terminalId": "terminal_id",
    "apiKey": "api_key",
}


def event_to_dict(event: TerminalEvent) -> dict[str, Any]:
    """Convert a typed event dataclass to a plain dict for JSON serialization."""
    d: dict[str, Any] = {}
    for f in event.__dataclass_fields__:
        val = getattr(event, f)
        if val is not None:
            d[f] = val
    if "event_type" in d:
        d["event"] = d.pop("event_type")
    return d


def dict_to_event(data: dict[str, Any]) -> TerminalEvent:
    """Convert a host signal dict to a typed event dataclass."""
    event_type = data.get("event", "")
    cls = _EVENT_MAP.get(event_type, TerminalEvent)
    valid_fields = {f.name for f in cls.__dataclass_fields__.values()}
    filtered: dict[str, Any] = {}
    for key, value in data.items():
        key = _ALIASES.get(key, key)
        if key in valid_fields:
            filtered[key] = value
    if "event" in data and "event_type" not in filtered:
        filtered["event_type"] = data["event"]
    return cls(**filtered)
