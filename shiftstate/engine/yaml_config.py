"""YAML configuration loader.

Loads a single YAML file holding the session settings, the shift
authority endpoint and the local terminal settings. When no YAML is
provided, SessionConfig.from_env() works exactly as before.

Example YAML:
    session:
      cache_path: ~/.shiftstate/session.json
      lookup_timeout_seconds: 5
      pseudo_session_ids: [local-simple-pin]

    authority:
      base_url: https://pos.example.com/api
      api_key_env: POS_API_KEY
      timeout_seconds: 5

    terminal:
      branch_id: b-001
      terminal_id: t-014
      organization_id: org-7
      pos_api_key: "${POS_API_KEY}"

String values may reference environment variables as ``${NAME}``.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .config import SessionConfig
from .errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class AuthorityConfig:
    """Where the shift authority lives and how to authenticate to it."""
    base_url: str | None = None
    api_key: str | None = None
    api_key_env: str | None = None  # env var holding the key; wins over api_key
    timeout_seconds: float | None = None  # defaults to lookup_timeout_seconds

    def resolve_api_key(self) -> str | None:
        if self.api_key_env:
            value = os.environ.get(self.api_key_env)
            if value:
                return value
        return self.api_key or None


@dataclass
class ShiftStateConfig:
    """Top-level parsed configuration."""
    session: SessionConfig = field(default_factory=SessionConfig)
    authority: AuthorityConfig = field(default_factory=AuthorityConfig)
    terminal: dict[str, str] = field(default_factory=dict)
    source_path: Path | None = None


def _expand(value: Any) -> Any:
    if isinstance(value, str):
        return os.path.expandvars(value)
    if isinstance(value, list):
        return [_expand(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand(v) for k, v in value.items()}
    return value


def _section(raw: dict, name: str) -> dict:
    section = raw.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(name, "section must be a mapping")
    return section


def _parse_session(session_raw: dict) -> SessionConfig:
    defaults = SessionConfig()
    pseudo_raw = session_raw.get("pseudo_session_ids")
    if pseudo_raw is None:
        pseudo_ids = defaults.pseudo_session_ids
    elif isinstance(pseudo_raw, str):
        pseudo_ids = frozenset(p.strip() for p in pseudo_raw.split(",") if p.strip())
    else:
        pseudo_ids = frozenset(str(p).strip() for p in pseudo_raw if str(p).strip())

    cache_path = session_raw.get("cache_path")
    session = SessionConfig(
        cache_path=(
            Path(cache_path).expanduser() if cache_path else defaults.cache_path
        ),
        lookup_timeout_seconds=float(session_raw.get(
            "lookup_timeout_seconds", SessionConfig.lookup_timeout_seconds
        )),
        credentials_refresh_timeout_seconds=float(session_raw.get(
            "credentials_refresh_timeout_seconds",
            SessionConfig.credentials_refresh_timeout_seconds,
        )),
        pseudo_session_ids=pseudo_ids,
        default_staff_name=str(session_raw.get(
            "default_staff_name", SessionConfig.default_staff_name
        )),
        event_queue_size=int(session_raw.get(
            "event_queue_size", SessionConfig.event_queue_size
        )),
        log_level=str(session_raw.get("log_level", SessionConfig.log_level)),
    )
    session.validate()
    return session


def load_yaml_config(path: str | Path) -> ShiftStateConfig:
    """Load and parse a YAML config file.

    Raises FileNotFoundError when the file is missing and lets
    yaml.YAMLError propagate after logging it.
    """
    path = Path(path).expanduser()
    logger.info(
        "load_yaml_config: attempting to load config from %s (exists=%s)",
        path, path.exists()
    )
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.error(
            "load_yaml_config: config file not found at %s (absolute path: %s)",
            path, path.absolute()
        )
        raise
    except yaml.YAMLError as exc:
        logger.error("load_yaml_config: YAML parse error in %s: %s", path, exc)
        raise

    if not isinstance(raw, dict):
        raise ConfigError(str(path), "top level must be a mapping")
    raw = _expand(raw)

    top_sections = sorted(raw.keys())
    logger.info(
        "Parsed YAML config %s; sections: %s",
        path.name, ", ".join(top_sections) if top_sections else "(empty)",
    )

    # ── Session ────────────────────────────────────────────────
    session = _parse_session(_section(raw, "session"))

    # ── Authority ──────────────────────────────────────────────
    authority_raw = _section(raw, "authority")
    timeout = authority_raw.get("timeout_seconds")
    authority = AuthorityConfig(
        base_url=authority_raw.get("base_url") or None,
        api_key=authority_raw.get("api_key") or None,
        api_key_env=authority_raw.get("api_key_env") or None,
        timeout_seconds=float(timeout) if timeout is not None else None,
    )

    # ── Terminal settings ──────────────────────────────────────
    terminal = {
        str(k): str(v)
        for k, v in _section(raw, "terminal").items()
        if v is not None
    }

    return ShiftStateConfig(
        session=session,
        authority=authority,
        terminal=terminal,
        source_path=path,
    )
