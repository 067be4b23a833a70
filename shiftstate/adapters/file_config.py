"""ConfigService backed by the YAML config file.

The file is re-read on every call so that an operator (or provisioning
script) can edit the ``terminal:`` section and then fire
``terminal-settings-updated`` without restarting the process.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path
from typing import Any

import yaml

from shiftstate.engine.identity import TERMINAL_CATEGORY, ConfigService

logger = logging.getLogger(__name__)


class YamlTerminalConfig(ConfigService):
    """Terminal settings read from a YAML file (``<category>: {key: value}``)."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path).expanduser()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        try:
            with open(self._path, encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.debug("Terminal config %s does not exist", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Terminal config %s: top level is not a mapping", self._path)
            return {}
        return raw

    async def get_setting(self, category: str, key: str) -> str | None:
        raw = await asyncio.to_thread(self._read)
        section = raw.get(category)
        if not isinstance(section, dict):
            return None
        value = section.get(key)
        if value is None:
            return None
        return os.path.expandvars(str(value))

    async def get_branch_id(self) -> str | None:
        return await self.get_setting(TERMINAL_CATEGORY, "branch_id")

    async def get_terminal_id(self) -> str | None:
        return await self.get_setting(TERMINAL_CATEGORY, "terminal_id")

    async def get_organization_id(self) -> str | None:
        return await self.get_setting(TERMINAL_CATEGORY, "organization_id")
