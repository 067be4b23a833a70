"""Terminal credentials: in-memory cache of what provisioning told us.

Holds the terminal id, branch id, organization id and POS API key so that
hot paths (organization hydration, authority headers) do not have to
round-trip to the settings store. Refreshed from the ConfigService
settings getter on demand, and updated from heartbeat/onboarding events.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace

from shiftstate.engine.identity import TERMINAL_CATEGORY, ConfigService
from shiftstate.engine.normalize import normalize

logger = logging.getLogger(__name__)

# settings key -> TerminalCredentials attribute
_SETTING_KEYS = {
    "terminal_id": "terminal_id",
    "branch_id": "branch_id",
    "organization_id": "organization_id",
    "pos_api_key": "api_key",
}


@dataclass(frozen=True)
class TerminalCredentials:
    """Snapshot of cached terminal credentials. Any field may be None."""

    terminal_id: str | None = None
    branch_id: str | None = None
    organization_id: str | None = None
    api_key: str | None = None


class TerminalCredentialCache:
    """Process-wide credential cache, constructed once and injected."""

    def __init__(self, config_service: ConfigService | None = None) -> None:
        self._config = config_service
        self._current = TerminalCredentials()

    def get_cached(self) -> TerminalCredentials:
        return self._current

    def update(self, **values: str | None) -> TerminalCredentials:
        """Merge non-empty values into the cache. Unknown names raise TypeError."""
        known = {f.name for f in fields(TerminalCredentials)}
        unknown = set(values) - known
        if unknown:
            raise TypeError(f"Unknown credential field(s): {', '.join(sorted(unknown))}")
        changes = {
            name: value.strip()
            for name, value in values.items()
            if isinstance(value, str) and value.strip()
        }
        if changes:
            self._current = replace(self._current, **changes)
            logger.debug("Terminal credentials updated: %s", ", ".join(sorted(changes)))
        return self._current

    def clear(self) -> None:
        self._current = TerminalCredentials()
        logger.info("Terminal credentials cleared")

    async def refresh(self) -> TerminalCredentials:
        """Re-read credentials from the settings store and merge them.

        Values that normalize to absent are skipped, so a placeholder in
        the store never overwrites a real cached id. Errors from the
        settings store propagate to the caller.
        """
        if self._config is None:
            return self._current
        fresh: dict[str, str] = {}
        for key, attr in _SETTING_KEYS.items():
            raw = await self._config.get_setting(TERMINAL_CATEGORY, key)
            if attr == "api_key":
                value = raw.strip() if isinstance(raw, str) else None
            else:
                value = normalize(raw, "branch" if attr == "branch_id" else None)
            if value:
                fresh[attr] = value
        return self.update(**fresh)
