"""Terminal identity resolution.

Each of branch, terminal and organization id is resolved independently
through an ordered chain of sources:

    1. live configuration getter        (ConfigService.get_branch_id ...)
    2. settings store                   (ConfigService.get_setting("terminal", ...))
    3. in-memory staff record
    4. persisted staff record
    5. persisted login record           (branch/terminal only)

Every candidate goes through normalize(); a placeholder or blank moves on
to the next source. A source that raises or times out counts as
unresolved. Resolution never raises.
"""
from __future__ import annotations

import abc
import logging
from collections.abc import Awaitable, Callable

from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.session_cache import SessionCache

from .models import TerminalIdentity
from .normalize import normalize
from .timeouts import with_timeout

logger = logging.getLogger(__name__)

TERMINAL_CATEGORY = "terminal"


class ConfigService(abc.ABC):
    """Terminal configuration as provisioned on this device.

    Implementations may hit a local settings database, a file or a
    management API; every getter may fail or return None.
    """

    @abc.abstractmethod
    async def get_branch_id(self) -> str | None:
        """Branch id from the live terminal configuration."""

    @abc.abstractmethod
    async def get_terminal_id(self) -> str | None:
        """Terminal id from the live terminal configuration."""

    @abc.abstractmethod
    async def get_organization_id(self) -> str | None:
        """Organization id from the live terminal configuration."""

    @abc.abstractmethod
    async def get_setting(self, category: str, key: str) -> str | None:
        """Raw value from the settings store, e.g. ("terminal", "branch_id")."""


class TerminalIdentityResolver:
    """Resolve TerminalIdentity from configuration and session records."""

    def __init__(
        self,
        config_service: ConfigService | None,
        session_cache: SessionCache,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._config = config_service
        self._cache = session_cache
        self._timeout = timeout_seconds

    async def _from_source(
        self,
        label: str,
        getter: Callable[[], Awaitable[str | None]],
    ) -> str | None:
        try:
            return await with_timeout(getter(), self._timeout, label)
        except Exception as exc:
            logger.debug("Identity source %s failed: %s", label, exc)
            return None

    async def _first(
        self,
        kind: str,
        async_sources: list[tuple[str, Callable[[], Awaitable[str | None]]]],
        local_values: list[str | None],
    ) -> str | None:
        for label, getter in async_sources:
            value = normalize(await self._from_source(label, getter), kind)
            if value:
                return value
        for raw in local_values:
            value = normalize(raw, kind)
            if value:
                return value
        return None

    def _config_sources(
        self, kind: str,
    ) -> list[tuple[str, Callable[[], Awaitable[str | None]]]]:
        if self._config is None:
            return []
        live = {
            "branch": self._config.get_branch_id,
            "terminal": self._config.get_terminal_id,
            "organization": self._config.get_organization_id,
        }[kind]
        config = self._config
        key = f"{kind}_id"
        return [
            (f"config.{kind}_id", live),
            (f"settings.{TERMINAL_CATEGORY}.{key}",
             lambda: config.get_setting(TERMINAL_CATEGORY, key)),
        ]

    async def resolve_branch_id(self, staff: Staff | None = None) -> str | None:
        return await self._first(
            "branch",
            self._config_sources("branch"),
            [
                staff.branch_id if staff else None,
                self._cache.load_staff_field("branchId"),
                self._cache.load_user_field("branchId"),
            ],
        )

    async def resolve_terminal_id(self, staff: Staff | None = None) -> str | None:
        return await self._first(
            "terminal",
            self._config_sources("terminal"),
            [
                staff.terminal_id if staff else None,
                self._cache.load_staff_field("terminalId"),
                self._cache.load_user_field("terminalId"),
            ],
        )

    async def resolve_organization_id(self, staff: Staff | None = None) -> str | None:
        return await self._first(
            "organization",
            self._config_sources("organization"),
            [
                staff.organization_id if staff else None,
                self._cache.load_staff_field("organizationId"),
            ],
        )

    async def resolve_configured_terminal_id(self) -> str | None:
        """Terminal id from configuration sources only.

        Used for change detection: session records carry the old id and
        would hide a re-provisioned terminal.
        """
        return await self._first("terminal", self._config_sources("terminal"), [])

    async def resolve(self, staff: Staff | None = None) -> TerminalIdentity:
        identity = TerminalIdentity(
            branch_id=await self.resolve_branch_id(staff),
            terminal_id=await self.resolve_terminal_id(staff),
            organization_id=await self.resolve_organization_id(staff),
        )
        logger.debug(
            "Resolved terminal identity branch=%s terminal=%s organization=%s",
            identity.branch_id, identity.terminal_id, identity.organization_id,
        )
        return identity
