"""Bridge between host signals and the ShiftSession.

Consumes the EventBus and maps each terminal event onto a session or
credential-cache operation. A failing handler is logged and the loop
keeps going; one bad signal must not stop later reconciliations.
"""
from __future__ import annotations

import asyncio
import logging

from shiftstate.adapters.event_bus import EventBus
from shiftstate.adapters.events import (
    AppReset,
    TerminalConfigUpdated,
    TerminalCredentialsUpdated,
    TerminalEvent,
    TerminalSettingsUpdated,
)
from shiftstate.engine.session import ShiftSession

logger = logging.getLogger(__name__)


class SessionEventBridge:
    """Routes terminal events from an EventBus to a ShiftSession."""

    def __init__(self, session: ShiftSession, bus: EventBus) -> None:
        self._session = session
        self._bus = bus
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def dispatch(self, event: TerminalEvent) -> None:
        if isinstance(event, TerminalSettingsUpdated):
            await self._session.on_terminal_settings_updated()
        elif isinstance(event, TerminalConfigUpdated):
            logger.info(
                "Terminal config updated (branch=%s organization=%s)",
                event.branch_id, event.organization_id,
            )
            self._session.credentials.update(
                branch_id=event.branch_id, organization_id=event.organization_id,
            )
            await self._session.hydrate_organization()
        elif isinstance(event, TerminalCredentialsUpdated):
            logger.info("Terminal credentials updated (terminal=%s)", event.terminal_id)
            self._session.credentials.update(
                terminal_id=event.terminal_id,
                organization_id=event.organization_id,
                api_key=event.api_key,
            )
        elif isinstance(event, AppReset):
            logger.warning("App reset triggered: %s", event.reason or "unknown")
            self._session.forget_terminal()
        else:
            logger.debug("Ignoring unknown terminal event: %s", event.event_type)

    async def run(self) -> None:
        """Consume events until the bus is closed."""
        async for event in self._bus.consume():
            try:
                await self.dispatch(event)
            except Exception:
                logger.exception("Failed to handle terminal event %s", event.event_type)

    def start(self) -> asyncio.Task:
        if self.running:
            return self._task
        self._task = asyncio.get_running_loop().create_task(self.run())
        return self._task

    async def stop(self) -> None:
        self._bus.close()
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
