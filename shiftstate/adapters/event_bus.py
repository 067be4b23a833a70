"""Async event bus bridging host signals to the session bridge.

Host code (settings screens, credential sync, remote-wipe handlers)
fires signals without waiting; the EventBus queues them for the
SessionEventBridge consumer loop.
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from shiftstate.adapters.events import TerminalEvent, dict_to_event

logger = logging.getLogger(__name__)


class EventBus:
    """Async queue bridging host signals to event consumers."""

    def __init__(self, maxsize: int = 1000) -> None:
        self._queue: asyncio.Queue[TerminalEvent] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    async def _callback(self, data: dict[str, Any]) -> None:
        """Callback handed to host code that reports signals as dicts."""
        await self.emit(dict_to_event(data))

    def make_callback(self):
        """Return the async dict callback for host integrations."""
        return self._callback

    async def emit(self, event: TerminalEvent) -> None:
        """Queue an event, waiting briefly for room."""
        if self._closed:
            return
        try:
            await asyncio.wait_for(self._queue.put(event), timeout=30.0)
        except asyncio.TimeoutError:
            logger.error(
                "EventBus queue blocked for 30s, dropping: %s (queue size: %d)",
                event.event_type,
                self._queue.qsize(),
            )

    def publish(self, event_type: str, **payload: Any) -> bool:
        """Fire-and-forget signal. Returns False if the event was dropped."""
        if self._closed:
            return False
        event = dict_to_event({"event": event_type, **payload})
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            logger.error(
                "EventBus full, dropping: %s (queue size: %d)",
                event.event_type,
                self._queue.qsize(),
            )
            return False
        return True

    async def consume(self) -> AsyncIterator[TerminalEvent]:
        """Yield events as they arrive. Stops on close() once the queue is drained."""
        while not self._closed or not self._queue.empty():
            try:
                event = await asyncio.wait_for(self._queue.get(), timeout=0.5)
            except asyncio.TimeoutError:
                continue
            except asyncio.CancelledError:
                break
            yield event

    def close(self) -> None:
        """Stop the consumer loop permanently."""
        self._closed = True

    def reset(self) -> None:
        """Drain any leftover events and re-open the bus."""
        while not self._queue.empty():
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
        self._closed = False
