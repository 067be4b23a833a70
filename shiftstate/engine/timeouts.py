"""Timeout wrapper shared by remote lookups and identity sources."""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from .errors import LookupTimeoutError

T = TypeVar("T")


async def with_timeout(
    awaitable: Awaitable[T],
    timeout_seconds: float | None,
    operation: str,
) -> T:
    """Await with an upper bound. 0, negative or None disables the bound."""
    if timeout_seconds is None or timeout_seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError as exc:
        raise LookupTimeoutError(operation, timeout_seconds) from exc
