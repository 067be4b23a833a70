"""Abstract shift authority: the remote source of truth for shifts.

Each lookup returns an envelope: either the bare shift record, or
``{"success": bool, "data": record}``. ``success: false`` means "not
found", not an error; unwrap_envelope() normalizes both shapes.
"""
from __future__ import annotations

import abc
from typing import Any

from shiftstate.shared.models.shift import ActiveShift

Envelope = Any  # dict | {"success": bool, "data": dict | None} | None


class ShiftAuthority(abc.ABC):
    """Remote authority interface.

    Implementations:
    - HttpShiftAuthority: REST API over aiohttp
    - in-process fakes in tests
    """

    @abc.abstractmethod
    async def get_active(self, staff_id: str) -> Envelope:
        """Active shift for a staff member."""

    @abc.abstractmethod
    async def get_active_by_terminal(self, branch_id: str, terminal_id: str) -> Envelope:
        """Active shift on a terminal, matching branch and terminal."""

    @abc.abstractmethod
    async def get_active_by_terminal_loose(self, terminal_id: str) -> Envelope:
        """Active shift on a terminal regardless of branch."""


def unwrap_envelope(result: Envelope) -> ActiveShift | None:
    """Extract a shift from either envelope shape (``result.data ?? result``)."""
    if result is None:
        return None
    payload = result
    if isinstance(result, dict):
        if result.get("success") is False:
            return None
        data = result.get("data")
        if data is not None:
            payload = data
    return ActiveShift.from_dict(payload)
