"""Persisted session snapshot."""

from __future__ import annotations

from dataclasses import dataclass

from shiftstate.shared.models.shift import ActiveShift
from shiftstate.shared.models.staff import Staff


@dataclass(frozen=True)
class SessionSnapshot:
    """Staff + active shift + last-known terminal id, as stored in the cache.

    ``active_shift`` is either None or a shift with status active; the
    cache layer evicts anything else.
    """

    staff: Staff | None = None
    active_shift: ActiveShift | None = None
    last_known_terminal_id: str | None = None

    def to_dict(self) -> dict:
        return {
            "staff": self.staff.to_dict() if self.staff else None,
            "activeShift": self.active_shift.to_dict() if self.active_shift else None,
            "lastKnownTerminalId": self.last_known_terminal_id,
        }
