"""Core data models for the shift-session engine.

Enums, identity tuples and pass results. Staff and shift records live in
shiftstate.shared.models; they are only referenced here for typing to
avoid circular imports.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from shiftstate.shared.models.shift import ActiveShift
    from shiftstate.shared.models.staff import Staff


class ShiftStatus(str, Enum):
    """Shift status as reported by the authority."""
    ACTIVE = "active"
    CLOSED = "closed"
    ABANDONED = "abandoned"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> ShiftStatus:
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        return cls.UNKNOWN


class SessionState(str, Enum):
    """Session lifecycle states. See lifecycle.py for transition rules."""
    UNINITIALIZED = "uninitialized"
    RESTORING = "restoring"
    ACTIVE = "active"
    INACTIVE = "inactive"


class RestoreOutcome(str, Enum):
    """How a reconciliation pass ended."""
    ADOPTED = "adopted"
    NOT_FOUND = "not_found"
    UNRESOLVED = "unresolved"  # branch or terminal id could not be resolved
    CONFLICT = "conflict"      # organization boundary violated


class FailurePolicy(str, Enum):
    """What a pass does to an already-adopted shift when every fallback fails."""
    PRESERVE = "preserve"
    EVICT = "evict"


class Trigger(str, Enum):
    """What started a reconciliation pass. Used for logging."""
    STARTUP = "startup"
    STAFF_CHANGED = "staff_changed"
    REFRESH = "refresh"
    SETTINGS_UPDATED = "settings_updated"


@dataclass(frozen=True)
class TerminalIdentity:
    """Resolved (branch, terminal, organization) tuple. Any field may be None."""
    branch_id: str | None = None
    terminal_id: str | None = None
    organization_id: str | None = None

    @property
    def can_lookup(self) -> bool:
        return bool(self.branch_id and self.terminal_id)


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of one reconciliation pass, applied by the session at commit."""
    outcome: RestoreOutcome
    shift: ActiveShift | None = None
    staff: Staff | None = None  # synthesized when the session had none
    source: str | None = None   # name of the strategy that produced the shift
    identity: TerminalIdentity | None = None

    @property
    def adopted(self) -> bool:
        return self.outcome is RestoreOutcome.ADOPTED


@dataclass(frozen=True)
class SessionView:
    """Read-only view handed to consumers and change listeners."""
    state: SessionState
    staff: Staff | None
    active_shift: ActiveShift | None

    @property
    def is_shift_active(self) -> bool:
        return self.active_shift is not None and self.active_shift.is_active
