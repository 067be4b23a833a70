"""Session lifecycle state machine.

Defines valid transitions and enforces them. Invalid transitions
raise InvalidTransitionError rather than silently proceeding.

State Diagram:

    UNINITIALIZED ──> RESTORING ──┬──> ACTIVE ──┐
          │              ^        │             │
          │              │        └──> INACTIVE ┤
          │              └──────────────────────┘
          └──> ACTIVE / INACTIVE  (direct setters before any pass)

    ACTIVE <──> INACTIVE  (set_active_shift_immediate, clear_shift)

Re-entering the current state is a no-op, so overlapping passes can
each report RESTORING without tripping the table.
"""
from __future__ import annotations

from .errors import InvalidTransitionError
from .models import SessionState

VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.UNINITIALIZED: {
        SessionState.RESTORING,
        SessionState.ACTIVE,
        SessionState.INACTIVE,
    },
    SessionState.RESTORING: {
        SessionState.ACTIVE,
        SessionState.INACTIVE,
    },
    SessionState.ACTIVE: {
        SessionState.RESTORING,
        SessionState.INACTIVE,
    },
    SessionState.INACTIVE: {
        SessionState.RESTORING,
        SessionState.ACTIVE,
    },
}


def validate_transition(current: SessionState, target: SessionState) -> None:
    """Validate a state transition. Raises InvalidTransitionError if invalid."""
    if current is target:
        return
    allowed = VALID_TRANSITIONS.get(current, set())
    if target not in allowed:
        allowed_str = ", ".join(s.value for s in allowed) or "none"
        raise InvalidTransitionError(
            f"Invalid state transition: {current.value} -> {target.value}. "
            f"Allowed from {current.value}: {allowed_str}"
        )
