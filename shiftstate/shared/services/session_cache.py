"""Typed access to the session records kept in the durable cache."""

from __future__ import annotations

import logging

from shiftstate.shared.models.shift import ActiveShift
from shiftstate.shared.models.snapshot import SessionSnapshot
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.cache import DurableCache

logger = logging.getLogger(__name__)

STAFF_KEY = "staff"
ACTIVE_SHIFT_KEY = "activeShift"
LAST_KNOWN_TERMINAL_KEY = "lastKnownTerminalId"
# Login record written by the auth flow; a legacy source of branch/terminal ids.
USER_KEY = "pos-user"


class SessionCache:
    """Read and write staff, active shift and last-known terminal id."""

    def __init__(self, cache: DurableCache) -> None:
        self._cache = cache

    # ── Staff ──────────────────────────────────────────────────

    def load_staff(self) -> Staff | None:
        return Staff.from_dict(self._cache.get_json(STAFF_KEY))

    def load_staff_field(self, key: str) -> str | None:
        """Raw field of the persisted staff record (camelCase key)."""
        data = self._cache.get_json(STAFF_KEY)
        if isinstance(data, dict):
            value = data.get(key)
            return value if isinstance(value, str) else None
        return None

    def save_staff(self, staff: Staff | None) -> None:
        if staff is None:
            self._cache.remove(STAFF_KEY)
        else:
            self._cache.set_json(STAFF_KEY, staff.to_dict())

    # ── Active shift ───────────────────────────────────────────

    def load_shift(self) -> ActiveShift | None:
        """Load the cached shift. A non-active cached shift is evicted on read."""
        raw = self._cache.get_json(ACTIVE_SHIFT_KEY)
        if raw is None:
            return None
        shift = ActiveShift.from_dict(raw)
        if shift is None or not shift.is_active:
            logger.info(
                "Evicting cached shift that is not active (status=%s)",
                raw.get("status") if isinstance(raw, dict) else None,
            )
            self._cache.remove(ACTIVE_SHIFT_KEY)
            return None
        return shift

    def save_shift(self, shift: ActiveShift | None) -> None:
        """Persist only active shifts; anything else evicts the entry."""
        if shift is not None and shift.is_active:
            self._cache.set_json(ACTIVE_SHIFT_KEY, shift.to_dict())
        else:
            self._cache.remove(ACTIVE_SHIFT_KEY)

    # ── Terminal id ────────────────────────────────────────────

    def load_last_terminal_id(self) -> str | None:
        value = self._cache.get_json(LAST_KNOWN_TERMINAL_KEY)
        return value if isinstance(value, str) and value else None

    def save_last_terminal_id(self, terminal_id: str | None) -> None:
        if terminal_id:
            self._cache.set_json(LAST_KNOWN_TERMINAL_KEY, terminal_id)
        else:
            self._cache.remove(LAST_KNOWN_TERMINAL_KEY)

    # ── Login record ───────────────────────────────────────────

    def load_user_field(self, key: str) -> str | None:
        data = self._cache.get_json(USER_KEY)
        if isinstance(data, dict):
            value = data.get(key)
            return value if isinstance(value, str) else None
        return None

    def clear_user(self) -> None:
        self._cache.remove(USER_KEY)

    # ── Snapshot ───────────────────────────────────────────────

    def load_snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            staff=self.load_staff(),
            active_shift=self.load_shift(),
            last_known_terminal_id=self.load_last_terminal_id(),
        )
