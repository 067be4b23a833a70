"""Reconciliation passes: decide which shift (and staff) is current.

The reconciler never touches shared session state. Each pass works from
the staff captured when it started and returns a ReconcileResult; the
ShiftSession decides at commit time whether the result is still fresh
enough to apply.

Pass shape:

    resolve identity ─> [staff-scoped] ─> strict terminal ─> loose terminal
                                                  │
                             organization check <─┘ first active hit
                                   │
                   CONFLICT  <─────┴─────>  ADOPTED (+ synthesized staff)

The staff-scoped step is skipped for pseudo-session staff ids; the
terminal steps need both branch and terminal id resolved.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from shiftstate.shared.models.shift import ActiveShift
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.credentials import TerminalCredentialCache
from shiftstate.shared.services.session_cache import SessionCache

from .config import SessionConfig
from .errors import OrganizationConflictError
from .identity import TerminalIdentityResolver
from .lookup import (
    LookupStrategy,
    LooseTerminalStrategy,
    RemoteShiftLookup,
    StaffScopedStrategy,
    StrictTerminalStrategy,
    first_active,
)
from .models import ReconcileResult, RestoreOutcome, TerminalIdentity
from .normalize import normalize
from .timeouts import with_timeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TerminalChange:
    """Result of comparing the configured terminal id with the last one seen."""
    previous: str | None
    current: str | None

    @property
    def changed(self) -> bool:
        return bool(self.previous and self.current and self.previous != self.current)


class Reconciler:
    """Stateless pass logic shared by every reconciliation trigger."""

    def __init__(
        self,
        *,
        lookup: RemoteShiftLookup,
        resolver: TerminalIdentityResolver,
        session_cache: SessionCache,
        credentials: TerminalCredentialCache,
        config: SessionConfig,
    ) -> None:
        self._lookup = lookup
        self._resolver = resolver
        self._cache = session_cache
        self._credentials = credentials
        self._config = config

    def is_pseudo_session(self, staff_id: str | None) -> bool:
        return bool(staff_id) and staff_id in self._config.pseudo_session_ids

    # ── Passes ─────────────────────────────────────────────────

    async def reconcile(
        self,
        staff: Staff | None,
        staff_id: str | None = None,
    ) -> ReconcileResult:
        """Staff-scoped lookup for ``staff_id`` (if any), then terminal restore."""
        identity = await self._resolver.resolve(staff)

        strategies: list[LookupStrategy] = []
        if staff_id and not self.is_pseudo_session(staff_id):
            strategies.append(StaffScopedStrategy(staff_id))
        elif staff_id:
            logger.debug(
                "Staff %s is a pseudo-session; skipping staff-scoped lookup", staff_id,
            )

        if identity.can_lookup:
            strategies.append(
                StrictTerminalStrategy(identity.branch_id, identity.terminal_id)
            )
            strategies.append(LooseTerminalStrategy(identity.terminal_id))
        else:
            logger.warning(
                "Terminal restore unavailable: missing branch/terminal "
                "(staff=%s branch=%s terminal=%s)",
                staff_id, identity.branch_id, identity.terminal_id,
            )

        hit = await first_active(self._lookup, strategies)
        if hit is None:
            outcome = (
                RestoreOutcome.NOT_FOUND if identity.can_lookup
                else RestoreOutcome.UNRESOLVED
            )
            logger.warning(
                "No active shift found (staff=%s branch=%s terminal=%s outcome=%s)",
                staff_id, identity.branch_id, identity.terminal_id, outcome.value,
            )
            return ReconcileResult(outcome=outcome, identity=identity)

        shift, source = hit
        try:
            self._check_organization(shift, identity)
        except OrganizationConflictError as exc:
            logger.warning(
                "%s; clearing session (staff=%s branch=%s terminal=%s source=%s)",
                exc, shift.staff_id, identity.branch_id, identity.terminal_id, source,
            )
            return ReconcileResult(
                outcome=RestoreOutcome.CONFLICT,
                shift=shift,
                source=source,
                identity=identity,
            )

        logger.info(
            "Adopted active shift %s via %s (staff=%s branch=%s terminal=%s)",
            shift.id, source, shift.staff_id, identity.branch_id, identity.terminal_id,
        )
        return ReconcileResult(
            outcome=RestoreOutcome.ADOPTED,
            shift=shift,
            staff=None if staff is not None else self.synthesize_staff(shift, identity),
            source=source,
            identity=identity,
        )

    async def restore_by_terminal(self, staff: Staff | None) -> ReconcileResult:
        return await self.reconcile(staff, None)

    @staticmethod
    def _check_organization(shift: ActiveShift, identity: TerminalIdentity) -> None:
        expected = identity.organization_id
        found = normalize(shift.organization_id)
        if expected and found and expected != found:
            raise OrganizationConflictError(expected, found, shift.id)

    def synthesize_staff(
        self,
        shift: ActiveShift,
        identity: TerminalIdentity | None = None,
    ) -> Staff:
        """Minimal staff record derived from a shift, for sessions with no login."""
        identity = identity or TerminalIdentity()
        return Staff(
            staff_id=shift.staff_id,
            name=self._cache.load_staff_field("name") or self._config.default_staff_name,
            role=shift.role_type or "staff",
            branch_id=normalize(shift.branch_id, "branch") or identity.branch_id,
            terminal_id=normalize(shift.terminal_id) or identity.terminal_id,
            organization_id=normalize(shift.organization_id) or identity.organization_id,
        )

    # ── Organization hydration ─────────────────────────────────

    async def find_organization(
        self,
        staff: Staff,
        shift: ActiveShift | None,
    ) -> str | None:
        """Backfill source for a staff record with no organization id.

        Tries the current shift, the cached terminal credentials, then a
        bounded credentials refresh.
        """
        if shift is not None:
            org = normalize(shift.organization_id)
            if org:
                return org
        org = normalize(self._credentials.get_cached().organization_id)
        if org:
            return org
        try:
            refreshed = await with_timeout(
                self._credentials.refresh(),
                self._config.credentials_refresh_timeout_seconds,
                "credentials.refresh",
            )
        except Exception as exc:
            logger.warning(
                "Failed to refresh terminal credentials for staff %s: %s",
                staff.staff_id, exc,
            )
            return None
        return normalize(refreshed.organization_id)

    # ── Terminal change ────────────────────────────────────────

    async def detect_terminal_change(self) -> TerminalChange:
        change = TerminalChange(
            previous=self._cache.load_last_terminal_id(),
            current=await self._resolver.resolve_configured_terminal_id(),
        )
        if change.changed:
            logger.info(
                "Terminal id changed: %s -> %s", change.previous, change.current,
            )
        return change
