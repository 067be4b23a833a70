"""ShiftSession: the single owner of staff/shift state on a terminal.

Construct one per process and inject it into consumers. Consumers read
``staff``, ``active_shift`` and ``is_shift_active`` and mutate only
through set_staff(), refresh_active_shift(), set_active_shift_immediate()
and clear_shift(). Every change is written through to the durable cache.

Reconciliation triggers (startup, staff change, terminal-settings
signal) may overlap. Each pass takes a sequence number when it starts
and commits only if no newer pass or direct shift mutation has completed
in the meantime; stale results are dropped.
"""
from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Awaitable, Callable

from shiftstate.shared.models.shift import ActiveShift
from shiftstate.shared.models.snapshot import SessionSnapshot
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.cache import DurableCache
from shiftstate.shared.services.credentials import TerminalCredentialCache
from shiftstate.shared.services.session_cache import SessionCache

from .authority import ShiftAuthority
from .config import SessionConfig
from .identity import ConfigService, TerminalIdentityResolver
from .lifecycle import validate_transition
from .lookup import RemoteShiftLookup
from .models import (
    FailurePolicy,
    ReconcileResult,
    RestoreOutcome,
    SessionState,
    SessionView,
    Trigger,
)
from .reconciler import Reconciler, TerminalChange

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionView], None]


class ShiftSession:
    """Authoritative in-memory staff/shift state with write-through caching."""

    def __init__(
        self,
        *,
        cache: DurableCache,
        authority: ShiftAuthority | None = None,
        config_service: ConfigService | None = None,
        credentials: TerminalCredentialCache | None = None,
        config: SessionConfig | None = None,
    ) -> None:
        self._config = config or SessionConfig()
        self._store = SessionCache(cache)
        self._credentials = credentials or TerminalCredentialCache(config_service)
        self._reconciler = Reconciler(
            lookup=RemoteShiftLookup(
                authority, timeout_seconds=self._config.lookup_timeout_seconds,
            ),
            resolver=TerminalIdentityResolver(
                config_service,
                self._store,
                timeout_seconds=self._config.lookup_timeout_seconds,
            ),
            session_cache=self._store,
            credentials=self._credentials,
            config=self._config,
        )

        self._staff: Staff | None = None
        self._shift: ActiveShift | None = None
        self._state = SessionState.UNINITIALIZED

        self._seq = itertools.count(1)
        self._completed_seq = 0
        self._inflight = 0

        self._listeners: list[SessionListener] = []
        self._tasks: set[asyncio.Task] = set()

    # ── Read surface ───────────────────────────────────────────

    @property
    def staff(self) -> Staff | None:
        return self._staff

    @property
    def active_shift(self) -> ActiveShift | None:
        return self._shift

    @property
    def is_shift_active(self) -> bool:
        return self._shift is not None and self._shift.is_active

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def credentials(self) -> TerminalCredentialCache:
        return self._credentials

    def view(self) -> SessionView:
        return SessionView(state=self._state, staff=self._staff, active_shift=self._shift)

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            staff=self._staff,
            active_shift=self._shift if self.is_shift_active else None,
            last_known_terminal_id=self._store.load_last_terminal_id(),
        )

    def cached_snapshot(self) -> SessionSnapshot:
        """What the durable cache currently holds, without reconciling."""
        return self._store.load_snapshot()

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Call ``listener(view)`` after every committed change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    # ── Mutation API ───────────────────────────────────────────

    def set_staff(self, staff: Staff | None) -> None:
        """Replace the logged-in staff and persist (or evict) it.

        Logging out never touches the active shift: a shift belongs to
        the terminal's work session, not to the login.
        """
        previous_id = self._staff.staff_id if self._staff else None
        self._staff = staff
        self._store.save_staff(staff)
        if self._state is SessionState.UNINITIALIZED:
            self._transition(self._settled_state())
        self._notify()
        if staff is None:
            logger.debug("Staff cleared; preserving active shift until end of day")
            return
        if staff.staff_id != previous_id:
            self._on_staff_changed(staff)

    async def refresh_active_shift(self, override_staff_id: str | None = None) -> ReconcileResult:
        """Re-validate the shift for ``override_staff_id`` or the current staff.

        A staff-scoped miss (or a pseudo-session id) falls through to the
        terminal restore. With no resolvable staff id the shift is dropped;
        otherwise a failed refresh keeps whatever shift is already adopted.
        """
        staff_id = override_staff_id or (self._staff.staff_id if self._staff else None)
        if not staff_id:
            logger.debug("refresh_active_shift: no staff id; clearing active shift")
            self._commit_direct(None)
            return ReconcileResult(outcome=RestoreOutcome.UNRESOLVED)
        logger.info("refresh_active_shift: querying staff %s", staff_id)
        return await self._run_pass(
            Trigger.REFRESH,
            FailurePolicy.PRESERVE,
            lambda staff: self._reconciler.reconcile(staff, staff_id),
        )

    def set_active_shift_immediate(self, shift: ActiveShift | None) -> None:
        """Adopt a shift the caller already knows to be authoritative."""
        logger.info(
            "Active shift set directly: %s (status=%s)",
            shift.id if shift else None, shift.status.value if shift else None,
        )
        self._commit_direct(shift)

    def clear_shift(self) -> None:
        """Drop staff and shift, in memory and in the cache."""
        self._claim_seq()
        self._clear()
        self._notify()

    # ── Reconciliation triggers ────────────────────────────────

    async def start(self) -> SessionView:
        """Restore the session on process start.

        Terminal-change detection runs first; then the cached snapshot is
        adopted optimistically and validated against the authority.
        """
        await self.check_terminal_change()

        snapshot = self._store.load_snapshot()
        if self._staff is None and snapshot.staff is not None:
            self._staff = snapshot.staff
        cached = snapshot.active_shift

        if cached is not None:
            logger.info(
                "Restoring cached shift %s for staff %s", cached.id, cached.staff_id,
            )
            self._claim_seq()
            self._shift = cached
            if self._staff is None:
                self._staff = self._reconciler.synthesize_staff(cached)
                self._store.save_staff(self._staff)
            self._transition(SessionState.ACTIVE)
            self._notify()
            await self._run_pass(
                Trigger.STARTUP,
                FailurePolicy.EVICT,
                lambda staff: self._reconciler.reconcile(staff, cached.staff_id),
            )
        else:
            result = await self._run_pass(
                Trigger.STARTUP,
                FailurePolicy.PRESERVE,
                self._reconciler.restore_by_terminal,
            )
            # A staff record restored from the cache counts as a login.
            if not result.adopted and self._staff is not None and not self.is_shift_active:
                await self.refresh_active_shift()

        await self.hydrate_organization()
        return self.view()

    async def on_terminal_settings_updated(self) -> ReconcileResult | None:
        """Configuration arrived or changed; retry restore if no shift is active."""
        await self.check_terminal_change()
        if self.is_shift_active:
            logger.debug("Terminal settings updated; active shift present, nothing to do")
            return None
        return await self._run_pass(
            Trigger.SETTINGS_UPDATED,
            FailurePolicy.PRESERVE,
            self._reconciler.restore_by_terminal,
        )

    async def check_terminal_change(self) -> TerminalChange:
        """Invalidate the session if the configured terminal id changed."""
        change = await self._reconciler.detect_terminal_change()
        if change.changed:
            logger.info(
                "Terminal changed %s -> %s; clearing session (staff=%s shift=%s)",
                change.previous, change.current,
                self._staff.staff_id if self._staff else None,
                self._shift.id if self._shift else None,
            )
            self.clear_shift()
        if change.current:
            self._store.save_last_terminal_id(change.current)
        return change

    async def hydrate_organization(self) -> str | None:
        """Backfill staff.organization_id from shift or terminal credentials."""
        staff = self._staff
        if staff is None:
            return None
        if staff.organization_id:
            return staff.organization_id
        org = await self._reconciler.find_organization(staff, self._shift)
        if not org:
            logger.debug("No organization found for staff %s", staff.staff_id)
            return None
        current = self._staff
        if current is None or current.staff_id != staff.staff_id:
            logger.debug("Staff changed during organization hydration; dropping result")
            return None
        if current.organization_id:
            return current.organization_id
        self._staff = current.with_organization(org)
        self._store.save_staff(self._staff)
        self._credentials.update(organization_id=org)
        logger.info("Hydrated organization %s for staff %s", org, staff.staff_id)
        self._notify()
        return org

    def forget_terminal(self) -> None:
        """Remote wipe: clear the session, login record, credentials and terminal id."""
        self._credentials.clear()
        self.clear_shift()
        self._store.clear_user()
        self._store.save_last_terminal_id(None)

    # ── Background tasks ───────────────────────────────────────

    def _on_staff_changed(self, staff: Staff) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(
                "Staff %s set outside an event loop; call refresh_active_shift() to reconcile",
                staff.staff_id,
            )
            return
        task = loop.create_task(self._after_staff_change(staff.staff_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _after_staff_change(self, staff_id: str) -> None:
        try:
            await self._run_pass(
                Trigger.STAFF_CHANGED,
                FailurePolicy.PRESERVE,
                lambda staff: self._reconciler.reconcile(staff, staff_id),
            )
            await self.hydrate_organization()
        except Exception:
            logger.exception("Reconciliation after staff change failed (staff=%s)", staff_id)

    async def wait_idle(self) -> None:
        """Wait for every scheduled background reconciliation to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()

    # ── Internals ──────────────────────────────────────────────

    def _claim_seq(self) -> int:
        """Take a sequence number and mark it completed (direct mutations)."""
        seq = next(self._seq)
        self._completed_seq = seq
        return seq

    async def _run_pass(
        self,
        trigger: Trigger,
        policy: FailurePolicy,
        work: Callable[[Staff | None], Awaitable[ReconcileResult]],
    ) -> ReconcileResult:
        seq = next(self._seq)
        staff = self._staff
        self._inflight += 1
        self._transition(SessionState.RESTORING)
        try:
            result = await work(staff)
        finally:
            self._inflight -= 1

        if seq <= self._completed_seq:
            logger.debug(
                "Discarding stale %s pass #%d (newer #%d already applied)",
                trigger.value, seq, self._completed_seq,
            )
            self._settle()
            return result

        self._completed_seq = seq
        self._apply(result, policy, trigger)
        return result

    def _apply(self, result: ReconcileResult, policy: FailurePolicy, trigger: Trigger) -> None:
        if result.outcome is RestoreOutcome.ADOPTED:
            self._shift = result.shift
            self._store.save_shift(result.shift)
            if result.staff is not None and self._staff is None:
                self._staff = result.staff
                self._store.save_staff(result.staff)
        elif result.outcome is RestoreOutcome.CONFLICT:
            self._clear()
        elif policy is FailurePolicy.EVICT:
            if self._shift is not None:
                logger.warning(
                    "%s: no active shift confirmed; evicting cached shift %s",
                    trigger.value, self._shift.id,
                )
            self._shift = None
            self._store.save_shift(None)
        else:
            logger.debug(
                "%s: restore failed (%s); keeping shift %s",
                trigger.value, result.outcome.value, self._shift.id if self._shift else None,
            )
        self._transition(self._settled_state())
        self._notify()

    def _commit_direct(self, shift: ActiveShift | None) -> None:
        self._claim_seq()
        self._shift = shift
        self._store.save_shift(shift)
        self._transition(self._settled_state())
        self._notify()

    def _clear(self) -> None:
        self._staff = None
        self._shift = None
        self._store.save_staff(None)
        self._store.save_shift(None)
        self._transition(self._settled_state())
        logger.info("Session cleared")

    def _settled_state(self) -> SessionState:
        if self._inflight:
            return SessionState.RESTORING
        return SessionState.ACTIVE if self.is_shift_active else SessionState.INACTIVE

    def _settle(self) -> None:
        if self._state is SessionState.RESTORING:
            self._transition(self._settled_state())

    def _transition(self, target: SessionState) -> None:
        validate_transition(self._state, target)
        if target is not self._state:
            logger.debug("Session state %s -> %s", self._state.value, target.value)
        self._state = target

    def _notify(self) -> None:
        view = self.view()
        for listener in list(self._listeners):
            try:
                listener(view)
            except Exception:
                logger.exception("Session listener failed")
