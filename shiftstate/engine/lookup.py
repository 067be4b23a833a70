"""Remote shift lookup and the ordered fallback strategies built on it.

RemoteShiftLookup bounds every authority call with a timeout and turns
any failure into "not found", logging it with the lookup arguments.
Strategies wrap one lookup shape each and are tried in order by
first_active(); the first one yielding an active shift wins.
"""
from __future__ import annotations

import abc
import logging
from collections.abc import Awaitable, Callable, Sequence

from shiftstate.shared.models.shift import ActiveShift

from .authority import Envelope, ShiftAuthority, unwrap_envelope
from .errors import RemoteLookupError
from .timeouts import with_timeout

logger = logging.getLogger(__name__)


class RemoteShiftLookup:
    """Failure-tolerant front for a ShiftAuthority."""

    def __init__(
        self,
        authority: ShiftAuthority | None,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self._authority = authority
        self._timeout = timeout_seconds

    @property
    def available(self) -> bool:
        return self._authority is not None

    async def _call(
        self,
        operation: str,
        call: Callable[[], Awaitable[Envelope]],
        context: dict[str, str | None],
    ) -> ActiveShift | None:
        if self._authority is None:
            logger.debug("No shift authority configured; %s skipped", operation)
            return None
        try:
            result = await with_timeout(call(), self._timeout, operation)
        except RemoteLookupError as exc:
            # LookupTimeoutError lands here too: a timeout is "not found".
            logger.warning("%s (%s)", exc, _fmt(context))
            return None
        except Exception as exc:
            logger.warning(
                "Shift lookup '%s' raised %s: %s (%s)",
                operation, type(exc).__name__, exc, _fmt(context),
            )
            return None
        shift = unwrap_envelope(result)
        logger.debug(
            "Shift lookup '%s' -> %s (%s)",
            operation, shift.id if shift else None, _fmt(context),
        )
        return shift

    async def get_active(self, staff_id: str) -> ActiveShift | None:
        authority = self._authority
        return await self._call(
            "get_active",
            lambda: authority.get_active(staff_id),
            {"staff_id": staff_id},
        )

    async def get_active_by_terminal(
        self, branch_id: str, terminal_id: str,
    ) -> ActiveShift | None:
        authority = self._authority
        return await self._call(
            "get_active_by_terminal",
            lambda: authority.get_active_by_terminal(branch_id, terminal_id),
            {"branch_id": branch_id, "terminal_id": terminal_id},
        )

    async def get_active_by_terminal_loose(self, terminal_id: str) -> ActiveShift | None:
        authority = self._authority
        return await self._call(
            "get_active_by_terminal_loose",
            lambda: authority.get_active_by_terminal_loose(terminal_id),
            {"terminal_id": terminal_id},
        )


def _fmt(context: dict[str, str | None]) -> str:
    return " ".join(f"{k}={v}" for k, v in context.items())


# ── Strategies ─────────────────────────────────────────────────


class LookupStrategy(abc.ABC):
    """One fallback step. ``find`` returns a shift or None, never raises."""

    name: str = ""

    @abc.abstractmethod
    async def find(self, lookup: RemoteShiftLookup) -> ActiveShift | None:
        ...


class StaffScopedStrategy(LookupStrategy):
    name = "staff"

    def __init__(self, staff_id: str) -> None:
        self.staff_id = staff_id

    async def find(self, lookup: RemoteShiftLookup) -> ActiveShift | None:
        return await lookup.get_active(self.staff_id)


class StrictTerminalStrategy(LookupStrategy):
    name = "terminal"

    def __init__(self, branch_id: str, terminal_id: str) -> None:
        self.branch_id = branch_id
        self.terminal_id = terminal_id

    async def find(self, lookup: RemoteShiftLookup) -> ActiveShift | None:
        return await lookup.get_active_by_terminal(self.branch_id, self.terminal_id)


class LooseTerminalStrategy(LookupStrategy):
    """Terminal-only match; tolerates branch drift between cache and authority."""

    name = "terminal_loose"

    def __init__(self, terminal_id: str) -> None:
        self.terminal_id = terminal_id

    async def find(self, lookup: RemoteShiftLookup) -> ActiveShift | None:
        return await lookup.get_active_by_terminal_loose(self.terminal_id)


async def first_active(
    lookup: RemoteShiftLookup,
    strategies: Sequence[LookupStrategy],
) -> tuple[ActiveShift, str] | None:
    """Try strategies in order; return the first active shift and its source."""
    for strategy in strategies:
        shift = await strategy.find(lookup)
        if shift is None:
            logger.debug("Strategy %s found nothing", strategy.name)
            continue
        if not shift.is_active:
            logger.warning(
                "Strategy %s returned shift %s with status %s; falling through",
                strategy.name, shift.id, shift.status.value,
            )
            continue
        return shift, strategy.name
    return None
