"""Remote lookup: envelopes, failure tolerance, timeouts, strategy order."""
from __future__ import annotations

import asyncio

import pytest

from shiftstate.engine.authority import ShiftAuthority, unwrap_envelope
from shiftstate.engine.errors import LookupTimeoutError, RemoteLookupError
from shiftstate.engine.lookup import (
    LooseTerminalStrategy,
    RemoteShiftLookup,
    StaffScopedStrategy,
    StrictTerminalStrategy,
    first_active,
)
from shiftstate.engine.models import ShiftStatus
from shiftstate.engine.timeouts import with_timeout

SHIFT = {"id": "sh1", "staff_id": "S1", "status": "active"}


class MockAuthority(ShiftAuthority):
    def __init__(self, staff=None, terminal=None, loose=None, delay=0.0, error=None):
        self.staff = staff
        self.terminal = terminal
        self.loose = loose
        self.delay = delay
        self.error = error
        self.calls: list[str] = []

    async def _answer(self, name, value):
        self.calls.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return value

    async def get_active(self, staff_id):
        return await self._answer("staff", self.staff)

    async def get_active_by_terminal(self, branch_id, terminal_id):
        return await self._answer("terminal", self.terminal)

    async def get_active_by_terminal_loose(self, terminal_id):
        return await self._answer("terminal_loose", self.loose)


def test_unwrap_bare_record() -> None:
    shift = unwrap_envelope(SHIFT)
    assert shift.id == "sh1"
    assert shift.status is ShiftStatus.ACTIVE


def test_unwrap_success_envelope() -> None:
    shift = unwrap_envelope({"success": True, "data": {**SHIFT, "status": "closed"}})
    assert shift.id == "sh1"
    assert shift.status is ShiftStatus.CLOSED


def test_unwrap_failure_and_empty_envelopes() -> None:
    assert unwrap_envelope(None) is None
    assert unwrap_envelope({"success": False, "data": SHIFT}) is None
    assert unwrap_envelope({"success": True, "data": None}) is None
    assert unwrap_envelope("not a record") is None


@pytest.mark.asyncio
async def test_with_timeout_converts_to_lookup_timeout() -> None:
    with pytest.raises(LookupTimeoutError) as exc_info:
        await with_timeout(asyncio.sleep(1), 0.01, "slow_op")
    assert exc_info.value.operation == "slow_op"
    assert isinstance(exc_info.value, RemoteLookupError)


@pytest.mark.asyncio
async def test_with_timeout_disabled_by_zero() -> None:
    assert await with_timeout(asyncio.sleep(0, result="ok"), 0, "op") == "ok"


@pytest.mark.asyncio
async def test_lookup_errors_read_as_not_found() -> None:
    for error in (RemoteLookupError("get_active", "HTTP 500"), ConnectionError("reset")):
        lookup = RemoteShiftLookup(MockAuthority(error=error))
        assert await lookup.get_active("S1") is None


@pytest.mark.asyncio
async def test_lookup_timeout_reads_as_not_found() -> None:
    lookup = RemoteShiftLookup(MockAuthority(staff=SHIFT, delay=1.0), timeout_seconds=0.02)
    assert await lookup.get_active("S1") is None


@pytest.mark.asyncio
async def test_lookup_without_authority_is_unavailable() -> None:
    lookup = RemoteShiftLookup(None)
    assert not lookup.available
    assert await lookup.get_active_by_terminal_loose("T1") is None


@pytest.mark.asyncio
async def test_first_active_tries_strategies_in_order() -> None:
    authority = MockAuthority(
        staff={"success": False},
        terminal=None,
        loose={"success": True, "data": SHIFT},
    )
    hit = await first_active(
        RemoteShiftLookup(authority),
        [StaffScopedStrategy("S1"), StrictTerminalStrategy("B1", "T1"), LooseTerminalStrategy("T1")],
    )
    shift, source = hit
    assert shift.id == "sh1"
    assert source == "terminal_loose"
    assert authority.calls == ["staff", "terminal", "terminal_loose"]


@pytest.mark.asyncio
async def test_first_active_skips_non_active_results() -> None:
    authority = MockAuthority(
        staff={**SHIFT, "status": "closed"},
        terminal={**SHIFT, "id": "sh2"},
    )
    shift, source = await first_active(
        RemoteShiftLookup(authority),
        [StaffScopedStrategy("S1"), StrictTerminalStrategy("B1", "T1")],
    )
    assert shift.id == "sh2"
    assert source == "terminal"


@pytest.mark.asyncio
async def test_first_active_stops_at_first_hit() -> None:
    authority = MockAuthority(staff=SHIFT, terminal=SHIFT)
    await first_active(
        RemoteShiftLookup(authority),
        [StaffScopedStrategy("S1"), StrictTerminalStrategy("B1", "T1")],
    )
    assert authority.calls == ["staff"]
