"""Terminal identity resolution: source order, normalization, failures."""
from __future__ import annotations

import asyncio
import json

import pytest

from shiftstate.engine.identity import ConfigService, TerminalIdentityResolver
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.cache import MemoryCache
from shiftstate.shared.services.session_cache import STAFF_KEY, USER_KEY, SessionCache


class MockConfigService(ConfigService):
    """Live getters and a settings store, each independently configurable."""

    def __init__(self, live=None, settings=None, fail=(), hang=()):
        self.live = dict(live or {})
        self.settings = dict(settings or {})
        self.fail = set(fail)
        self.hang = set(hang)

    async def _live(self, kind):
        if kind in self.fail:
            raise RuntimeError(f"{kind} getter unavailable")
        if kind in self.hang:
            await asyncio.sleep(10)
        return self.live.get(kind)

    async def get_branch_id(self):
        return await self._live("branch")

    async def get_terminal_id(self):
        return await self._live("terminal")

    async def get_organization_id(self):
        return await self._live("organization")

    async def get_setting(self, category, key):
        if "settings" in self.fail:
            raise RuntimeError("settings store locked")
        return self.settings.get((category, key))


def _resolver(config=None, cache=None, timeout=1.0):
    return TerminalIdentityResolver(
        config, SessionCache(cache or MemoryCache()), timeout_seconds=timeout,
    )


@pytest.mark.asyncio
async def test_live_config_wins() -> None:
    config = MockConfigService(
        live={"branch": "B1", "terminal": "T1", "organization": "O1"},
        settings={("terminal", "branch_id"): "B2"},
    )
    identity = await _resolver(config).resolve(Staff(staff_id="S1", branch_id="B3"))
    assert (identity.branch_id, identity.terminal_id, identity.organization_id) == ("B1", "T1", "O1")
    assert identity.can_lookup


@pytest.mark.asyncio
async def test_placeholders_fall_through_to_next_source() -> None:
    config = MockConfigService(
        live={"branch": "default-branch", "terminal": "  "},
        settings={("terminal", "branch_id"): "default", ("terminal", "terminal_id"): "T2"},
    )
    staff = Staff(staff_id="S1", branch_id="B-staff", organization_id="default-org")
    identity = await _resolver(config).resolve(staff)
    assert identity.branch_id == "B-staff"
    assert identity.terminal_id == "T2"
    assert identity.organization_id is None


@pytest.mark.asyncio
async def test_failing_and_hanging_sources_count_as_unresolved() -> None:
    config = MockConfigService(
        settings={("terminal", "terminal_id"): "T1"},
        fail={"branch"},
        hang={"terminal"},
    )
    cache = MemoryCache({STAFF_KEY: json.dumps({"staffId": "S1", "branchId": "B-cached"})})
    identity = await _resolver(config, cache, timeout=0.05).resolve(None)
    assert identity.branch_id == "B-cached"
    assert identity.terminal_id == "T1"


@pytest.mark.asyncio
async def test_login_record_is_last_resort_for_branch_and_terminal_only() -> None:
    cache = MemoryCache({
        USER_KEY: json.dumps({"branchId": "B9", "terminalId": "T9", "organizationId": "O9"}),
    })
    identity = await _resolver(None, cache).resolve(None)
    assert identity.branch_id == "B9"
    assert identity.terminal_id == "T9"
    assert identity.organization_id is None


@pytest.mark.asyncio
async def test_nothing_resolvable_gives_empty_identity() -> None:
    config = MockConfigService(fail={"branch", "terminal", "organization", "settings"})
    identity = await _resolver(config).resolve(None)
    assert identity.branch_id is None
    assert identity.terminal_id is None
    assert identity.organization_id is None
    assert not identity.can_lookup


@pytest.mark.asyncio
async def test_configured_terminal_ignores_session_records() -> None:
    cache = MemoryCache({STAFF_KEY: json.dumps({"staffId": "S1", "terminalId": "T-old"})})
    resolver = _resolver(MockConfigService(), cache)
    assert await resolver.resolve_configured_terminal_id() is None
    assert await resolver.resolve_terminal_id() == "T-old"
