"""Organization backfill for staff records and the terminal credential cache."""
from __future__ import annotations

import asyncio

import pytest

from shiftstate.engine.config import SessionConfig
from shiftstate.engine.identity import ConfigService
from shiftstate.engine.models import ShiftStatus
from shiftstate.engine.session import ShiftSession
from shiftstate.shared.models.shift import ActiveShift
from shiftstate.shared.models.staff import Staff
from shiftstate.shared.services.cache import MemoryCache
from shiftstate.shared.services.credentials import TerminalCredentialCache


class SettingsOnlyConfig(ConfigService):
    """Only the settings store answers; live getters know nothing."""

    def __init__(self, settings=None, delay=0.0, error=None):
        self.settings = dict(settings or {})
        self.delay = delay
        self.error = error
        self.reads = 0

    async def get_branch_id(self):
        return None

    async def get_terminal_id(self):
        return None

    async def get_organization_id(self):
        return None

    async def get_setting(self, category, key):
        self.reads += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.settings.get((category, key))


def _session(config=None, credentials=None, refresh_timeout=1.6) -> ShiftSession:
    return ShiftSession(
        cache=MemoryCache(),
        config_service=config,
        credentials=credentials,
        config=SessionConfig(credentials_refresh_timeout_seconds=refresh_timeout),
    )


@pytest.mark.asyncio
async def test_organization_comes_from_active_shift_first() -> None:
    credentials = TerminalCredentialCache()
    credentials.update(organization_id="O-cached")
    session = _session(credentials=credentials)
    session.set_active_shift_immediate(
        ActiveShift(id="sh1", staff_id="S1", organization_id="O-shift", status=ShiftStatus.ACTIVE)
    )
    session._staff = Staff(staff_id="S1")

    assert await session.hydrate_organization() == "O-shift"
    assert session.staff.organization_id == "O-shift"
    assert session.credentials.get_cached().organization_id == "O-shift"


@pytest.mark.asyncio
async def test_organization_falls_back_to_cached_credentials() -> None:
    credentials = TerminalCredentialCache()
    credentials.update(organization_id="O-cached")
    session = _session(credentials=credentials)
    session._staff = Staff(staff_id="S1")

    assert await session.hydrate_organization() == "O-cached"


@pytest.mark.asyncio
async def test_organization_falls_back_to_credentials_refresh() -> None:
    config = SettingsOnlyConfig({
        ("terminal", "organization_id"): "O-fresh",
        ("terminal", "branch_id"): "default",
        ("terminal", "pos_api_key"): " key-1 ",
    })
    session = _session(config)
    session._staff = Staff(staff_id="S1")

    assert await session.hydrate_organization() == "O-fresh"
    cached = session.credentials.get_cached()
    assert cached.organization_id == "O-fresh"
    assert cached.branch_id is None
    assert cached.api_key == "key-1"


@pytest.mark.asyncio
async def test_slow_or_failing_refresh_leaves_staff_unchanged() -> None:
    for config in (
        SettingsOnlyConfig({("terminal", "organization_id"): "O1"}, delay=1.0),
        SettingsOnlyConfig(error=RuntimeError("settings store locked")),
    ):
        session = _session(config, refresh_timeout=0.05)
        session._staff = Staff(staff_id="S1")

        assert await session.hydrate_organization() is None
        assert session.staff.organization_id is None


@pytest.mark.asyncio
async def test_staff_with_organization_is_left_alone() -> None:
    config = SettingsOnlyConfig({("terminal", "organization_id"): "O-other"})
    session = _session(config)
    session._staff = Staff(staff_id="S1", organization_id="O1")

    assert await session.hydrate_organization() == "O1"
    assert config.reads == 0


def test_credential_cache_update_ignores_blank_values() -> None:
    credentials = TerminalCredentialCache()
    credentials.update(terminal_id=" T1 ", api_key="")
    credentials.update(terminal_id=None, branch_id="B1")

    cached = credentials.get_cached()
    assert cached.terminal_id == "T1"
    assert cached.branch_id == "B1"
    assert cached.api_key is None

    credentials.clear()
    assert credentials.get_cached().terminal_id is None


def test_credential_cache_rejects_unknown_fields() -> None:
    with pytest.raises(TypeError, match="store_id"):
        TerminalCredentialCache().update(store_id="x")


@pytest.mark.asyncio
async def test_credential_refresh_keeps_real_ids_over_placeholders() -> None:
    credentials = TerminalCredentialCache(
        SettingsOnlyConfig({("terminal", "terminal_id"): "default-terminal"})
    )
    credentials.update(terminal_id="T1")

    refreshed = await credentials.refresh()

    assert refreshed.terminal_id == "T1"
