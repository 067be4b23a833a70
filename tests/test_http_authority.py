"""HttpShiftAuthority against an in-process aiohttp server."""
from __future__ import annotations

from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

from shiftstate.adapters.http_authority import (
    API_KEY_HEADER,
    TERMINAL_HEADER,
    HttpShiftAuthority,
)
from shiftstate.engine.errors import RemoteLookupError
from shiftstate.engine.lookup import RemoteShiftLookup
from shiftstate.shared.services.credentials import TerminalCredentialCache

SHIFT = {"id": "sh1", "staff_id": "S1", "branch_id": "B1", "terminal_id": "T1", "status": "active"}


class TestHttpShiftAuthority(AioHTTPTestCase):
    """Endpoint paths, headers and status handling."""

    async def get_application(self):
        self.requests: list[web.Request] = []
        app = web.Application()
        app.router.add_get("/api/shifts/active", self._by_staff)
        app.router.add_get("/api/shifts/active/by-terminal", self._by_terminal)
        app.router.add_get("/api/shifts/active/by-terminal-loose", self._loose)
        return app

    async def _by_staff(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        staff_id = request.query.get("staff_id")
        if staff_id == "S1":
            return web.json_response({"success": True, "data": SHIFT})
        if staff_id == "boom":
            return web.Response(status=500, text="database down")
        if staff_id == "garbled":
            return web.Response(status=200, text="<html>", content_type="text/html")
        return web.Response(status=404)

    async def _by_terminal(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        if (request.query.get("branch_id"), request.query.get("terminal_id")) == ("B1", "T1"):
            return web.json_response(SHIFT)
        return web.json_response({"success": False, "data": None})

    async def _loose(self, request: web.Request) -> web.Response:
        self.requests.append(request)
        return web.json_response({"success": True, "data": {**SHIFT, "branch_id": "B2"}})

    def _authority(self, **kwargs) -> HttpShiftAuthority:
        return HttpShiftAuthority(
            str(self.server.make_url("/api")),
            timeout_seconds=2.0,
            **kwargs,
        )

    async def test_get_active_returns_envelope(self):
        async with self._authority(api_key="key-1") as authority:
            result = await authority.get_active("S1")
        assert result == {"success": True, "data": SHIFT}
        assert self.requests[-1].headers[API_KEY_HEADER] == "key-1"

    async def test_not_found_is_none(self):
        async with self._authority() as authority:
            assert await authority.get_active("S404") is None

    async def test_server_error_raises_remote_lookup_error(self):
        async with self._authority() as authority:
            with self.assertRaises(RemoteLookupError) as ctx:
                await authority.get_active("boom")
        assert "HTTP 500" in str(ctx.exception)
        assert ctx.exception.operation == "get_active"

    async def test_invalid_json_raises_remote_lookup_error(self):
        async with self._authority() as authority:
            with self.assertRaises(RemoteLookupError):
                await authority.get_active("garbled")

    async def test_terminal_endpoints_and_credential_headers(self):
        credentials = TerminalCredentialCache()
        credentials.update(terminal_id="T1", api_key="cached-key")
        async with self._authority(credentials=credentials) as authority:
            strict = await authority.get_active_by_terminal("B1", "T1")
            loose = await authority.get_active_by_terminal_loose("T1")

        assert strict == SHIFT
        assert loose["data"]["branch_id"] == "B2"
        request = self.requests[-1]
        assert request.query["terminal_id"] == "T1"
        assert request.headers[API_KEY_HEADER] == "cached-key"
        assert request.headers[TERMINAL_HEADER] == "T1"

    async def test_lookup_unwraps_and_tolerates_failures(self):
        async with self._authority() as authority:
            lookup = RemoteShiftLookup(authority, timeout_seconds=2.0)
            shift = await lookup.get_active("S1")
            missing = await lookup.get_active_by_terminal("B9", "T9")
            failed = await lookup.get_active("boom")

        assert shift.id == "sh1"
        assert missing is None
        assert failed is None

    async def test_unreachable_server_raises_remote_lookup_error(self):
        authority = HttpShiftAuthority("http://127.0.0.1:9/api", timeout_seconds=1.0)
        try:
            with self.assertRaises(RemoteLookupError):
                await authority.get_active("S1")
        finally:
            await authority.close()
