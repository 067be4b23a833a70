"""REST shift authority over aiohttp.

Endpoints (relative to ``base_url``)::

    GET /shifts/active?staff_id=S
    GET /shifts/active/by-terminal?branch_id=B&terminal_id=T
    GET /shifts/active/by-terminal-loose?terminal_id=T

A 404 is "no active shift" and returns None. Any other non-2xx status,
a transport error or an undecodable body raises RemoteLookupError.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any

import aiohttp

from shiftstate.engine.authority import Envelope, ShiftAuthority
from shiftstate.engine.errors import LookupTimeoutError, RemoteLookupError
from shiftstate.shared.services.credentials import TerminalCredentialCache

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-POS-API-Key"
TERMINAL_HEADER = "X-Terminal-ID"


class HttpShiftAuthority(ShiftAuthority):
    """ShiftAuthority backed by the admin API."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        credentials: TerminalCredentialCache | None = None,
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._credentials = credentials
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> HttpShiftAuthority:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        cached = self._credentials.get_cached() if self._credentials else None
        api_key = self._api_key or (cached.api_key if cached else None)
        if api_key:
            headers[API_KEY_HEADER] = api_key
        if cached is not None and cached.terminal_id:
            headers[TERMINAL_HEADER] = cached.terminal_id
        return headers

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def _get(self, operation: str, path: str, params: dict[str, str]) -> Envelope:
        url = f"{self._base_url}{path}"
        try:
            async with self._client().get(url, params=params, headers=self._headers()) as response:
                if response.status == 404:
                    logger.debug("%s: 404 from %s", operation, url)
                    return None
                if response.status >= 400:
                    body = await response.text()
                    raise RemoteLookupError(
                        operation, f"HTTP {response.status}: {body[:200]}"
                    )
                try:
                    return await response.json(content_type=None)
                except ValueError as exc:
                    raise RemoteLookupError(operation, f"invalid JSON: {exc}") from exc
        except asyncio.TimeoutError as exc:
            raise LookupTimeoutError(operation, self._timeout.total) from exc
        except aiohttp.ClientError as exc:
            raise RemoteLookupError(operation, f"{type(exc).__name__}: {exc}") from exc

    async def get_active(self, staff_id: str) -> Envelope:
        return await self._get("get_active", "/shifts/active", {"staff_id": staff_id})

    async def get_active_by_terminal(self, branch_id: str, terminal_id: str) -> Envelope:
        return await self._get(
            "get_active_by_terminal",
            "/shifts/active/by-terminal",
            {"branch_id": branch_id, "terminal_id": terminal_id},
        )

    async def get_active_by_terminal_loose(self, terminal_id: str) -> Envelope:
        return await self._get(
            "get_active_by_terminal_loose",
            "/shifts/active/by-terminal-loose",
            {"terminal_id": terminal_id},
        )
