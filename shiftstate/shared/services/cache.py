"""Durable key/value cache: the session's only shared mutable resource.

Values are JSON-serialized strings, mirroring the browser-storage layout
other POS clients use, so one cache file can be shared between them.

Storage layout (JsonFileCache):
    ~/.shiftstate/session.json  ->  {"staff": "<json>", "activeShift": "<json>", ...}

Access is read-then-write with no compare-and-swap: the last completed
write wins.
"""
from __future__ import annotations

import abc
import json
import logging
from pathlib import Path
from typing import Any

from shiftstate.shared.services.durable_write import atomic_write_json, read_json_object

logger = logging.getLogger(__name__)


class DurableCache(abc.ABC):
    """Abstract string key/value store that survives process restarts."""

    @abc.abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored string, or None."""

    @abc.abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a string value."""

    @abc.abstractmethod
    def remove(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    def get_json(self, key: str) -> Any:
        """Decode a stored JSON value. Corrupt values read as None."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Failed to parse cached %s; treating as absent", key)
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value))


class MemoryCache(DurableCache):
    """Process-local cache. Used by tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._data)


class JsonFileCache(DurableCache):
    """Single JSON file, rewritten atomically on every change.

    The file is re-read on each access so edits by another process are
    observed. Write failures are logged and do not raise; the in-memory
    session stays authoritative until the next successful write.
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        return {
            k: v for k, v in read_json_object(self._path).items()
            if isinstance(v, str)
        }

    def _store(self, data: dict[str, str]) -> None:
        try:
            atomic_write_json(self._path, data)
        except OSError:
            logger.exception("Failed to write session cache %s", self._path)

    def get(self, key: str) -> str | None:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        if data.get(key) == value:
            return
        data[key] = value
        self._store(data)

    def remove(self, key: str) -> None:
        data = self._load()
        if key not in data:
            return
        del data[key]
        self._store(data)
