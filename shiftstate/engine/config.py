"""Configuration loaded from environment variables.

All settings have sensible defaults. Override via SHIFT_* env vars, or
load a YAML file with shiftstate.engine.yaml_config.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_HOME = Path.home() / ".shiftstate"

# Staff id used by the offline PIN login. It has no backend identity,
# so staff-scoped lookups are skipped for it.
LOCAL_SIMPLE_PIN = "local-simple-pin"


def _split_csv(value: str) -> frozenset[str]:
    return frozenset(part.strip() for part in value.split(",") if part.strip())


@dataclass
class SessionConfig:
    """Shift-session engine configuration."""

    # Durable cache file holding staff, activeShift and lastKnownTerminalId.
    cache_path: Path = field(default_factory=lambda: DEFAULT_HOME / "session.json")

    # Max wall-clock time for any single remote lookup or identity-source
    # call. Timeouts count as "not found". Set to 0 (or negative) to disable.
    lookup_timeout_seconds: float = 5.0
    # Upper bound on a terminal-credentials refresh during organization
    # hydration.
    credentials_refresh_timeout_seconds: float = 1.6

    # Staff ids that never have a backend shift record.
    pseudo_session_ids: frozenset[str] = frozenset({LOCAL_SIMPLE_PIN})
    # Display name for staff synthesized from a shift record.
    default_staff_name: str = "Staff"

    # Event bus
    event_queue_size: int = 1000

    # Logging
    log_level: str = "INFO"

    def validate(self) -> None:
        """Reject values the engine cannot run with."""
        if self.event_queue_size < 1:
            raise ConfigError("event_queue_size", "must be >= 1")
        if not self.default_staff_name.strip():
            raise ConfigError("default_staff_name", "must not be blank")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ConfigError("log_level", f"unknown level {self.log_level!r}")

    @classmethod
    def from_env(cls) -> SessionConfig:
        """Load configuration from SHIFT_* environment variables."""
        shift_vars = {
            k: v for k, v in os.environ.items() if k.startswith("SHIFT_")
        }
        if shift_vars:
            logger.info(
                "SessionConfig.from_env: SHIFT_* env overrides: %s",
                ", ".join(sorted(shift_vars)),
            )
        else:
            logger.debug("SessionConfig.from_env: no SHIFT_* env vars set, using defaults")

        defaults = cls()
        pseudo_raw = os.getenv("SHIFT_PSEUDO_SESSION_IDS")
        config = cls(
            cache_path=Path(os.getenv(
                "SHIFT_CACHE_PATH", str(defaults.cache_path)
            )).expanduser(),
            lookup_timeout_seconds=float(os.getenv(
                "SHIFT_LOOKUP_TIMEOUT", str(cls.lookup_timeout_seconds)
            )),
            credentials_refresh_timeout_seconds=float(os.getenv(
                "SHIFT_CREDENTIALS_TIMEOUT",
                str(cls.credentials_refresh_timeout_seconds),
            )),
            pseudo_session_ids=(
                _split_csv(pseudo_raw) if pseudo_raw is not None
                else cls.pseudo_session_ids
            ),
            default_staff_name=os.getenv(
                "SHIFT_DEFAULT_STAFF_NAME", cls.default_staff_name
            ),
            event_queue_size=int(os.getenv(
                "SHIFT_EVENT_QUEUE_SIZE", str(cls.event_queue_size)
            )),
            log_level=os.getenv("SHIFT_LOG_LEVEL", cls.log_level),
        )
        config.validate()
        logger.info(
            "SessionConfig.from_env: cache=%s lookup_timeout=%s log_level=%s",
            config.cache_path, config.lookup_timeout_seconds, config.log_level,
        )
        return config
