"""Shift-session engine: staff/shift reconciliation for a POS terminal."""
from .models import (
    FailurePolicy,
    ReconcileResult,
    RestoreOutcome,
    SessionState,
    SessionView,
    ShiftStatus,
    TerminalIdentity,
    Trigger,
)
from .config import SessionConfig
from .lifecycle import VALID_TRANSITIONS, validate_transition
from .errors import (
    ConfigError,
    InvalidTransitionError,
    LookupTimeoutError,
    OrganizationConflictError,
    RemoteLookupError,
    ShiftSessionError,
)

__all__ = [
    # Session store (lazy import to avoid circular deps)
    "ShiftSession",
    # Models
    "FailurePolicy",
    "ReconcileResult",
    "RestoreOutcome",
    "SessionState",
    "SessionView",
    "ShiftStatus",
    "TerminalIdentity",
    "Trigger",
    # Config
    "SessionConfig",
    "VALID_TRANSITIONS",
    "validate_transition",
    # YAML config (lazy import)
    "ShiftStateConfig",
    "load_yaml_config",
    # Authority (lazy import)
    "ShiftAuthority",
    "ConfigService",
    "normalize",
    # Errors
    "ConfigError",
    "InvalidTransitionError",
    "LookupTimeoutError",
    "OrganizationConflictError",
    "RemoteLookupError",
    "ShiftSessionError",
]


def __getattr__(name: str):
    if name == "ShiftSession":
        from .session import ShiftSession
        return ShiftSession
    if name == "ShiftStateConfig":
        from .yaml_config import ShiftStateConfig
        return ShiftStateConfig
    if name == "load_yaml_config":
        from .yaml_config import load_yaml_config
        return load_yaml_config
    if name == "ShiftAuthority":
        from .authority import ShiftAuthority
        return ShiftAuthority
    if name == "ConfigService":
        from .identity import ConfigService
        return ConfigService
    if name == "normalize":
        from .normalize import normalize
        return normalize
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
