"""Exception hierarchy for the shift-session engine.

Remote and identity failures are raised at the seams (HTTP client, lookup
wrapper) and converted by the reconciler into "step failed, try the next
fallback". Only InvalidTransitionError and ConfigError reach callers.
"""
from __future__ import annotations


class ShiftSessionError(Exception):
    """Base exception for all shift-session errors."""


class RemoteLookupError(ShiftSessionError):
    """A shift-authority call failed (transport, HTTP status or payload)."""
    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"Shift lookup '{operation}' failed: {reason}")


class LookupTimeoutError(RemoteLookupError):
    """A shift-authority or identity call exceeded its time budget."""
    def __init__(self, operation: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(operation, f"timed out after {timeout_seconds}s")


class OrganizationConflictError(ShiftSessionError):
    """A restored shift belongs to a different organization than the terminal."""
    def __init__(self, expected: str, found: str, shift_id: str):
        self.expected = expected
        self.found = found
        self.shift_id = shift_id
        super().__init__(
            f"Shift {shift_id} belongs to organization {found}, "
            f"terminal is bound to {expected}"
        )


class InvalidTransitionError(ShiftSessionError, ValueError):
    """Illegal session state transition."""


class ConfigError(ShiftSessionError):
    """Invalid configuration value."""
    def __init__(self, key: str, reason: str):
        self.key = key
        self.reason = reason
        super().__init__(f"Invalid config '{key}': {reason}")
