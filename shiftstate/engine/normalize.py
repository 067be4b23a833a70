"""Identity value normalization.

Provisioning leaves placeholder strings ("default-branch", "default-org"...)
in settings and login records. They must read as absent, never as real
identifiers.
"""
from __future__ import annotations

PLACEHOLDER_VALUES = frozenset({
    "",
    "default-branch",
    "default-terminal",
    "default-organization",
    "default-org",
})


def normalize(value: object, kind: str | None = None) -> str | None:
    """Return the trimmed identifier, or None for blanks and placeholders.

    ``kind="branch"`` additionally treats a bare ``"default"`` as absent.
    Idempotent: ``normalize(normalize(x)) == normalize(x)``.
    """
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    lowered = trimmed.lower()
    if lowered in PLACEHOLDER_VALUES:
        return None
    if kind == "branch" and lowered == "default":
        return None
    return trimmed
