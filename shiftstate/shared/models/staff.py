"""Staff record: the operator currently logged in on this terminal."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True)
class Staff:
    """Logged-in operator as held by the shift session.

    Persisted with camelCase keys (``staffId``, ``branchId``...) so the
    record stays readable by other clients sharing the same cache.
    """

    staff_id: str
    name: str = "Staff"
    role: str = "staff"
    branch_id: str | None = None
    terminal_id: str | None = None
    organization_id: str | None = None

    def with_organization(self, organization_id: str) -> Staff:
        return replace(self, organization_id=organization_id)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "staffId": self.staff_id,
            "name": self.name,
            "role": self.role,
            "branchId": self.branch_id,
            "terminalId": self.terminal_id,
        }
        if self.organization_id:
            data["organizationId"] = self.organization_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Staff | None:
        """Build from a persisted dict. Returns None when no staff id is present."""
        if not isinstance(data, dict):
            return None
        staff_id = data.get("staffId") or data.get("staff_id")
        if not staff_id:
            return None
        return cls(
            staff_id=str(staff_id),
            name=str(data.get("name") or data.get("staffName") or "Staff"),
            role=str(data.get("role") or "staff"),
            branch_id=data.get("branchId") or data.get("branch_id"),
            terminal_id=data.get("terminalId") or data.get("terminal_id"),
            organization_id=data.get("organizationId") or data.get("organization_id"),
        )
