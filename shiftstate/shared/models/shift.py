"""Active shift record as returned by the shift authority."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from shiftstate.engine.models import ShiftStatus

_KNOWN_FIELDS = (
    "id",
    "staff_id",
    "branch_id",
    "terminal_id",
    "organization_id",
    "role_type",
    "status",
)


@dataclass(frozen=True)
class ActiveShift:
    """A work session for one staff member on one terminal.

    Only ``status == active`` makes a shift current. Fields the authority
    sends beyond the ones used for reconciliation (check-in time, opening
    cash...) are kept in ``extra`` and written back unchanged.
    """

    id: str
    staff_id: str
    branch_id: str | None = None
    terminal_id: str | None = None
    organization_id: str | None = None
    role_type: str | None = None
    status: ShiftStatus = ShiftStatus.ACTIVE
    extra: dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def is_active(self) -> bool:
        return self.status is ShiftStatus.ACTIVE

    def to_dict(self) -> dict[str, Any]:
        data = dict(self.extra)
        data.update({
            "id": self.id,
            "staff_id": self.staff_id,
            "branch_id": self.branch_id,
            "terminal_id": self.terminal_id,
            "organization_id": self.organization_id,
            "role_type": self.role_type,
            "status": self.status.value,
        })
        return data

    @classmethod
    def from_dict(cls, data: Any) -> ActiveShift | None:
        """Parse an authority/cache record. Returns None for anything unusable."""
        if not isinstance(data, dict):
            return None
        shift_id = data.get("id")
        staff_id = data.get("staff_id")
        if shift_id is None or staff_id is None:
            return None
        return cls(
            id=str(shift_id),
            staff_id=str(staff_id),
            branch_id=data.get("branch_id"),
            terminal_id=data.get("terminal_id"),
            organization_id=data.get("organization_id"),
            role_type=data.get("role_type"),
            status=ShiftStatus.parse(data.get("status")),
            extra={k: v for k, v in data.items() if k not in _KNOWN_FIELDS},
        )
