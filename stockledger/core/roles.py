"""Staff roles, ledger operations and the capability table joining them."""

from __future__ import annotations

import enum


class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    BARBER = "BARBER"
    RECEPTIONIST = "RECEPTIONIST"


class Operation(str, enum.Enum):
    RECORD_INFLOW = "RECORD_INFLOW"
    RECORD_OUTFLOW = "RECORD_OUTFLOW"
    ADJUST = "ADJUST"
    REVERT = "REVERT"
    SOFT_DELETE = "SOFT_DELETE"
    EDIT_NOTES = "EDIT_NOTES"
    READ_HISTORY = "READ_HISTORY"
    MANAGE_ITEMS = "MANAGE_ITEMS"


# Day-to-day stock duties. ADJUST and REVERT rewrite history and MANAGE_ITEMS
# changes the catalogue; those stay with managers.
STOCK_DUTY_OPERATIONS = frozenset(
    {
        Operation.RECORD_INFLOW,
        Operation.RECORD_OUTFLOW,
        Operation.EDIT_NOTES,
        Operation.READ_HISTORY,
        Operation.SOFT_DELETE,
    }
)

MANAGERIAL_OPERATIONS = frozenset(Operation)

CAPABILITIES: dict[Role, frozenset[Operation]] = {
    Role.ADMIN: MANAGERIAL_OPERATIONS,
    Role.MANAGER: MANAGERIAL_OPERATIONS,
    Role.BARBER: STOCK_DUTY_OPERATIONS,
    Role.RECEPTIONIST: frozenset(),
}


def normalize_role(value: str | Role | None) -> Role | None:
    """Map a stored role value onto :class:`Role`, or ``None`` when unknown."""

    if isinstance(value, Role):
        return value
    if not value:
        return None
    try:
        return Role(value.strip().upper())
    except ValueError:
        return None


def role_allows(role: Role | None, operation: Operation) -> bool:
    if role is None:
        return False
    return operation in CAPABILITIES.get(role, frozenset())


__all__ = [
    "CAPABILITIES",
    "MANAGERIAL_OPERATIONS",
    "Operation",
    "Role",
    "STOCK_DUTY_OPERATIONS",
    "normalize_role",
    "role_allows",
]
