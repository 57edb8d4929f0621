"""Shared stock movement enums and helpers."""

from __future__ import annotations

import enum


class MovementType(str, enum.Enum):
    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class MovementReason(str, enum.Enum):
    PURCHASE = "PURCHASE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"
    SALE = "SALE"
    INTERNAL_CONSUMPTION = "INTERNAL_CONSUMPTION"
    CLEANING_SUPPLIES = "CLEANING_SUPPLIES"


class ReferenceType(str, enum.Enum):
    PURCHASE = "PURCHASE"
    REVENUE = "REVENUE"
    SERVICE = "SERVICE"


# ADJUSTMENT is the only reason valid in both directions; its sign comes from the delta.
REASONS_BY_TYPE: dict[MovementType, frozenset[MovementReason]] = {
    MovementType.INFLOW: frozenset(
        {MovementReason.PURCHASE, MovementReason.RETURN, MovementReason.ADJUSTMENT}
    ),
    MovementType.OUTFLOW: frozenset(
        {
            MovementReason.SALE,
            MovementReason.INTERNAL_CONSUMPTION,
            MovementReason.CLEANING_SUPPLIES,
            MovementReason.ADJUSTMENT,
        }
    ),
}


def coerce_enum(enum_cls: type[enum.Enum], value: object):
    """Return ``value`` as a member of ``enum_cls`` or ``None`` if it is not one.

    Strings are matched case-insensitively after trimming.
    """

    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            return None
    return None


def signed_quantity(movement_type: MovementType, quantity: int) -> int:
    """Effect of a movement on ``current_stock``."""

    return quantity if movement_type == MovementType.INFLOW else -quantity


__all__ = [
    "MovementReason",
    "MovementType",
    "REASONS_BY_TYPE",
    "ReferenceType",
    "coerce_enum",
    "signed_quantity",
]
