"""Structural and business validation of a proposed ledger entry."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from numbers import Number

from ..core.exceptions import MovementValidationError
from ..core.movement_types import (
    REASONS_BY_TYPE,
    MovementReason,
    MovementType,
    ReferenceType,
    coerce_enum,
)
from ..models.item import Item


@dataclass
class MovementCandidate:
    """A ledger entry before it is accepted. Fields hold raw caller input."""

    item_id: object
    unit_id: object
    movement_type: object
    reason: object
    quantity: object
    performed_by: object
    unit_cost: object = 0
    notes: str | None = None
    reference_id: str | None = None
    reference_type: object = None


def _is_number(value: object) -> bool:
    return isinstance(value, (Number, Decimal)) and not isinstance(value, bool)


def validate_movement(candidate: MovementCandidate, item: Item | None) -> list[str]:
    """Return every violated rule; an empty list means the candidate is valid.

    ``item`` is the row behind ``candidate.item_id`` (``None`` if it does not exist).
    """

    errors: list[str] = []

    if candidate.item_id is None:
        errors.append("item_id is required")
    elif item is None:
        errors.append(f"item {candidate.item_id} does not exist")
    if candidate.unit_id is None:
        errors.append("unit_id is required")
    elif item is not None and item.unit_id != candidate.unit_id:
        errors.append(f"item {item.id} does not belong to unit {candidate.unit_id}")
    if candidate.performed_by is None:
        errors.append("performed_by is required")

    movement_type = coerce_enum(MovementType, candidate.movement_type)
    if movement_type is None:
        errors.append(f"movement_type must be INFLOW or OUTFLOW (got {candidate.movement_type!r})")
    reason = coerce_enum(MovementReason, candidate.reason)
    if reason is None:
        allowed = ", ".join(member.value for member in MovementReason)
        errors.append(f"reason must be one of {allowed} (got {candidate.reason!r})")
    if movement_type is not None and reason is not None and reason not in REASONS_BY_TYPE[movement_type]:
        errors.append(f"reason {reason.value} is not valid for {movement_type.value}")

    quantity = candidate.quantity
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        errors.append("quantity must be a positive integer")

    if not _is_number(candidate.unit_cost):
        errors.append("unit_cost must be a number")
    elif candidate.unit_cost < 0:
        errors.append("unit_cost must be greater than or equal to 0")

    if reason == MovementReason.ADJUSTMENT and not (candidate.notes or "").strip():
        errors.append("notes are required for adjustments")

    if (candidate.reference_id or "").strip():
        if coerce_enum(ReferenceType, candidate.reference_type) is None:
            allowed = ", ".join(member.value for member in ReferenceType)
            errors.append(f"reference_type must be one of {allowed} when reference_id is given")
    elif candidate.reference_type is not None:
        errors.append("reference_id is required when reference_type is given")

    return errors


def ensure_valid(candidate: MovementCandidate, item: Item | None) -> None:
    errors = validate_movement(candidate, item)
    if errors:
        raise MovementValidationError(errors)
