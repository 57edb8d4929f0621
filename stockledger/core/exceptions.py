"""Domain errors raised by the stock ledger.

Every error derives from :class:`LedgerError` so the HTTP layer can translate
them with a single exception handler (see ``core/errors.py``).
"""

from __future__ import annotations

from typing import Any, Iterable


class LedgerError(Exception):
    code = "ledger_error"
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def details(self) -> dict[str, Any] | None:
        return None


class MovementValidationError(LedgerError):
    """One or more validation rules failed. All of them are reported together."""

    code = "validation_error"

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("Invalid data: " + ", ".join(self.errors))

    def details(self) -> dict[str, Any]:
        return {"errors": self.errors}


class Unauthorized(LedgerError):
    code = "permission_denied"

    def __init__(self, message: str = "Permission denied") -> None:
        super().__init__(message)


class ActorUnavailable(LedgerError):
    """The actor directory could not answer. The gate treats this as a denial."""

    code = "actor_unavailable"


class NotFound(LedgerError):
    code = "not_found"

    def __init__(self, entity: str, entity_id: object) -> None:
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class InsufficientStock(LedgerError):
    code = "insufficient_stock"

    def __init__(self, item_id: int, available: int, requested: int) -> None:
        self.item_id = item_id
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock for item {item_id}: available {available}, "
            f"requested {requested}, short by {self.shortfall}"
        )

    @property
    def shortfall(self) -> int:
        return max(self.requested - self.available, 0)

    def details(self) -> dict[str, Any]:
        return {
            "item_id": self.item_id,
            "available": self.available,
            "requested": self.requested,
            "shortfall": self.shortfall,
        }


class AlreadyReverted(LedgerError):
    code = "already_reverted"

    def __init__(self, movement_id: int) -> None:
        super().__init__(f"Movement {movement_id} has already been reverted")
        self.movement_id = movement_id


class PersistenceFailure(LedgerError):
    """The transaction was aborted by the database. Safe to retry."""

    code = "persistence_failure"
    retryable = True

    def details(self) -> dict[str, Any]:
        return {"retryable": True}


__all__ = [
    "ActorUnavailable",
    "AlreadyReverted",
    "InsufficientStock",
    "LedgerError",
    "MovementValidationError",
    "NotFound",
    "PersistenceFailure",
    "Unauthorized",
]
