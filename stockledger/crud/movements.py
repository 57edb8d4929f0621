"""Ledger store: lookups and metadata-only changes to stock movements.

Nothing here touches ``Item.current_stock``. In particular :func:`soft_delete`
hides a row from default listings **without** compensating the balance; the
effect of a soft-deleted movement stays in ``current_stock`` until someone
calls ``services.reconciler.revert_movement`` on it. Do not "fix" a soft
delete by also adjusting stock, or the row ends up compensated twice once it
is reverted.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.exceptions import MovementValidationError, NotFound
from ..core.logging import log_event
from ..core.movement_types import MovementReason
from ..core.roles import Operation
from ..crud.staff import ActorDirectory, SqlActorDirectory
from ..db.transaction import ledger_transaction
from ..models.movement import StockMovement
from ..services.authorization import require

logger = logging.getLogger(__name__)


def get_movement(db: Session, movement_id: int, include_deleted: bool = False) -> StockMovement | None:
    stmt = select(StockMovement).where(StockMovement.id == movement_id)
    if not include_deleted:
        stmt = stmt.where(StockMovement.deleted_at.is_(None))
    return db.execute(stmt).scalars().first()


def edit_notes(
    db: Session,
    *,
    movement_id: int,
    notes: str | None,
    actor_id: int | None,
    directory: ActorDirectory | None = None,
    clock: Clock = utcnow,
) -> StockMovement:
    """Replace a movement's notes. No balance effect."""

    require(directory or SqlActorDirectory(db), actor_id, Operation.EDIT_NOTES)
    with ledger_transaction(db, Operation.EDIT_NOTES.value):
        movement = get_movement(db, movement_id)
        if movement is None:
            raise NotFound("Movement", movement_id)
        if notes is not None and not isinstance(notes, str):
            raise MovementValidationError(["notes must be a string"])
        cleaned = (notes or "").strip() or None
        if cleaned is None and movement.reason == MovementReason.ADJUSTMENT:
            raise MovementValidationError(["notes are required for adjustments"])
        movement.notes = cleaned
        movement.updated_at = clock()

    db.refresh(movement)
    log_event(logger, "stock.movement.notes_edited", movement_id=movement.id, actor_id=actor_id)
    return movement


def soft_delete(
    db: Session,
    *,
    movement_id: int,
    actor_id: int | None,
    directory: ActorDirectory | None = None,
    clock: Clock = utcnow,
) -> StockMovement:
    """Hide a movement from default history. The balance is NOT compensated."""

    require(directory or SqlActorDirectory(db), actor_id, Operation.SOFT_DELETE)
    with ledger_transaction(db, Operation.SOFT_DELETE.value):
        movement = get_movement(db, movement_id)
        if movement is None:
            raise NotFound("Movement", movement_id)
        now = clock()
        movement.deleted_at = now
        movement.deleted_by = actor_id
        movement.updated_at = now

    db.refresh(movement)
    log_event(
        logger,
        "stock.movement.soft_deleted",
        movement_id=movement.id,
        item_id=movement.item_id,
        reverted=bool(movement.reverted),
        actor_id=actor_id,
    )
    return movement
