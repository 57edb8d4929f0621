"""Balance reconciler: the only code path that changes ``Item.current_stock``.

Every mutation follows the same shape:

1. authorize the actor (``services.authorization``) with a plain read, before
   the write transaction opens
2. inside one write transaction, validate the candidate row (``services.validation``)
3. move the balance with one of two primitives:

   * :func:`credit`: unconditional ``current_stock = current_stock + n``
   * :func:`conditional_debit`: ``current_stock = current_stock - n``
     guarded by ``WHERE current_stock >= n``; zero matched rows means there
     was not enough stock, and that row count is the only stock check we trust

4. write the ledger row (or flip ``reverted``) and commit

Check and decrement are one UPDATE statement, so two concurrent outflows
cannot both pass against a stale read. The guarantee comes from the database,
which means it holds across processes and machines; there is no in-process lock.
"""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.exceptions import AlreadyReverted, InsufficientStock, MovementValidationError, NotFound
from ..core.logging import log_event
from ..core.movement_types import MovementReason, MovementType, ReferenceType, coerce_enum
from ..core.roles import Operation
from ..crud.staff import ActorDirectory, SqlActorDirectory
from ..db.transaction import ledger_transaction
from ..models.item import Item
from ..models.movement import StockMovement
from .authorization import require
from .validation import MovementCandidate, validate_movement

logger = logging.getLogger(__name__)


def credit(db: Session, item_id: int, quantity: int, now) -> None:
    """Atomically add ``quantity`` to the item's balance."""

    db.execute(
        update(Item)
        .where(Item.id == item_id)
        .values(current_stock=Item.current_stock + quantity, updated_at=now)
        .execution_options(synchronize_session=False)
    )


def conditional_debit(db: Session, item_id: int, quantity: int, now) -> None:
    """Atomically subtract ``quantity`` if, and only if, the balance covers it."""

    result = db.execute(
        update(Item)
        .where(Item.id == item_id, Item.current_stock >= quantity)
        .values(current_stock=Item.current_stock - quantity, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # Informational only; the decision was already made by the UPDATE.
        available = db.execute(select(Item.current_stock).where(Item.id == item_id)).scalar_one_or_none()
        raise InsufficientStock(item_id=item_id, available=available or 0, requested=quantity)


def _record(
    db: Session,
    *,
    operation: Operation,
    item_id: int,
    unit_id: int | None,
    movement_type: MovementType,
    reason: object,
    quantity: object,
    unit_cost: object,
    actor_id: int | None,
    notes: str | None,
    reference_id: str | None,
    reference_type: object,
    directory: ActorDirectory | None,
    clock: Clock,
    extra_errors: list[str] | None = None,
) -> StockMovement:
    require(directory or SqlActorDirectory(db), actor_id, operation)
    with ledger_transaction(db, operation.value):
        item = db.get(Item, item_id) if item_id is not None else None
        if item_id is not None and item is None:
            raise NotFound("Item", item_id)
        candidate = MovementCandidate(
            item_id=item_id,
            unit_id=unit_id if unit_id is not None else (item.unit_id if item else None),
            movement_type=movement_type,
            reason=reason,
            quantity=quantity,
            performed_by=actor_id,
            unit_cost=unit_cost,
            notes=notes,
            reference_id=reference_id,
            reference_type=reference_type,
        )
        errors = list(extra_errors or []) + validate_movement(candidate, item)
        if errors:
            raise MovementValidationError(errors)

        now = clock()
        if movement_type == MovementType.INFLOW:
            credit(db, item.id, quantity, now)
        else:
            conditional_debit(db, item.id, quantity, now)

        movement = StockMovement(
            unit_id=candidate.unit_id,
            item_id=item.id,
            movement_type=movement_type,
            reason=coerce_enum(MovementReason, reason),
            quantity=quantity,
            unit_cost=float(unit_cost) if movement_type == MovementType.INFLOW else 0.0,
            performed_by=actor_id,
            reference_id=(reference_id or "").strip() or None,
            reference_type=coerce_enum(ReferenceType, reference_type),
            notes=(notes or "").strip() or None,
            created_at=now,
            updated_at=now,
        )
        db.add(movement)

    db.refresh(movement)
    log_event(
        logger,
        "stock.movement.recorded",
        movement_id=movement.id,
        item_id=movement.item_id,
        unit_id=movement.unit_id,
        movement_type=movement.movement_type.value,
        reason=movement.reason.value,
        quantity=movement.quantity,
        actor_id=actor_id,
    )
    return movement


def _log_rejection(exc: InsufficientStock, operation: Operation, actor_id: int | None) -> None:
    log_event(
        logger,
        "stock.debit.rejected",
        logging.WARNING,
        operation=operation.value,
        actor_id=actor_id,
        **exc.details(),
    )


def record_inflow(
    db: Session,
    *,
    item_id: int,
    quantity: int,
    reason: MovementReason | str,
    unit_cost: float,
    actor_id: int | None,
    unit_id: int | None = None,
    notes: str | None = None,
    reference_id: str | None = None,
    reference_type: ReferenceType | str | None = None,
    directory: ActorDirectory | None = None,
    clock: Clock = utcnow,
) -> StockMovement:
    """Record stock entering the unit. Always increments the balance."""

    return _record(
        db,
        operation=Operation.RECORD_INFLOW,
        item_id=item_id,
        unit_id=unit_id,
        movement_type=MovementType.INFLOW,
        reason=reason,
        quantity=quantity,
        unit_cost=unit_cost,
        actor_id=actor_id,
        notes=notes,
        reference_id=reference_id,
        reference_type=reference_type,
        directory=directory,
        clock=clock,
    )


def record_outflow(
    db: Session,
    *,
    item_id: int,
    quantity: int,
    reason: MovementReason | str,
    actor_id: int | None,
    unit_id: int | None = None,
    notes: str | None = None,
    reference_id: str | None = None,
    reference_type: ReferenceType | str | None = None,
    directory: ActorDirectory | None = None,
    clock: Clock = utcnow,
) -> StockMovement:
    """Record stock leaving the unit.

    Raises :class:`InsufficientStock` (nothing is written) when the balance
    does not cover ``quantity`` at the moment of the update.
    """

    try:
        return _record(
            db,
            operation=Operation.RECORD_OUTFLOW,
            item_id=item_id,
            unit_id=unit_id,
            movement_type=MovementType.OUTFLOW,
            reason=reason,
            quantity=quantity,
            unit_cost=0,
            actor_id=actor_id,
            notes=notes,
            reference_id=reference_id,
            reference_type=reference_type,
            directory=directory,
            clock=clock,
        )
    except InsufficientStock as exc:
        _log_rejection(exc, Operation.RECORD_OUTFLOW, actor_id)
        raise


def adjust_stock(
    db: Session,
    *,
    item_id: int,
    delta: int,
    actor_id: int | None,
    notes: str | None,
    unit_id: int | None = None,
    directory: ActorDirectory | None = None,
    clock: Clock = utcnow,
) -> StockMovement:
    """Correct the balance by a signed ``delta`` (manager-only).

    A positive delta becomes an ADJUSTMENT inflow and a negative one an
    ADJUSTMENT outflow, subject to the same availability check as a sale.
    """

    extra_errors: list[str] = []
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        extra_errors.append("delta must be a non-zero integer")
        movement_type, quantity = MovementType.INFLOW, 1
    else:
        movement_type = MovementType.INFLOW if delta > 0 else MovementType.OUTFLOW
        quantity = abs(delta)

    try:
        return _record(
            db,
            operation=Operation.ADJUST,
            item_id=item_id,
            unit_id=unit_id,
            movement_type=movement_type,
            reason=MovementReason.ADJUSTMENT,
            quantity=quantity,
            unit_cost=0,
            actor_id=actor_id,
            notes=notes,
            reference_id=None,
            reference_type=None,
            directory=directory,
            clock=clock,
            extra_errors=extra_errors,
        )
    except InsufficientStock as exc:
        _log_rejection(exc, Operation.ADJUST, actor_id)
        raise


def revert_movement(
    db: Session,
    *,
    movement_id: int,
    actor_id: int | None,
    directory: ActorDirectory | None = None,
    clock: Clock = utcnow,
) -> StockMovement:
    """Compensate exactly one movement and mark it reverted (manager-only).

    The flag flip is a conditional UPDATE in the same transaction as the
    compensating balance change, so a second call (concurrent or not) raises
    :class:`AlreadyReverted` and leaves the balance alone. Reverting an inflow
    whose units were already consumed raises :class:`InsufficientStock`.

    Soft-deleted rows can still be reverted: soft delete never removed their
    effect from the balance.
    """

    require(directory or SqlActorDirectory(db), actor_id, Operation.REVERT)
    try:
        with ledger_transaction(db, Operation.REVERT.value):
            movement = db.get(StockMovement, movement_id)
            if movement is None:
                raise NotFound("Movement", movement_id)

            now = clock()
            flipped = db.execute(
                update(StockMovement)
                .where(StockMovement.id == movement_id, StockMovement.reverted.is_(False))
                .values(reverted=True, reverted_at=now, reverted_by=actor_id, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if flipped.rowcount != 1:
                raise AlreadyReverted(movement_id)

            if movement.movement_type == MovementType.INFLOW:
                conditional_debit(db, movement.item_id, movement.quantity, now)
            else:
                credit(db, movement.item_id, movement.quantity, now)
    except InsufficientStock as exc:
        _log_rejection(exc, Operation.REVERT, actor_id)
        raise

    db.refresh(movement)
    log_event(
        logger,
        "stock.movement.reverted",
        movement_id=movement.id,
        item_id=movement.item_id,
        movement_type=movement.movement_type.value,
        quantity=movement.quantity,
        actor_id=actor_id,
    )
    return movement
