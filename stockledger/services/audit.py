"""Balance audit and repair.

Normal operation never recomputes ``current_stock`` from scratch; these helpers
exist to detect and repair drift (for example after a manual database edit).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..core.exceptions import MovementValidationError, NotFound
from ..core.logging import log_event
from ..db.transaction import ledger_transaction
from ..models.item import Item
from .history import counted_balance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceAudit:
    item_id: int
    materialized: int
    ledger: int

    @property
    def drift(self) -> int:
        return self.materialized - self.ledger

    @property
    def consistent(self) -> bool:
        return self.drift == 0


def audit_item_balance(db: Session, item_id: int) -> BalanceAudit:
    item = db.get(Item, item_id)
    if item is None:
        raise NotFound("Item", item_id)
    return BalanceAudit(item_id=item.id, materialized=int(item.current_stock), ledger=counted_balance(db, item.id))


def audit_unit_balances(db: Session, unit_id: int) -> list[BalanceAudit]:
    """Return the items of ``unit_id`` whose balance drifted from their ledger."""

    item_ids = db.execute(select(Item.id).where(Item.unit_id == unit_id).order_by(Item.id)).scalars().all()
    drifted = []
    for item_id in item_ids:
        result = audit_item_balance(db, item_id)
        if not result.consistent:
            log_event(
                logger,
                "stock.audit.drift",
                logging.WARNING,
                item_id=item_id,
                materialized=result.materialized,
                ledger=result.ledger,
            )
            drifted.append(result)
    return drifted


def recompute_item_balance(db: Session, item_id: int, *, clock: Clock = utcnow) -> BalanceAudit:
    """Overwrite ``current_stock`` with the ledger total. Repair tool only."""

    with ledger_transaction(db, "recompute_balance"):
        before = audit_item_balance(db, item_id)
        if before.ledger < 0:
            raise MovementValidationError(
                [f"ledger for item {item_id} sums to {before.ledger}; refusing to store a negative balance"]
            )
        if not before.consistent:
            db.execute(
                update(Item)
                .where(Item.id == item_id)
                .values(current_stock=before.ledger, updated_at=clock())
                .execution_options(synchronize_session=False)
            )

    if not before.consistent:
        log_event(
            logger,
            "stock.audit.repaired",
            logging.WARNING,
            item_id=item_id,
            materialized=before.materialized,
            ledger=before.ledger,
        )
    return audit_item_balance(db, item_id)
