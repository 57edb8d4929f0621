"""Item store helpers.

Items are created and listed here, but ``current_stock`` is never written by
this module: stock only changes through ``services.reconciler``.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.clock import Clock, utcnow
from ..db.transaction import ledger_transaction
from ..models.item import Item


def list_items(db: Session, unit_id: int, limit: int = 100, offset: int = 0) -> list[Item]:
    """Return one unit's items ordered by name."""

    stmt = (
        select(Item)
        .where(Item.unit_id == unit_id)
        .order_by(Item.name, Item.id)
        .limit(limit)
        .offset(offset)
    )
    return db.execute(stmt).scalars().all()


def get_item(db: Session, item_id: int) -> Item | None:
    return db.get(Item, item_id)


def create_item(db: Session, payload: dict, *, clock: Clock = utcnow) -> Item:
    """Create an item with an empty balance.

    Raises ``ValueError`` for a missing field or an ``sku`` already used in
    the unit, including when a concurrent insert wins the race.
    """

    name = (payload.get("name") or "").strip()
    if not name:
        raise ValueError("name is required")
    unit_id = payload.get("unit_id")
    if unit_id is None:
        raise ValueError("unit_id is required")
    sku = (payload.get("sku") or "").strip() or None

    with ledger_transaction(db, "create_item"):
        if sku:
            clash = db.execute(
                select(Item.id).where(Item.unit_id == unit_id, Item.sku == sku)
            ).scalars().first()
            if clash:
                raise ValueError(f"sku {sku!r} already exists in unit {unit_id}")

        now = clock()
        # Opening stock is recorded as an inflow, never written here.
        item = Item(unit_id=unit_id, name=name, sku=sku, current_stock=0, created_at=now, updated_at=now)
        db.add(item)
        try:
            db.flush()
        except IntegrityError as exc:
            raise ValueError(f"sku {sku!r} already exists in unit {unit_id}") from exc

    db.refresh(item)
    return item
