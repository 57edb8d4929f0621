"""SQLAlchemy model for stock-tracked items."""

from __future__ import annotations

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, Text, UniqueConstraint

from ..core.clock import utcnow
from ..db.session import Base


class Item(Base):
    """A stock-tracked product owned by one business unit.

    ``current_stock`` is a materialized balance of the item's ledger. Only the
    balance reconciler (and the explicit repair tool) may write it.
    """

    __tablename__ = "items"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, nullable=False, index=True)
    name = Column(Text, nullable=False)
    sku = Column(Text, nullable=True)
    current_stock = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        CheckConstraint("current_stock >= 0", name="ck_items_current_stock_non_negative"),
        UniqueConstraint("unit_id", "sku", name="uq_items_unit_sku"),
    )

    def __repr__(self) -> str:
        return f"<Item {self.id} unit={self.unit_id} stock={self.current_stock}>"


__all__ = ["Item"]
