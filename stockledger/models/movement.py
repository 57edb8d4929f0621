"""SQLAlchemy model for the stock ledger."""

from __future__ import annotations

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import relationship

from ..core.clock import utcnow
from ..core.movement_types import MovementReason, MovementType, ReferenceType, signed_quantity
from ..db.session import Base


class StockMovement(Base):
    """One stock-affecting event.

    ``quantity`` is always positive; the direction lives in ``movement_type``.
    Rows are never physically deleted. ``reverted`` marks a compensated row
    (its effect was removed from ``Item.current_stock``) while ``deleted_at``
    only hides the row from default listings and leaves the balance untouched.
    """

    __tablename__ = "stock_movements"

    id = Column(Integer, primary_key=True, index=True)
    unit_id = Column(Integer, nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("items.id"), nullable=False, index=True)
    movement_type = Column(
        Enum(MovementType, name="movement_type", native_enum=False, length=16),
        nullable=False,
    )
    reason = Column(
        Enum(MovementReason, name="movement_reason", native_enum=False, length=32),
        nullable=False,
    )
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(Float, nullable=False, default=0.0)
    performed_by = Column(Integer, ForeignKey("staff.id"), nullable=False, index=True)
    reference_id = Column(Text, nullable=True)
    reference_type = Column(
        Enum(ReferenceType, name="movement_reference_type", native_enum=False, length=16),
        nullable=True,
    )
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=utcnow)

    reverted = Column(Boolean, nullable=False, default=False)
    reverted_at = Column(DateTime, nullable=True)
    reverted_by = Column(Integer, ForeignKey("staff.id"), nullable=True)

    deleted_at = Column(DateTime, nullable=True)
    deleted_by = Column(Integer, ForeignKey("staff.id"), nullable=True)

    item = relationship("Item", lazy="joined")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        CheckConstraint("unit_cost >= 0", name="ck_stock_movements_unit_cost_non_negative"),
        Index("ix_stock_movements_unit_created", "unit_id", "created_at"),
        Index("ix_stock_movements_item_created", "item_id", "created_at"),
    )

    @property
    def total_cost(self) -> float:
        return (self.quantity or 0) * (self.unit_cost or 0.0)

    @property
    def signed_quantity(self) -> int:
        return signed_quantity(self.movement_type, self.quantity)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def item_name(self) -> str | None:
        return self.item.name if self.item else None

    def __repr__(self) -> str:
        return (
            f"<StockMovement {self.id}: {self.movement_type.value} {self.quantity} "
            f"of item {self.item_id} ({self.reason.value})>"
        )


__all__ = ["StockMovement"]
