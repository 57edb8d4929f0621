"""Read-only history and summary queries over the stock ledger.

Two row predicates are used and they are deliberately different:

* ``visible``: what history screens show; soft-deleted rows are hidden by
  default, reverted rows stay visible (flagged) because they happened.
* ``counted``: what the balance is made of; every non-reverted row, including
  soft-deleted ones (soft delete never compensated them). Summaries use this
  one so an all-time ``net_change`` always matches ``Item.current_stock``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import case, desc, func, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.exceptions import MovementValidationError
from ..core.movement_types import MovementReason, MovementType, coerce_enum
from ..models.movement import StockMovement


@dataclass
class MovementFilters:
    item_id: int | None = None
    movement_type: MovementType | str | None = None
    reason: MovementReason | str | None = None
    performed_by: int | None = None
    start: datetime | None = None
    end: datetime | None = None
    include_deleted: bool = False
    include_reverted: bool = True


@dataclass
class MovementPage:
    items: list[StockMovement]
    total_count: int
    page: int
    page_size: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.page_size) if self.page_size else 0


@dataclass
class StockSummary:
    unit_id: int
    start: datetime | None
    end: datetime | None
    item_id: int | None = None
    total_in: int = 0
    total_out: int = 0
    entries_count: int = 0
    exits_count: int = 0
    entries_value: float = 0.0
    exits_value: float = 0.0
    by_reason: dict[str, int] = field(default_factory=dict)

    @property
    def net_change(self) -> int:
        return self.total_in - self.total_out


def _check_range(start: datetime | None, end: datetime | None, errors: list[str]) -> None:
    if start is not None and end is not None and start > end:
        errors.append("start must not be after end")


def _apply_range(stmt, start: datetime | None, end: datetime | None):
    if start is not None:
        stmt = stmt.where(StockMovement.created_at >= start)
    if end is not None:
        stmt = stmt.where(StockMovement.created_at <= end)
    return stmt


def _filter_conditions(unit_id: int, filters: MovementFilters) -> list:
    errors: list[str] = []
    conditions = [StockMovement.unit_id == unit_id]
    if filters.item_id is not None:
        conditions.append(StockMovement.item_id == filters.item_id)
    if filters.movement_type is not None:
        movement_type = coerce_enum(MovementType, filters.movement_type)
        if movement_type is None:
            errors.append(f"invalid movement_type: {filters.movement_type}")
        else:
            conditions.append(StockMovement.movement_type == movement_type)
    if filters.reason is not None:
        reason = coerce_enum(MovementReason, filters.reason)
        if reason is None:
            errors.append(f"invalid reason: {filters.reason}")
        else:
            conditions.append(StockMovement.reason == reason)
    if filters.performed_by is not None:
        conditions.append(StockMovement.performed_by == filters.performed_by)
    _check_range(filters.start, filters.end, errors)
    if filters.start is not None:
        conditions.append(StockMovement.created_at >= filters.start)
    if filters.end is not None:
        conditions.append(StockMovement.created_at <= filters.end)
    if not filters.include_deleted:
        conditions.append(StockMovement.deleted_at.is_(None))
    if not filters.include_reverted:
        conditions.append(StockMovement.reverted.is_(False))
    if errors:
        raise MovementValidationError(errors)
    return conditions


def list_movements(
    db: Session,
    unit_id: int,
    filters: MovementFilters | None = None,
    page: int = 1,
    page_size: int | None = None,
) -> MovementPage:
    """Return one page of a unit's movements, newest first, plus the total count."""

    page_size = settings.DEFAULT_PAGE_SIZE if page_size is None else page_size
    errors: list[str] = []
    if page < 1:
        errors.append("page must be >= 1")
    if page_size < 1 or page_size > settings.MAX_PAGE_SIZE:
        errors.append(f"page_size must be between 1 and {settings.MAX_PAGE_SIZE}")
    if errors:
        raise MovementValidationError(errors)

    conditions = _filter_conditions(unit_id, filters or MovementFilters())
    total = db.execute(select(func.count(StockMovement.id)).where(*conditions)).scalar_one()
    stmt = (
        select(StockMovement)
        .where(*conditions)
        .order_by(desc(StockMovement.created_at), desc(StockMovement.id))
        .limit(page_size)
        .offset((page - 1) * page_size)
    )
    rows = db.execute(stmt).scalars().all()
    return MovementPage(items=list(rows), total_count=int(total), page=page, page_size=page_size)


def get_item_history(
    db: Session,
    item_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    include_deleted: bool = False,
) -> list[StockMovement]:
    """Every visible movement of one item in the range, newest first."""

    errors: list[str] = []
    _check_range(start, end, errors)
    if errors:
        raise MovementValidationError(errors)
    stmt = select(StockMovement).where(StockMovement.item_id == item_id)
    if not include_deleted:
        stmt = stmt.where(StockMovement.deleted_at.is_(None))
    stmt = _apply_range(stmt, start, end).order_by(desc(StockMovement.created_at), desc(StockMovement.id))
    return list(db.execute(stmt).scalars().all())


def get_summary_by_period(
    db: Session,
    unit_id: int,
    start: datetime | None = None,
    end: datetime | None = None,
    item_id: int | None = None,
) -> StockSummary:
    """Aggregate inflows and outflows for a unit (optionally one item) over a period.

    ``None`` bounds mean "open ended", so no bounds at all is the all-time view.
    """

    errors: list[str] = []
    _check_range(start, end, errors)
    if errors:
        raise MovementValidationError(errors)

    stmt = (
        select(
            StockMovement.movement_type,
            StockMovement.reason,
            func.count(StockMovement.id).label("movements"),
            func.coalesce(func.sum(StockMovement.quantity), 0).label("quantity"),
            func.coalesce(func.sum(StockMovement.quantity * StockMovement.unit_cost), 0).label("value"),
        )
        .where(StockMovement.unit_id == unit_id, StockMovement.reverted.is_(False))
        .group_by(StockMovement.movement_type, StockMovement.reason)
    )
    if item_id is not None:
        stmt = stmt.where(StockMovement.item_id == item_id)
    stmt = _apply_range(stmt, start, end)

    summary = StockSummary(unit_id=unit_id, start=start, end=end, item_id=item_id)
    for row in db.execute(stmt).all():
        quantity = int(row.quantity or 0)
        value = float(row.value or 0)
        reason_key = row.reason.value
        if row.movement_type == MovementType.INFLOW:
            summary.total_in += quantity
            summary.entries_count += int(row.movements)
            summary.entries_value += value
            summary.by_reason[reason_key] = summary.by_reason.get(reason_key, 0) + quantity
        else:
            summary.total_out += quantity
            summary.exits_count += int(row.movements)
            summary.exits_value += value
            summary.by_reason[reason_key] = summary.by_reason.get(reason_key, 0) - quantity
    return summary


def counted_balance(db: Session, item_id: int) -> int:
    """Net quantity of an item's ledger under the balance predicate."""

    signed = case(
        (StockMovement.movement_type == MovementType.INFLOW, StockMovement.quantity),
        else_=-StockMovement.quantity,
    )
    stmt = select(func.coalesce(func.sum(signed), 0)).where(
        StockMovement.item_id == item_id,
        StockMovement.reverted.is_(False),
    )
    return int(db.execute(stmt).scalar_one())
