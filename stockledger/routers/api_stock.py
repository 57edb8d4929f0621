from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..core.exceptions import NotFound
from ..core.movement_types import MovementReason, MovementType
from ..core.roles import Operation
from ..crud.items import create_item, get_item, list_items
from ..crud.movements import edit_notes, soft_delete
from ..crud.staff import SqlActorDirectory
from ..db.session import get_db
from ..deps.auth import current_actor_id, require_api_key
from ..schemas.stock import (
    AdjustRequest,
    BalanceAuditOut,
    InflowRequest,
    ItemCreate,
    ItemOut,
    MovementOut,
    MovementPageOut,
    NotesUpdate,
    OutflowRequest,
    StockSummaryOut,
)
from ..services.audit import audit_item_balance
from ..services.authorization import require
from ..services.history import MovementFilters, get_item_history, get_summary_by_period, list_movements
from ..services.reconciler import adjust_stock, record_inflow, record_outflow, revert_movement

router = APIRouter(prefix="/api/v1/stock", tags=["stock"], dependencies=[Depends(require_api_key)])


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _require_reader(db: Session, actor_id: int | None) -> None:
    require(SqlActorDirectory(db), actor_id, Operation.READ_HISTORY)


def _item_or_404(db: Session, item_id: int):
    item = get_item(db, item_id)
    if not item:
        raise NotFound("Item", item_id)
    return item


@router.post("/items", response_model=ItemOut, status_code=201)
def api_create_item(
    payload: ItemCreate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    require(SqlActorDirectory(db), actor_id, Operation.MANAGE_ITEMS)
    try:
        return create_item(db, payload.model_dump())
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.get("/items", response_model=list[ItemOut])
def api_list_items(
    unit_id: int,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    _require_reader(db, actor_id)
    return list_items(db, unit_id, limit=limit, offset=offset)


@router.get("/items/{item_id}", response_model=ItemOut)
def api_get_item(item_id: int, db: Session = Depends(get_db), actor_id: int | None = Depends(current_actor_id)):
    _require_reader(db, actor_id)
    return _item_or_404(db, item_id)


@router.get("/items/{item_id}/history", response_model=list[MovementOut])
def api_item_history(
    item_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    include_deleted: bool = False,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    _require_reader(db, actor_id)
    _item_or_404(db, item_id)
    return get_item_history(db, item_id, _naive_utc(start), _naive_utc(end), include_deleted=include_deleted)


@router.get("/items/{item_id}/audit", response_model=BalanceAuditOut)
def api_item_audit(item_id: int, db: Session = Depends(get_db), actor_id: int | None = Depends(current_actor_id)):
    _require_reader(db, actor_id)
    return audit_item_balance(db, item_id)


@router.post("/inflow", response_model=MovementOut, status_code=201)
def api_record_inflow(
    payload: InflowRequest,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    return record_inflow(db, actor_id=actor_id, **payload.model_dump())


@router.post("/outflow", response_model=MovementOut, status_code=201)
def api_record_outflow(
    payload: OutflowRequest,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    return record_outflow(db, actor_id=actor_id, **payload.model_dump())


@router.post("/adjust", response_model=MovementOut, status_code=201)
def api_adjust_stock(
    payload: AdjustRequest,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    return adjust_stock(db, actor_id=actor_id, **payload.model_dump())


@router.post("/movements/{movement_id}/revert", response_model=MovementOut)
def api_revert_movement(
    movement_id: int,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    return revert_movement(db, movement_id=movement_id, actor_id=actor_id)


@router.patch("/movements/{movement_id}", response_model=MovementOut)
def api_edit_notes(
    movement_id: int,
    payload: NotesUpdate,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    return edit_notes(db, movement_id=movement_id, notes=payload.notes, actor_id=actor_id)


@router.delete(
    "/movements/{movement_id}",
    response_model=MovementOut,
    description=(
        "Hide a movement from default history. This does NOT change the item's "
        "stock; use the revert endpoint to compensate a movement."
    ),
)
def api_soft_delete(
    movement_id: int,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    return soft_delete(db, movement_id=movement_id, actor_id=actor_id)


@router.get("/movements", response_model=MovementPageOut)
def api_list_movements(
    unit_id: int,
    item_id: Optional[int] = None,
    movement_type: Optional[MovementType] = None,
    reason: Optional[MovementReason] = None,
    performed_by: Optional[int] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    include_deleted: bool = False,
    include_reverted: bool = True,
    page: int = 1,
    page_size: Optional[int] = None,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    _require_reader(db, actor_id)
    filters = MovementFilters(
        item_id=item_id,
        movement_type=movement_type,
        reason=reason,
        performed_by=performed_by,
        start=_naive_utc(start),
        end=_naive_utc(end),
        include_deleted=include_deleted,
        include_reverted=include_reverted,
    )
    result = list_movements(db, unit_id, filters, page=page, page_size=page_size)
    return MovementPageOut(
        items=[MovementOut.model_validate(row) for row in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
        total_pages=result.total_pages,
    )


@router.get("/summary", response_model=StockSummaryOut)
def api_summary(
    unit_id: int,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    item_id: Optional[int] = None,
    db: Session = Depends(get_db),
    actor_id: int | None = Depends(current_actor_id),
):
    _require_reader(db, actor_id)
    return get_summary_by_period(db, unit_id, _naive_utc(start), _naive_utc(end), item_id=item_id)
