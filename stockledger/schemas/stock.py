from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..core.movement_types import MovementReason, MovementType, ReferenceType


class ItemCreate(BaseModel):
    unit_id: int
    name: str = Field(min_length=1)
    sku: Optional[str] = None


class ItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_id: int
    name: str
    sku: Optional[str] = None
    current_stock: int
    created_at: datetime
    updated_at: datetime


class InflowRequest(BaseModel):
    item_id: int
    unit_id: Optional[int] = None
    quantity: int
    reason: MovementReason = MovementReason.PURCHASE
    unit_cost: float = 0.0
    notes: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[ReferenceType] = None


class OutflowRequest(BaseModel):
    item_id: int
    unit_id: Optional[int] = None
    quantity: int
    reason: MovementReason = MovementReason.SALE
    notes: Optional[str] = None
    reference_id: Optional[str] = None
    reference_type: Optional[ReferenceType] = None


class AdjustRequest(BaseModel):
    item_id: int
    unit_id: Optional[int] = None
    delta: int
    notes: str

    model_config = ConfigDict(
        json_schema_extra={"example": {"item_id": 1, "delta": -3, "notes": "breakage"}}
    )


class NotesUpdate(BaseModel):
    notes: Optional[str] = None


class MovementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    unit_id: int
    item_id: int
    item_name: Optional[str] = None
    movement_type: MovementType
    reason: MovementReason
    quantity: int
    signed_quantity: int
    unit_cost: float
    total_cost: float
    performed_by: int
    reference_id: Optional[str] = None
    reference_type: Optional[ReferenceType] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    reverted: bool
    reverted_at: Optional[datetime] = None
    reverted_by: Optional[int] = None
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[int] = None


class MovementPageOut(BaseModel):
    items: list[MovementOut]
    total_count: int
    page: int
    page_size: int
    total_pages: int


class StockSummaryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    unit_id: int
    item_id: Optional[int] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None
    total_in: int
    total_out: int
    net_change: int
    entries_count: int
    exits_count: int
    entries_value: float
    exits_value: float
    by_reason: dict[str, int] = Field(default_factory=dict)


class BalanceAuditOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    item_id: int
    materialized: int
    ledger: int
    drift: int
    consistent: bool
