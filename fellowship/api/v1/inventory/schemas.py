import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fellowship.core.enums import MovementDirection


class InventoryItemCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    category: str = Field(..., min_length=1, max_length=100)
    unit: str = Field("unit", min_length=1, max_length=30)
    description: Optional[str] = None
    site_id: Optional[UUID] = Field(None, description="Omit for national stock")
    small_group_id: Optional[UUID] = None


class InventoryItemResponse(BaseModel):
    id: UUID
    name: str
    category: str
    unit: str
    description: Optional[str] = None
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    created_by_id: Optional[str] = None
    created_at: dt.datetime
    current_stock: int = 0


class InventoryMovementCreate(BaseModel):
    direction: MovementDirection
    quantity: int = Field(..., gt=0)
    date: dt.date
    reason: str = Field(..., min_length=1, max_length=255)
    related_transaction_id: Optional[UUID] = None
    related_report_id: Optional[UUID] = None


class InventoryMovementResponse(BaseModel):
    id: UUID
    item_id: UUID
    direction: MovementDirection
    quantity: int
    date: dt.date
    reason: str
    related_transaction_id: Optional[UUID] = None
    related_report_id: Optional[UUID] = None
    recorded_by_id: Optional[str] = None
    created_at: dt.datetime
    stock_after: int

    class Config:
        from_attributes = True
