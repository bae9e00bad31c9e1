from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.schemas import ActingUser
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import InventoryItemCreate, InventoryItemResponse, InventoryMovementCreate, InventoryMovementResponse

router = APIRouter(prefix="/api/v1/inventory", tags=["inventory"])


@router.get("", response_model=ServiceResult[List[InventoryItemResponse]])
async def list_items(
    category: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Visible items with their current stock."""
    return respond(await service.list_items(db, current_user, category))


@router.post("", response_model=ServiceResult[InventoryItemResponse], status_code=status.HTTP_201_CREATED)
async def create_item(
    payload: InventoryItemCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.create_item(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/{item_id}", response_model=ServiceResult[InventoryItemResponse])
async def get_item(
    item_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_item(db, current_user, item_id))


@router.get("/{item_id}/movements", response_model=ServiceResult[List[InventoryMovementResponse]])
async def list_movements(
    item_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.list_movements(db, current_user, item_id))


@router.post(
    "/{item_id}/movements",
    response_model=ServiceResult[InventoryMovementResponse],
    status_code=status.HTTP_201_CREATED,
)
async def record_movement(
    item_id: UUID,
    payload: InventoryMovementCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Record stock coming in or going out. Outgoing quantities cannot exceed the current stock."""
    return respond(await service.record_movement(db, current_user, item_id, payload), status.HTTP_201_CREATED)
