from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.schemas import ActingUser
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import SmallGroupCreate, SmallGroupResponse, SmallGroupUpdate

router = APIRouter(prefix="/api/v1/small-groups", tags=["small-groups"])


@router.get("", response_model=ServiceResult[List[SmallGroupResponse]])
async def list_small_groups(
    site_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Small groups visible to the current user, optionally filtered by site."""
    return respond(await service.list_small_groups(db, current_user, site_id=site_id))


@router.post("", response_model=ServiceResult[SmallGroupResponse], status_code=status.HTTP_201_CREATED)
async def create_small_group(
    payload: SmallGroupCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.create_small_group(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/{small_group_id}", response_model=ServiceResult[SmallGroupResponse])
async def get_small_group(
    small_group_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_small_group(db, current_user, small_group_id))


@router.put("/{small_group_id}", response_model=ServiceResult[SmallGroupResponse])
async def update_small_group(
    small_group_id: UUID,
    payload: SmallGroupUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.update_small_group(db, current_user, small_group_id, payload))


@router.delete("/{small_group_id}", response_model=ServiceResult[None])
async def delete_small_group(
    small_group_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.delete_small_group(db, current_user, small_group_id))
