from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import Level
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import MemberCreate, MemberResponse, MemberUpdate

router = APIRouter(prefix="/api/v1/members", tags=["members"])


@router.get("", response_model=ServiceResult[List[MemberResponse]])
async def list_members(
    include_archived: bool = False,
    level: Optional[Level] = None,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(
        await service.list_members(
            db,
            current_user,
            include_archived=include_archived,
            level=level,
            site_id=site_id,
            small_group_id=small_group_id,
            search=search,
        )
    )


@router.post("", response_model=ServiceResult[MemberResponse], status_code=status.HTTP_201_CREATED)
async def create_member(
    payload: MemberCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Register a member. Non-national callers are pinned to their own site or small group."""
    return respond(await service.create_member(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/{member_id}", response_model=ServiceResult[MemberResponse])
async def get_member(
    member_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_member(db, current_user, member_id))


@router.put("/{member_id}", response_model=ServiceResult[MemberResponse])
async def update_member(
    member_id: UUID,
    payload: MemberUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.update_member(db, current_user, member_id, payload))


@router.post("/{member_id}/archive", response_model=ServiceResult[MemberResponse])
async def archive_member(
    member_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Archive a member. Members are never deleted."""
    return respond(await service.archive_member(db, current_user, member_id))
