from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.schemas import ActingUser
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import SiteCreate, SiteResponse, SiteUpdate

router = APIRouter(prefix="/api/v1/sites", tags=["sites"])


@router.get("", response_model=ServiceResult[List[SiteResponse]])
async def list_sites(
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Sites visible to the current user, with small group and member counts."""
    return respond(await service.list_sites(db, current_user))


@router.post("", response_model=ServiceResult[SiteResponse], status_code=status.HTTP_201_CREATED)
async def create_site(
    payload: SiteCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Create a site. National coordinators only."""
    return respond(await service.create_site(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/{site_id}", response_model=ServiceResult[SiteResponse])
async def get_site(
    site_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_site(db, current_user, site_id))


@router.put("/{site_id}", response_model=ServiceResult[SiteResponse])
async def update_site(
    site_id: UUID,
    payload: SiteUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.update_site(db, current_user, site_id, payload))


@router.delete("/{site_id}", response_model=ServiceResult[None])
async def delete_site(
    site_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Tombstone a site. National coordinators only."""
    return respond(await service.delete_site(db, current_user, site_id))
