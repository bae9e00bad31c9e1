from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth import services
from fellowship.auth.dependencies import get_current_user
from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser, ProfileResponse, UserAssignmentUpdate
from fellowship.core.enums import ProfileStatus, UserRole
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("", response_model=ServiceResult[List[ProfileResponse]])
async def list_users(
    role: Optional[UserRole] = None,
    status: Optional[ProfileStatus] = None,
    site_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """List users. National coordinators only."""
    return respond(await services.list_users(db, current_user, role=role, status=status, site_id=site_id))


@router.get("/{user_id}", response_model=ServiceResult[ProfileResponse])
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await services.get_user(db, current_user, user_id))


@router.patch("/{user_id}", response_model=ServiceResult[ProfileResponse])
async def update_user_assignment(
    user_id: str,
    payload: UserAssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Change role, status, site, small group or mandate dates of a user."""
    return respond(await services.update_user_assignment(db, current_user, user_id, payload))


@router.post("/{user_id}/deactivate", response_model=ServiceResult[ProfileResponse])
async def deactivate_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Mark a user inactive. Users are never deleted."""
    return respond(await services.deactivate_user(db, current_user, user_id))
