from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import InvitationStatus
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import InvitationAccept, InvitationCreate, InvitationResponse

router = APIRouter(prefix="/api/v1/invitations", tags=["invitations"])


@router.get("", response_model=ServiceResult[List[InvitationResponse]])
async def list_invitations(
    status_filter: Optional[InvitationStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """All invitations; accepted ones include the invitee's current profile."""
    return respond(await service.list_invitations(db, current_user, status_filter))


@router.post("", response_model=ServiceResult[InvitationResponse], status_code=status.HTTP_201_CREATED)
async def create_invitation(
    payload: InvitationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await service.create_invitation(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/token/{token}", response_model=ServiceResult[InvitationResponse])
async def get_invitation_by_token(
    token: str,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_invitation_by_token(db, token))


@router.post("/accept", response_model=ServiceResult[InvitationResponse])
async def accept_invitation(
    payload: InvitationAccept,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.accept_invitation(db, current_user, payload.token))


@router.delete("/{invitation_id}", response_model=ServiceResult[None])
async def delete_invitation(
    invitation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await service.delete_invitation(db, current_user, invitation_id))
