from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth import services
from fellowship.auth.dependencies import get_current_user, get_identity_claims
from fellowship.auth.schemas import ActingUser, IdentityClaims, ProfileResponse, ProfileSelfUpdate
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.get("/me", response_model=ServiceResult[ProfileResponse])
async def me(
    claims: IdentityClaims = Depends(get_identity_claims),
    db: AsyncSession = Depends(get_db),
):
    """Sync the caller's profile from the identity token (created on first login) and return it."""
    return respond(await services.sync_profile(db, claims))


@router.patch("/me", response_model=ServiceResult[ProfileResponse])
async def update_me(
    payload: ProfileSelfUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Update own name and mandate dates."""
    return respond(await services.update_own_profile(db, current_user, payload))
