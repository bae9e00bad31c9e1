"""
Invitations bind an email to a role and assignment until the invitee signs in.
Tokens are random and single-use; an expired invitation is marked so on first read.
"""

import logging
import secrets
from datetime import timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.api.v1.notifications.service import notify_national_coordinators
from fellowship.auth.models import Profile
from fellowship.auth.schemas import ActingUser, IdentityClaims
from fellowship.auth.services import apply_invitation, check_mandate, get_or_create_profile, resolve_assignment
from fellowship.core.config import settings
from fellowship.core.enums import InvitationStatus, NotificationType, ProfileStatus, UserRole
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.models import Invitation
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware, utcnow

from .schemas import InvitationCreate, InvitationResponse, InvitedProfile

logger = logging.getLogger(__name__)


def _new_token() -> str:
    return secrets.token_urlsafe(32)


def _to_response(
    invitation: Invitation, profile: Optional[Profile] = None, include_token: bool = False
) -> InvitationResponse:
    live = None
    if profile is not None:
        live = InvitedProfile(
            id=profile.id,
            name=profile.name or "",
            role=UserRole(profile.role),
            status=ProfileStatus(profile.status),
            site_id=profile.site_id,
            small_group_id=profile.small_group_id,
        )
    return InvitationResponse(
        id=invitation.id,
        email=invitation.email,
        role=UserRole(invitation.role),
        site_id=invitation.site_id,
        small_group_id=invitation.small_group_id,
        mandate_start_date=invitation.mandate_start_date,
        mandate_end_date=invitation.mandate_end_date,
        status=InvitationStatus(invitation.status),
        invited_by_id=invitation.invited_by_id,
        accepted_at=as_aware(invitation.accepted_at),
        expires_at=as_aware(invitation.expires_at),
        created_at=as_aware(invitation.created_at),
        token=invitation.token if include_token else None,
        profile=live,
    )


def _is_expired(invitation: Invitation) -> bool:
    return as_aware(invitation.expires_at) < utcnow()


def _require_national(user: ActingUser) -> None:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can manage invitations")


@service_result
async def create_invitation(db: AsyncSession, user: ActingUser, payload: InvitationCreate) -> InvitationResponse:
    """Invite an email, or refresh the existing invitation for it (new token, fields and expiry)."""
    _require_national(user)
    email = payload.email.strip().lower()
    site_id, small_group_id = await resolve_assignment(db, payload.role, payload.site_id, payload.small_group_id)
    check_mandate(payload.mandate_start_date, payload.mandate_end_date)

    result = await db.execute(select(Invitation).where(Invitation.email == email))
    invitation = result.scalar_one_or_none()
    refreshed = invitation is not None
    if invitation is None:
        invitation = Invitation(email=email)
        db.add(invitation)
    invitation.token = _new_token()
    invitation.role = payload.role.value
    invitation.site_id = site_id
    invitation.small_group_id = small_group_id
    invitation.mandate_start_date = payload.mandate_start_date
    invitation.mandate_end_date = payload.mandate_end_date
    invitation.status = InvitationStatus.pending.value
    invitation.accepted_at = None
    invitation.invited_by_id = user.id
    invitation.expires_at = utcnow() + timedelta(days=settings.invitation_ttl_days)
    await db.flush()

    log_audit(
        db,
        user.id,
        "update" if refreshed else "create",
        "invitation",
        invitation.id,
        {"email": email, "role": invitation.role},
    )
    await notify_national_coordinators(
        db,
        NotificationType.USER_INVITED,
        "User invited",
        f"{email} was invited as {payload.role.value.replace('_', ' ')}.",
        link="/dashboard/users",
        details={"invitation_id": str(invitation.id), "email": email},
        exclude_user_id=user.id,
    )
    await db.commit()
    await db.refresh(invitation)
    logger.info("Invitation %s %s for %s by %s", invitation.id, "refreshed" if refreshed else "created", email, user.id)
    return _to_response(invitation, include_token=True)


async def _pending_by_token(db: AsyncSession, token: str) -> Invitation:
    result = await db.execute(select(Invitation).where(Invitation.token == token))
    invitation = result.scalar_one_or_none()
    if invitation is None:
        raise NotFoundError("Invitation not found")
    if invitation.status == InvitationStatus.accepted.value:
        raise ConflictError("Invitation has already been accepted")
    if invitation.status == InvitationStatus.expired.value:
        raise ValidationFailed("Invitation has expired")
    if _is_expired(invitation):
        invitation.status = InvitationStatus.expired.value
        # Keep the expiry even though the caller gets an error
        await db.commit()
        logger.info("Invitation %s marked expired", invitation.id)
        raise ValidationFailed("Invitation has expired")
    return invitation


@service_result
async def get_invitation_by_token(db: AsyncSession, token: str) -> InvitationResponse:
    invitation = await _pending_by_token(db, token)
    return _to_response(invitation)


@service_result
async def accept_invitation(db: AsyncSession, user: ActingUser, token: str) -> InvitationResponse:
    """The invitation email must match the signed-in identity. Creates the profile if it does not exist yet."""
    invitation = await _pending_by_token(db, token)
    if not user.email or user.email.strip().lower() != invitation.email:
        raise ForbiddenError("This invitation was issued for a different email address")

    profile = await get_or_create_profile(
        db, IdentityClaims(sub=user.id, email=user.email, name=user.name or None)
    )
    apply_invitation(profile, invitation)
    await db.flush()
    log_audit(db, profile.id, "accept", "invitation", invitation.id, {"role": invitation.role, "via": "token"})
    await db.commit()
    await db.refresh(invitation)
    await db.refresh(profile)
    logger.info("Invitation %s accepted by %s", invitation.id, profile.id)
    return _to_response(invitation, profile)


@service_result
async def list_invitations(
    db: AsyncSession, user: ActingUser, status: Optional[InvitationStatus] = None
) -> List[InvitationResponse]:
    """Accepted invitations carry the invitee's current profile, not the values at acceptance."""
    _require_national(user)
    stmt = select(Invitation)
    if status:
        stmt = stmt.where(Invitation.status == status.value)
    invitations = (await db.execute(stmt.order_by(Invitation.created_at.desc()))).scalars().all()

    accepted_emails = {i.email for i in invitations if i.status == InvitationStatus.accepted.value}
    profiles = {}
    if accepted_emails:
        rows = await db.execute(select(Profile).where(Profile.email.in_(accepted_emails)))
        profiles = {p.email: p for p in rows.scalars().all()}
    return [
        _to_response(i, profiles.get(i.email) if i.status == InvitationStatus.accepted.value else None)
        for i in invitations
    ]


@service_result
async def delete_invitation(db: AsyncSession, user: ActingUser, invitation_id: UUID) -> None:
    _require_national(user)
    invitation = await db.get(Invitation, invitation_id)
    if invitation is None:
        raise NotFoundError("Invitation not found")
    log_audit(db, user.id, "delete", "invitation", invitation.id, {"email": invitation.email, "status": invitation.status})
    await db.delete(invitation)
    await db.commit()
