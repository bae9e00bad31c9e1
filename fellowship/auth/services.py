"""
Profile resolution and administration.

resolve_profile is read-only and runs on every request. sync_profile is the only place a Profile is
created from an identity; it also applies a pending invitation for the same email.
"""

import logging
from datetime import date
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.models import Profile
from fellowship.auth.schemas import (
    ActingUser,
    IdentityClaims,
    ProfileResponse,
    ProfileSelfUpdate,
    UserAssignmentUpdate,
)
from fellowship.core.enums import InvitationStatus, ProfileStatus, UserRole
from fellowship.core.exceptions import ErrorCode, ForbiddenError, NotFoundError, ServiceError, ValidationFailed
from fellowship.core.models import Invitation, Site, SmallGroup
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware, utcnow

logger = logging.getLogger(__name__)


def _normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else None


def to_acting_user(profile: Profile) -> ActingUser:
    return ActingUser(
        id=profile.id,
        email=profile.email,
        name=profile.name or "",
        role=UserRole(profile.role),
        status=ProfileStatus(profile.status),
        site_id=profile.site_id,
        small_group_id=profile.small_group_id,
        is_provisional=False,
    )


def _to_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        email=profile.email,
        name=profile.name or "",
        role=UserRole(profile.role),
        status=ProfileStatus(profile.status),
        site_id=profile.site_id,
        small_group_id=profile.small_group_id,
        mandate_start_date=profile.mandate_start_date,
        mandate_end_date=profile.mandate_end_date,
        created_at=as_aware(profile.created_at),
        updated_at=as_aware(profile.updated_at),
    )


def check_mandate(start: Optional[date], end: Optional[date]) -> None:
    if start and end and end < start:
        raise ValidationFailed("mandate_end_date must be on or after mandate_start_date")


async def resolve_assignment(
    db: AsyncSession,
    role: UserRole,
    site_id: Optional[UUID],
    small_group_id: Optional[UUID],
) -> Tuple[Optional[UUID], Optional[UUID]]:
    """
    Apply role exclusivity to a (site, small group) assignment.
    national: neither. site coordinator: site only. leader/member: the group's site is inferred when omitted.
    """
    if role == UserRole.NATIONAL_COORDINATOR:
        return None, None
    if role == UserRole.SITE_COORDINATOR:
        small_group_id = None
    if site_id is not None and await db.get(Site, site_id) is None:
        raise NotFoundError("Site not found")
    if small_group_id is not None:
        group = await db.get(SmallGroup, small_group_id)
        if group is None:
            raise NotFoundError("Small group not found")
        if site_id is None:
            site_id = group.site_id
        elif group.site_id != site_id:
            raise ValidationFailed("Small group does not belong to the given site")
    return site_id, small_group_id


def _assignment(profile: Profile) -> dict:
    return {
        "role": profile.role,
        "site_id": str(profile.site_id) if profile.site_id else None,
        "small_group_id": str(profile.small_group_id) if profile.small_group_id else None,
    }


async def assign_unit_holder(
    db: AsyncSession,
    actor: ActingUser,
    profile_id: str,
    role: UserRole,
    site_id: UUID,
    small_group_id: Optional[UUID] = None,
) -> Profile:
    """
    Make a profile the coordinator of a site or the leader of a small group. Caller must commit.

    The profile takes the role the post implies and any other post it held is vacated. Only national
    coordinators may pick someone who already coordinates or belongs to another site.
    """
    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    if not actor.is_national:
        movable = profile.role in (UserRole.MEMBER.value, UserRole.SMALL_GROUP_LEADER.value)
        if not movable or profile.site_id not in (None, site_id):
            raise ForbiddenError("Only national coordinators can reassign this profile")

    before = _assignment(profile)
    site_id, small_group_id = await resolve_assignment(db, role, site_id, small_group_id)
    kept_site = site_id if role == UserRole.SITE_COORDINATOR else None
    kept_group = small_group_id if role == UserRole.SMALL_GROUP_LEADER else None
    await db.execute(
        update(Site).where(Site.coordinator_id == profile.id, Site.id != kept_site).values(coordinator_id=None)
    )
    await db.execute(
        update(SmallGroup)
        .where(SmallGroup.leader_id == profile.id, SmallGroup.id != kept_group)
        .values(leader_id=None)
    )
    profile.role = role.value
    profile.site_id = site_id
    profile.small_group_id = small_group_id
    log_audit(
        db, actor.id, "update_assignment", "profile", profile.id, {"before": before, "after": _assignment(profile)}
    )
    return profile


async def release_unit_holder(
    db: AsyncSession,
    actor: ActingUser,
    profile_id: str,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
) -> None:
    """Detach a former coordinator (site_id) or leader (small_group_id) from the post. Caller must commit."""
    profile = await db.get(Profile, profile_id)
    if profile is None:
        return
    before = _assignment(profile)
    if small_group_id is not None:
        if profile.small_group_id != small_group_id:
            return
        profile.small_group_id = None
    elif site_id is not None and profile.role == UserRole.SITE_COORDINATOR.value and profile.site_id == site_id:
        profile.site_id = None
    else:
        return
    log_audit(
        db, actor.id, "update_assignment", "profile", profile.id, {"before": before, "after": _assignment(profile)}
    )


def apply_invitation(profile: Profile, invitation: Invitation) -> None:
    """Copy the invited role/assignment/mandate onto the profile and mark the invitation accepted."""
    profile.role = invitation.role
    profile.site_id = invitation.site_id
    profile.small_group_id = invitation.small_group_id
    profile.mandate_start_date = invitation.mandate_start_date
    profile.mandate_end_date = invitation.mandate_end_date
    if profile.status == ProfileStatus.invited.value:
        profile.status = ProfileStatus.active.value
    invitation.status = InvitationStatus.accepted.value
    invitation.accepted_at = utcnow()


async def get_or_create_profile(db: AsyncSession, claims: IdentityClaims) -> Profile:
    """Load the profile for this identity, creating it on first sight. Refreshes email/name. Caller must commit."""
    email = _normalize_email(claims.email)
    profile = await db.get(Profile, claims.sub)
    if profile is None:
        profile = Profile(
            id=claims.sub,
            email=email,
            name=claims.name or (email.split("@")[0] if email else ""),
            role=UserRole.MEMBER.value,
            status=ProfileStatus.active.value,
        )
        db.add(profile)
        logger.info("Created profile for identity %s", claims.sub)
        return profile
    if email and profile.email != email:
        profile.email = email
    if claims.name and not profile.name:
        profile.name = claims.name
    return profile


@service_result
async def resolve_profile(db: AsyncSession, claims: IdentityClaims) -> ActingUser:
    """
    Map an identity to the acting user. Read-only.
    Unknown identities get a provisional member context instead of an error.
    """
    profile = await db.get(Profile, claims.sub)
    if profile is None:
        return ActingUser(
            id=claims.sub,
            email=_normalize_email(claims.email),
            name=claims.name or "",
            role=UserRole.MEMBER,
            status=ProfileStatus.active,
            is_provisional=True,
        )
    if profile.status == ProfileStatus.inactive.value:
        raise ServiceError("User is inactive", ErrorCode.UNAUTHORIZED)
    return to_acting_user(profile)


@service_result
async def sync_profile(db: AsyncSession, claims: IdentityClaims) -> ProfileResponse:
    """Get-or-create the caller's profile and apply a pending, unexpired invitation for their email."""
    profile = await get_or_create_profile(db, claims)
    if profile.status == ProfileStatus.inactive.value:
        raise ServiceError("User is inactive", ErrorCode.UNAUTHORIZED)

    if profile.email:
        result = await db.execute(
            select(Invitation).where(
                Invitation.email == profile.email,
                Invitation.status == InvitationStatus.pending.value,
            )
        )
        invitation = result.scalar_one_or_none()
        if invitation is not None:
            if as_aware(invitation.expires_at) < utcnow():
                invitation.status = InvitationStatus.expired.value
                logger.info("Invitation %s expired before first login", invitation.id)
            else:
                apply_invitation(profile, invitation)
                log_audit(
                    db,
                    profile.id,
                    "accept",
                    "invitation",
                    invitation.id,
                    {"role": invitation.role, "via": "profile_sync"},
                )
                logger.info("Applied invitation %s to profile %s", invitation.id, profile.id)

    await db.commit()
    await db.refresh(profile)
    return _to_response(profile)


@service_result
async def update_own_profile(
    db: AsyncSession,
    user: ActingUser,
    payload: ProfileSelfUpdate,
) -> ProfileResponse:
    """Self-service edits. Role and assignment fields are not part of the payload and cannot change here."""
    profile = await get_or_create_profile(
        db, IdentityClaims(sub=user.id, email=user.email, name=user.name or None)
    )
    data = payload.model_dump(exclude_unset=True)
    check_mandate(
        data.get("mandate_start_date", profile.mandate_start_date),
        data.get("mandate_end_date", profile.mandate_end_date),
    )
    for key, value in data.items():
        if key == "name" and value is None:
            continue
        setattr(profile, key, value)
    await db.commit()
    await db.refresh(profile)
    return _to_response(profile)


@service_result
async def list_users(
    db: AsyncSession,
    user: ActingUser,
    *,
    role: Optional[UserRole] = None,
    status: Optional[ProfileStatus] = None,
    site_id: Optional[UUID] = None,
) -> List[ProfileResponse]:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can list users")
    stmt = select(Profile)
    if role:
        stmt = stmt.where(Profile.role == role.value)
    if status:
        stmt = stmt.where(Profile.status == status.value)
    if site_id:
        stmt = stmt.where(Profile.site_id == site_id)
    result = await db.execute(stmt.order_by(Profile.name))
    return [_to_response(p) for p in result.scalars().all()]


@service_result
async def get_user(db: AsyncSession, user: ActingUser, user_id: str) -> ProfileResponse:
    """Self, national coordinators, or the site coordinator of the user's site."""
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("User not found")
    allowed = (
        user.is_national
        or user.id == profile.id
        or (
            user.role == UserRole.SITE_COORDINATOR
            and user.site_id is not None
            and profile.site_id == user.site_id
        )
    )
    if not allowed:
        raise ForbiddenError()
    return _to_response(profile)


@service_result
async def update_user_assignment(
    db: AsyncSession,
    user: ActingUser,
    user_id: str,
    payload: UserAssignmentUpdate,
) -> ProfileResponse:
    """Change role, status, site/group and mandate of a user. National coordinators only; audited."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can change user assignments")
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("User not found")

    data = payload.model_dump(exclude_unset=True)
    before = {
        "role": profile.role,
        "status": profile.status,
        "site_id": str(profile.site_id) if profile.site_id else None,
        "small_group_id": str(profile.small_group_id) if profile.small_group_id else None,
    }

    role = data["role"] if data.get("role") else UserRole(profile.role)
    site_id = data["site_id"] if "site_id" in data else profile.site_id
    small_group_id = data["small_group_id"] if "small_group_id" in data else profile.small_group_id
    site_id, small_group_id = await resolve_assignment(db, role, site_id, small_group_id)
    check_mandate(
        data.get("mandate_start_date", profile.mandate_start_date),
        data.get("mandate_end_date", profile.mandate_end_date),
    )

    profile.role = role.value
    profile.site_id = site_id
    profile.small_group_id = small_group_id
    if data.get("status"):
        profile.status = data["status"].value
    if "mandate_start_date" in data:
        profile.mandate_start_date = data["mandate_start_date"]
    if "mandate_end_date" in data:
        profile.mandate_end_date = data["mandate_end_date"]

    after = {
        "role": profile.role,
        "status": profile.status,
        "site_id": str(site_id) if site_id else None,
        "small_group_id": str(small_group_id) if small_group_id else None,
    }
    log_audit(db, user.id, "update_assignment", "profile", profile.id, {"before": before, "after": after})
    await db.commit()
    await db.refresh(profile)
    logger.info("Profile %s assignment changed by %s: %s -> %s", profile.id, user.id, before, after)
    return _to_response(profile)


@service_result
async def deactivate_user(db: AsyncSession, user: ActingUser, user_id: str) -> ProfileResponse:
    """Users are never deleted; they are marked inactive and can no longer authenticate."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can deactivate users")
    if user_id == user.id:
        raise ValidationFailed("You cannot deactivate your own account")
    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("User not found")
    if profile.status != ProfileStatus.inactive.value:
        log_audit(db, user.id, "deactivate", "profile", profile.id, {"previous_status": profile.status})
        profile.status = ProfileStatus.inactive.value
        await db.commit()
        await db.refresh(profile)
    return _to_response(profile)
