"""Members are participant records. They are archived, never deleted."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import can_manage_record, scope
from fellowship.core.enums import Level, RecordStatus, ScopedResource, UserRole
from fellowship.core.exceptions import ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.level_scope import resolve_level_scope
from fellowship.core.models import Member, Profile
from fellowship.core.result import service_result

from .schemas import MemberCreate, MemberResponse, MemberUpdate

logger = logging.getLogger(__name__)


async def _get_member(db: AsyncSession, member_id: UUID) -> Member:
    member = await db.get(Member, member_id)
    if member is None or member.record_status == RecordStatus.deleted.value:
        raise NotFoundError("Member not found")
    return member


@service_result
async def create_member(db: AsyncSession, user: ActingUser, payload: MemberCreate) -> MemberResponse:
    if user.role == UserRole.MEMBER:
        raise ForbiddenError("Members cannot register other members")
    site_id, small_group_id = await resolve_level_scope(
        db, user, payload.level, payload.site_id, payload.small_group_id, entity="member"
    )
    if payload.user_id is not None and await db.get(Profile, payload.user_id) is None:
        raise NotFoundError("Linked profile not found")

    member = Member(
        user_id=payload.user_id,
        name=payload.name.strip(),
        gender=payload.gender.value,
        type=payload.type.value,
        join_date=payload.join_date,
        phone=payload.phone,
        email=payload.email,
        level=payload.level.value,
        site_id=site_id,
        small_group_id=small_group_id,
        record_status=RecordStatus.active.value,
    )
    db.add(member)
    await db.flush()
    log_audit(db, user.id, "create", "member", member.id, {"level": member.level})
    await db.commit()
    await db.refresh(member)
    return MemberResponse.model_validate(member)


@service_result
async def list_members(
    db: AsyncSession,
    user: ActingUser,
    *,
    include_archived: bool = False,
    level: Optional[Level] = None,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    search: Optional[str] = None,
) -> List[MemberResponse]:
    """Row-scoped member list. Archived members are hidden unless include_archived is set."""
    visible = [RecordStatus.active.value]
    if include_archived:
        visible.append(RecordStatus.archived.value)
    conditions = [scope(user, ScopedResource.member), Member.record_status.in_(visible)]
    if level:
        conditions.append(Member.level == level.value)
    if site_id:
        conditions.append(Member.site_id == site_id)
    if small_group_id:
        conditions.append(Member.small_group_id == small_group_id)
    if search and search.strip():
        conditions.append(Member.name.ilike(f"%{search.strip()}%"))
    result = await db.execute(select(Member).where(and_(*conditions)).order_by(Member.name))
    return [MemberResponse.model_validate(m) for m in result.scalars().all()]


@service_result
async def get_member(db: AsyncSession, user: ActingUser, member_id: UUID) -> MemberResponse:
    member = await _get_member(db, member_id)
    if not (can_manage_record(user, member.site_id, member.small_group_id) or member.user_id == user.id):
        raise ForbiddenError()
    return MemberResponse.model_validate(member)


@service_result
async def update_member(
    db: AsyncSession, user: ActingUser, member_id: UUID, payload: MemberUpdate
) -> MemberResponse:
    member = await _get_member(db, member_id)
    if not can_manage_record(user, member.site_id, member.small_group_id):
        raise ForbiddenError("You can only update members of your own site or small group")
    if member.record_status == RecordStatus.archived.value:
        raise ValidationFailed("Archived members cannot be edited")

    data = payload.model_dump(exclude_unset=True)
    if {"level", "site_id", "small_group_id"} & data.keys():
        level = data.get("level") or Level(member.level)
        member.site_id, member.small_group_id = await resolve_level_scope(
            db,
            user,
            level,
            data.get("site_id", member.site_id),
            data.get("small_group_id", member.small_group_id),
            entity="member",
        )
        member.level = level.value
    for key in ("name", "gender", "type", "join_date", "phone", "email"):
        if key not in data:
            continue
        value = data[key]
        if key in ("name", "gender", "type", "join_date") and value is None:
            continue
        setattr(member, key, value.value if key in ("gender", "type") else value)
    log_audit(db, user.id, "update", "member", member.id, {"fields": sorted(data)})
    await db.commit()
    await db.refresh(member)
    return MemberResponse.model_validate(member)


@service_result
async def archive_member(db: AsyncSession, user: ActingUser, member_id: UUID) -> MemberResponse:
    member = await _get_member(db, member_id)
    if not can_manage_record(user, member.site_id, member.small_group_id):
        raise ForbiddenError("You can only archive members of your own site or small group")
    if member.record_status != RecordStatus.archived.value:
        member.record_status = RecordStatus.archived.value
        log_audit(db, user.id, "archive", "member", member.id, None)
        await db.commit()
        await db.refresh(member)
        logger.info("Member %s archived by %s", member.id, user.id)
    return MemberResponse.model_validate(member)
