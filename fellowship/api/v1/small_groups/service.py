import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.auth.services import assign_unit_holder, release_unit_holder
from fellowship.core.enums import RecordStatus, UserRole
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from fellowship.core.level_scope import get_live_site, get_live_small_group
from fellowship.core.models import Member, Profile, SmallGroup
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware

from .schemas import SmallGroupCreate, SmallGroupResponse, SmallGroupUpdate

logger = logging.getLogger(__name__)

_ASSISTANT_FIELDS = ("logistics_assistant_id", "finance_assistant_id")


def _can_manage(user: ActingUser, site_id: UUID) -> bool:
    if user.is_national:
        return True
    return user.role == UserRole.SITE_COORDINATOR and user.site_id is not None and user.site_id == site_id


async def _member_counts(db: AsyncSession, group_ids: List[UUID]) -> Dict[UUID, int]:
    if not group_ids:
        return {}
    result = await db.execute(
        select(Member.small_group_id, func.count(Member.id))
        .where(Member.small_group_id.in_(group_ids), Member.record_status == RecordStatus.active.value)
        .group_by(Member.small_group_id)
    )
    return {row[0]: row[1] for row in result.all()}


def _to_response(group: SmallGroup, member_count: int = 0) -> SmallGroupResponse:
    return SmallGroupResponse(
        id=group.id,
        name=group.name,
        site_id=group.site_id,
        leader_id=group.leader_id,
        logistics_assistant_id=group.logistics_assistant_id,
        finance_assistant_id=group.finance_assistant_id,
        meeting_day=group.meeting_day,
        meeting_time=group.meeting_time,
        meeting_location=group.meeting_location,
        record_status=group.record_status,
        member_count=member_count,
        created_at=as_aware(group.created_at),
        updated_at=as_aware(group.updated_at),
    )


async def _check_profile(db: AsyncSession, profile_id: Optional[str]) -> Optional[Profile]:
    if profile_id is None:
        return None
    profile = await db.get(Profile, profile_id)
    if profile is None:
        raise NotFoundError(f"Profile {profile_id} not found")
    return profile


async def _assign_leader(db: AsyncSession, user: ActingUser, group: SmallGroup, leader_id: Optional[str]) -> None:
    previous = group.leader_id
    if previous and previous != leader_id:
        await release_unit_holder(db, user, previous, small_group_id=group.id)
    if leader_id is None:
        group.leader_id = None
        return
    leader = await assign_unit_holder(db, user, leader_id, UserRole.SMALL_GROUP_LEADER, group.site_id, group.id)
    group.leader_id = leader.id


@service_result
async def create_small_group(db: AsyncSession, user: ActingUser, payload: SmallGroupCreate) -> SmallGroupResponse:
    """National coordinators, or a site coordinator within their own site."""
    site = await get_live_site(db, payload.site_id)
    if not _can_manage(user, site.id):
        raise ForbiddenError("You can only create small groups for your own site")
    for field in _ASSISTANT_FIELDS:
        await _check_profile(db, getattr(payload, field))

    group = SmallGroup(
        name=payload.name.strip(),
        site_id=site.id,
        logistics_assistant_id=payload.logistics_assistant_id,
        finance_assistant_id=payload.finance_assistant_id,
        meeting_day=payload.meeting_day,
        meeting_time=payload.meeting_time,
        meeting_location=payload.meeting_location,
        record_status=RecordStatus.active.value,
    )
    db.add(group)
    await db.flush()
    await _assign_leader(db, user, group, payload.leader_id)
    log_audit(db, user.id, "create", "small_group", group.id, {"site_id": str(site.id), "name": group.name})
    await db.commit()
    await db.refresh(group)
    logger.info("Small group %s created in site %s by %s", group.id, site.id, user.id)
    return _to_response(group)


@service_result
async def list_small_groups(
    db: AsyncSession, user: ActingUser, site_id: Optional[UUID] = None
) -> List[SmallGroupResponse]:
    stmt = select(SmallGroup).where(SmallGroup.record_status != RecordStatus.deleted.value)
    if site_id is not None:
        stmt = stmt.where(SmallGroup.site_id == site_id)
    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None:
            return []
        stmt = stmt.where(SmallGroup.site_id == user.site_id)
    elif not user.is_national:
        if user.small_group_id is None:
            return []
        stmt = stmt.where(SmallGroup.id == user.small_group_id)
    result = await db.execute(stmt.order_by(SmallGroup.name))
    groups = list(result.scalars().all())
    counts = await _member_counts(db, [g.id for g in groups])
    return [_to_response(g, counts.get(g.id, 0)) for g in groups]


@service_result
async def get_small_group(db: AsyncSession, user: ActingUser, small_group_id: UUID) -> SmallGroupResponse:
    group = await get_live_small_group(db, small_group_id)
    if not (_can_manage(user, group.site_id) or user.small_group_id == group.id):
        raise ForbiddenError()
    counts = await _member_counts(db, [group.id])
    return _to_response(group, counts.get(group.id, 0))


@service_result
async def update_small_group(
    db: AsyncSession, user: ActingUser, small_group_id: UUID, payload: SmallGroupUpdate
) -> SmallGroupResponse:
    group = await get_live_small_group(db, small_group_id)
    if not _can_manage(user, group.site_id):
        raise ForbiddenError("You can only update small groups of your own site")
    data = payload.model_dump(exclude_unset=True)
    fields = sorted(data)
    for field in _ASSISTANT_FIELDS:
        if field in data:
            await _check_profile(db, data[field])
    if "leader_id" in data:
        await _assign_leader(db, user, group, data.pop("leader_id"))
    for key, value in data.items():
        if key == "name" and value is None:
            continue
        setattr(group, key, value)
    log_audit(db, user.id, "update", "small_group", group.id, {"fields": fields})
    await db.commit()
    await db.refresh(group)
    counts = await _member_counts(db, [group.id])
    return _to_response(group, counts.get(group.id, 0))


@service_result
async def delete_small_group(db: AsyncSession, user: ActingUser, small_group_id: UUID) -> None:
    """Tombstone a small group. Refused while it still has active members."""
    group = await get_live_small_group(db, small_group_id)
    if not _can_manage(user, group.site_id):
        raise ForbiddenError("You can only delete small groups of your own site")
    counts = await _member_counts(db, [group.id])
    if counts.get(group.id):
        raise ConflictError("Small group still has active members")
    group.record_status = RecordStatus.deleted.value
    log_audit(db, user.id, "delete", "small_group", group.id, {"name": group.name})
    await db.commit()
    logger.info("Small group %s deleted by %s", group.id, user.id)
