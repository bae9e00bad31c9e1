"""
Level invariant shared by members, activities and reports:

- national: neither site_id nor small_group_id
- site: site_id required
- small_group: small_group_id required; site_id is the group's site (inferred when omitted)

Non-national callers are pinned to their own site or group.
"""

from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import Level, RecordStatus, UserRole
from fellowship.core.exceptions import ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.models import Site, SmallGroup


async def get_live_site(db: AsyncSession, site_id: UUID) -> Site:
    site = await db.get(Site, site_id)
    if site is None or site.record_status == RecordStatus.deleted.value:
        raise NotFoundError("Site not found")
    return site


async def get_live_small_group(db: AsyncSession, small_group_id: UUID) -> SmallGroup:
    group = await db.get(SmallGroup, small_group_id)
    if group is None or group.record_status == RecordStatus.deleted.value:
        raise NotFoundError("Small group not found")
    return group


async def resolve_level_scope(
    db: AsyncSession,
    user: ActingUser,
    level: Level,
    site_id: Optional[UUID],
    small_group_id: Optional[UUID],
    *,
    entity: str = "record",
) -> Tuple[Optional[UUID], Optional[UUID]]:
    """Return the (site_id, small_group_id) pair to store for a record at `level` created by `user`."""
    if level == Level.national:
        if not user.is_national:
            raise ForbiddenError(f"Only national coordinators can create national-level {entity}s")
        return None, None

    # Non-national callers may omit the id of their own unit
    if user.role == UserRole.SITE_COORDINATOR and level == Level.site and site_id is None:
        site_id = user.site_id
    if user.role in (UserRole.SMALL_GROUP_LEADER, UserRole.MEMBER) and level == Level.small_group and small_group_id is None:
        small_group_id = user.small_group_id

    if level == Level.site:
        if site_id is None:
            raise ValidationFailed(f"site_id is required for a site-level {entity}")
        await get_live_site(db, site_id)
        small_group_id = None
    else:
        if small_group_id is None:
            raise ValidationFailed(f"small_group_id is required for a small-group-level {entity}")
        group = await get_live_small_group(db, small_group_id)
        if site_id is not None and site_id != group.site_id:
            raise ValidationFailed("Small group does not belong to the given site")
        site_id = group.site_id

    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None or site_id != user.site_id:
            raise ForbiddenError(f"Site coordinators can only create {entity}s for their own site")
    elif user.role == UserRole.SMALL_GROUP_LEADER:
        if level != Level.small_group or user.small_group_id is None or small_group_id != user.small_group_id:
            raise ForbiddenError(f"Small group leaders can only create {entity}s for their own small group")
    elif user.role == UserRole.MEMBER:
        own_group = level == Level.small_group and small_group_id == user.small_group_id and user.small_group_id
        own_site = level == Level.site and site_id == user.site_id and user.site_id
        if not (own_group or own_site):
            raise ForbiddenError(f"Members can only submit {entity}s for their own small group or site")
    return site_id, small_group_id
