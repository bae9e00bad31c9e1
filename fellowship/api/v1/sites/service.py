"""Sites: national-managed organizational units. Deleting a site tombstones it."""

import logging
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.auth.services import assign_unit_holder, release_unit_holder
from fellowship.core.enums import RecordStatus, UserRole
from fellowship.core.exceptions import ConflictError, ForbiddenError
from fellowship.core.level_scope import get_live_site
from fellowship.core.models import Member, Site, SmallGroup
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware

from .schemas import SiteCreate, SiteResponse, SiteUpdate

logger = logging.getLogger(__name__)


async def _counts(db: AsyncSession, model, site_ids: List[UUID]) -> Dict[UUID, int]:
    if not site_ids:
        return {}
    result = await db.execute(
        select(model.site_id, func.count(model.id))
        .where(model.site_id.in_(site_ids), model.record_status == RecordStatus.active.value)
        .group_by(model.site_id)
    )
    return {row[0]: row[1] for row in result.all()}


def _to_response(site: Site, small_group_count: int = 0, member_count: int = 0) -> SiteResponse:
    return SiteResponse(
        id=site.id,
        name=site.name,
        city=site.city,
        country=site.country,
        creation_date=site.creation_date,
        coordinator_id=site.coordinator_id,
        record_status=site.record_status,
        small_group_count=small_group_count,
        member_count=member_count,
        created_at=as_aware(site.created_at),
        updated_at=as_aware(site.updated_at),
    )


async def _with_counts(db: AsyncSession, sites: List[Site]) -> List[SiteResponse]:
    ids = [s.id for s in sites]
    groups = await _counts(db, SmallGroup, ids)
    members = await _counts(db, Member, ids)
    return [_to_response(s, groups.get(s.id, 0), members.get(s.id, 0)) for s in sites]


async def _assign_coordinator(db: AsyncSession, user: ActingUser, site: Site, coordinator_id: Optional[str]) -> None:
    """Point the site at its coordinator and the coordinator's profile at the site."""
    previous = site.coordinator_id
    if previous and previous != coordinator_id:
        await release_unit_holder(db, user, previous, site_id=site.id)
    if coordinator_id is None:
        site.coordinator_id = None
        return
    profile = await assign_unit_holder(db, user, coordinator_id, UserRole.SITE_COORDINATOR, site.id)
    site.coordinator_id = profile.id


@service_result
async def create_site(db: AsyncSession, user: ActingUser, payload: SiteCreate) -> SiteResponse:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can create sites")
    site = Site(
        name=payload.name.strip(),
        city=payload.city,
        country=payload.country,
        creation_date=payload.creation_date,
        record_status=RecordStatus.active.value,
    )
    db.add(site)
    await db.flush()
    await _assign_coordinator(db, user, site, payload.coordinator_id)
    log_audit(db, user.id, "create", "site", site.id, {"name": site.name})
    await db.commit()
    await db.refresh(site)
    logger.info("Site %s created by %s", site.id, user.id)
    return _to_response(site)


@service_result
async def list_sites(db: AsyncSession, user: ActingUser) -> List[SiteResponse]:
    """National coordinators see every site; everyone else sees their own site (or nothing)."""
    stmt = select(Site).where(Site.record_status != RecordStatus.deleted.value)
    if not user.is_national:
        if user.site_id is None:
            return []
        stmt = stmt.where(Site.id == user.site_id)
    result = await db.execute(stmt.order_by(Site.name))
    return await _with_counts(db, list(result.scalars().all()))


@service_result
async def get_site(db: AsyncSession, user: ActingUser, site_id: UUID) -> SiteResponse:
    site = await get_live_site(db, site_id)
    if not user.is_national and user.site_id != site.id:
        raise ForbiddenError()
    return (await _with_counts(db, [site]))[0]


@service_result
async def update_site(db: AsyncSession, user: ActingUser, site_id: UUID, payload: SiteUpdate) -> SiteResponse:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can update sites")
    site = await get_live_site(db, site_id)
    data = payload.model_dump(exclude_unset=True)
    if "coordinator_id" in data:
        await _assign_coordinator(db, user, site, data.pop("coordinator_id"))
    for key, value in data.items():
        if value is not None:
            setattr(site, key, value)
    log_audit(db, user.id, "update", "site", site.id, {"fields": sorted(payload.model_dump(exclude_unset=True))})
    await db.commit()
    await db.refresh(site)
    return (await _with_counts(db, [site]))[0]


@service_result
async def delete_site(db: AsyncSession, user: ActingUser, site_id: UUID) -> None:
    """Tombstone a site. Refused while it still has live small groups or active members."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can delete sites")
    site = await get_live_site(db, site_id)
    groups = await _counts(db, SmallGroup, [site.id])
    members = await _counts(db, Member, [site.id])
    if groups.get(site.id) or members.get(site.id):
        raise ConflictError("Site still has small groups or active members")
    site.record_status = RecordStatus.deleted.value
    log_audit(db, user.id, "delete", "site", site.id, {"name": site.name})
    await db.commit()
    logger.info("Site %s deleted by %s", site.id, user.id)
