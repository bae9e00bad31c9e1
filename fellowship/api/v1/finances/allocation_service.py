"""
Fund allocations: national reserve -> site, national reserve -> small group (direct, needs a bypass reason),
site -> its own small groups.

Exceeding the source balance is reported back as budget_warning, or refused when
STRICT_BUDGET_ENFORCEMENT is on.
"""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.api.v1.notifications.service import notify
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import scope
from fellowship.core.config import settings
from fellowship.core.enums import AllocationStatus, AllocationType, NotificationType, ScopedResource, UserRole
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.level_scope import get_live_site, get_live_small_group
from fellowship.core.models import FundAllocation
from fellowship.core.result import service_result
from fellowship.core.timeutils import utcnow

from .ledger import check_period_open, compute_wallet, to_decimal
from .schemas import AllocationCreate, AllocationResponse

logger = logging.getLogger(__name__)


def _to_response(a: FundAllocation, budget_warning: Optional[str] = None) -> AllocationResponse:
    response = AllocationResponse.model_validate(a)
    response.amount = to_decimal(a.amount)
    response.budget_warning = budget_warning
    return response


@service_result
async def allocate_funds(db: AsyncSession, user: ActingUser, payload: AllocationCreate) -> AllocationResponse:
    if user.role not in (UserRole.NATIONAL_COORDINATOR, UserRole.SITE_COORDINATOR):
        raise ForbiddenError("Only national and site coordinators can allocate funds")

    from_site_id = payload.from_site_id
    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None:
            raise ForbiddenError("You are not assigned to a site")
        from_site_id = from_site_id or user.site_id
        if from_site_id != user.site_id:
            raise ForbiddenError("Site coordinators can only allocate from their own site")
        if payload.small_group_id is None:
            raise ForbiddenError("Site coordinators can only allocate to small groups of their site")

    if from_site_id is not None:
        await get_live_site(db, from_site_id)

    # Destination
    dest_site = None
    group = None
    if payload.small_group_id is not None:
        group = await get_live_small_group(db, payload.small_group_id)
        if payload.site_id is not None and payload.site_id != group.site_id:
            raise ValidationFailed("Small group does not belong to the given site")
        dest_site_id = group.site_id
    else:
        dest_site = await get_live_site(db, payload.site_id)
        dest_site_id = dest_site.id

    if from_site_id is not None:
        if group is None:
            raise ValidationFailed("A site can only allocate funds to its own small groups")
        if group.site_id != from_site_id:
            raise ForbiddenError("A site can only allocate funds to its own small groups")
        allocation_type = AllocationType.hierarchical
    elif group is not None:
        # Reserve straight to a group, bypassing the site wallet
        if not payload.bypass_reason or not payload.bypass_reason.strip():
            raise ValidationFailed("bypass_reason is required for a direct allocation to a small group")
        allocation_type = AllocationType.direct
    else:
        allocation_type = AllocationType.hierarchical

    await check_period_open(db, payload.allocation_date)

    budget_warning = None
    if from_site_id is not None:
        wallet = await compute_wallet(db, site_id=from_site_id)
        if wallet.net_balance < payload.amount:
            message = f"Allocation of {payload.amount} exceeds the available balance of {wallet.net_balance}"
            if settings.strict_budget_enforcement:
                raise ValidationFailed(message)
            budget_warning = message
            logger.warning("Site %s over-allocating: %s", from_site_id, message)

    completed = payload.status == AllocationStatus.completed
    allocation = FundAllocation(
        amount=payload.amount,
        currency=(payload.currency or settings.default_currency).upper(),
        allocation_date=payload.allocation_date,
        goal=payload.goal.strip(),
        source=payload.source,
        notes=payload.notes,
        proof_url=payload.proof_url,
        status=payload.status.value,
        allocation_type=allocation_type.value,
        bypass_reason=payload.bypass_reason if allocation_type == AllocationType.direct else None,
        from_site_id=from_site_id,
        site_id=dest_site_id,
        small_group_id=group.id if group is not None else None,
        allocated_by_id=user.id,
        completed_at=utcnow() if completed else None,
    )
    db.add(allocation)
    await db.flush()
    log_audit(
        db,
        user.id,
        "create",
        "fund_allocation",
        allocation.id,
        {
            "amount": str(payload.amount),
            "type": allocation_type.value,
            "from_site_id": str(from_site_id) if from_site_id else None,
            "budget_warning": budget_warning,
        },
    )

    recipient = group.leader_id if group is not None else dest_site.coordinator_id
    if recipient:
        notify(
            db,
            recipient,
            NotificationType.ALLOCATION_RECEIVED,
            "Funds allocated",
            f"{allocation.amount} {allocation.currency} allocated for: {allocation.goal}",
            link=f"/dashboard/finances/allocations/{allocation.id}",
            details={"allocation_id": str(allocation.id)},
        )
    await db.commit()
    await db.refresh(allocation)
    logger.info("Allocation %s (%s) created by %s", allocation.id, allocation_type.value, user.id)
    return _to_response(allocation, budget_warning)


@service_result
async def complete_allocation(db: AsyncSession, user: ActingUser, allocation_id: UUID) -> AllocationResponse:
    result = await db.execute(
        select(FundAllocation).where(FundAllocation.id == allocation_id).with_for_update()
    )
    allocation = result.scalar_one_or_none()
    if allocation is None:
        raise NotFoundError("Allocation not found")
    source_owner = (
        user.role == UserRole.SITE_COORDINATOR
        and allocation.from_site_id is not None
        and allocation.from_site_id == user.site_id
    )
    if not (user.is_national or source_owner):
        raise ForbiddenError("Only the allocating coordinator can complete this allocation")
    if allocation.status != AllocationStatus.planned.value:
        raise ConflictError("Allocation is already completed")
    await check_period_open(db, allocation.allocation_date)
    allocation.status = AllocationStatus.completed.value
    allocation.completed_at = utcnow()
    log_audit(db, user.id, "complete", "fund_allocation", allocation.id, None)
    await db.commit()
    await db.refresh(allocation)
    return _to_response(allocation)


@service_result
async def list_allocations(
    db: AsyncSession,
    user: ActingUser,
    *,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    status: Optional[AllocationStatus] = None,
) -> List[AllocationResponse]:
    conditions = [scope(user, ScopedResource.allocation)]
    if site_id:
        conditions.append(FundAllocation.site_id == site_id)
    if small_group_id:
        conditions.append(FundAllocation.small_group_id == small_group_id)
    if status:
        conditions.append(FundAllocation.status == status.value)
    result = await db.execute(
        select(FundAllocation).where(and_(*conditions)).order_by(FundAllocation.allocation_date.desc())
    )
    return [_to_response(a) for a in result.scalars().all()]


@service_result
async def get_allocation(db: AsyncSession, user: ActingUser, allocation_id: UUID) -> AllocationResponse:
    result = await db.execute(
        select(FundAllocation).where(FundAllocation.id == allocation_id, scope(user, ScopedResource.allocation))
    )
    allocation = result.scalar_one_or_none()
    if allocation is None:
        raise NotFoundError("Allocation not found")
    return _to_response(allocation)
