"""
Accounting periods. Closing a period freezes its figures in an append-only PeriodSnapshot;
there is no reopen, so a snapshot is written once and never recomputed.
"""

import logging
from typing import Dict, List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import PeriodStatus, RecordStatus, UserRole
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from fellowship.core.models import AccountingPeriod, PeriodSnapshot, Site
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware, utcnow

from .ledger import compute_wallet, to_decimal
from .schemas import PeriodCreate, PeriodResponse, PeriodSnapshotResponse, SiteTotals

logger = logging.getLogger(__name__)


def snapshot_to_response(snapshot: PeriodSnapshot) -> PeriodSnapshotResponse:
    return PeriodSnapshotResponse(
        id=snapshot.id,
        period_id=snapshot.period_id,
        total_income=to_decimal(snapshot.total_income),
        total_expenses=to_decimal(snapshot.total_expenses),
        total_allocated=to_decimal(snapshot.total_allocated),
        net_balance=to_decimal(snapshot.net_balance),
        site_breakdown={k: SiteTotals(**v) for k, v in (snapshot.site_breakdown or {}).items()},
        created_at=as_aware(snapshot.created_at),
    )


async def get_snapshot(db: AsyncSession, period_id: UUID):
    result = await db.execute(select(PeriodSnapshot).where(PeriodSnapshot.period_id == period_id))
    return result.scalar_one_or_none()


async def _to_response(db: AsyncSession, period: AccountingPeriod) -> PeriodResponse:
    snapshot = await get_snapshot(db, period.id) if period.status == PeriodStatus.closed.value else None
    return PeriodResponse(
        id=period.id,
        type=period.type,
        start_date=period.start_date,
        end_date=period.end_date,
        status=period.status,
        closed_at=as_aware(period.closed_at),
        closed_by_id=period.closed_by_id,
        created_at=as_aware(period.created_at),
        snapshot=snapshot_to_response(snapshot) if snapshot else None,
    )


@service_result
async def create_period(db: AsyncSession, user: ActingUser, payload: PeriodCreate) -> PeriodResponse:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can manage accounting periods")
    overlap = await db.execute(
        select(AccountingPeriod.id)
        .where(
            AccountingPeriod.start_date <= payload.end_date,
            AccountingPeriod.end_date >= payload.start_date,
        )
        .limit(1)
    )
    existing = overlap.scalar_one_or_none()
    if existing is not None:
        raise ConflictError(f"Accounting period overlaps with existing period {existing}")
    period = AccountingPeriod(
        type=payload.type.value,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=PeriodStatus.open.value,
    )
    db.add(period)
    await db.flush()
    log_audit(
        db,
        user.id,
        "create",
        "accounting_period",
        period.id,
        {"type": period.type, "start_date": str(period.start_date), "end_date": str(period.end_date)},
    )
    await db.commit()
    await db.refresh(period)
    return await _to_response(db, period)


@service_result
async def list_periods(db: AsyncSession, user: ActingUser) -> List[PeriodResponse]:
    if user.role == UserRole.MEMBER:
        raise ForbiddenError()
    result = await db.execute(select(AccountingPeriod).order_by(AccountingPeriod.start_date.desc()))
    return [await _to_response(db, p) for p in result.scalars().all()]


@service_result
async def get_period(db: AsyncSession, user: ActingUser, period_id: UUID) -> PeriodResponse:
    if user.role == UserRole.MEMBER:
        raise ForbiddenError()
    period = await db.get(AccountingPeriod, period_id)
    if period is None:
        raise NotFoundError("Accounting period not found")
    return await _to_response(db, period)


@service_result
async def close_period(db: AsyncSession, user: ActingUser, period_id: UUID) -> PeriodResponse:
    """Close an open period and write its snapshot: global totals plus one entry per site."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can close accounting periods")
    result = await db.execute(
        select(AccountingPeriod).where(AccountingPeriod.id == period_id).with_for_update()
    )
    period = result.scalar_one_or_none()
    if period is None:
        raise NotFoundError("Accounting period not found")
    if period.status == PeriodStatus.closed.value:
        raise ConflictError("Accounting period already closed")

    start, end = period.start_date, period.end_date
    totals = await compute_wallet(db, start=start, end=end)
    breakdown: Dict[str, Dict[str, str]] = {}
    sites = await db.execute(select(Site.id).where(Site.record_status != RecordStatus.deleted.value))
    for site_id in sites.scalars().all():
        wallet = await compute_wallet(db, site_id=site_id, start=start, end=end)
        breakdown[str(site_id)] = {
            "income": str(wallet.income),
            "expenses": str(wallet.expenses),
            "allocated": str(wallet.sent),
            "net_balance": str(wallet.net_balance),
        }

    snapshot = PeriodSnapshot(
        period_id=period.id,
        total_income=totals.income,
        total_expenses=totals.expenses,
        total_allocated=totals.sent,
        net_balance=totals.net_balance,
        site_breakdown=breakdown,
        created_at=utcnow(),
    )
    db.add(snapshot)
    period.status = PeriodStatus.closed.value
    period.closed_at = utcnow()
    period.closed_by_id = user.id
    log_audit(
        db,
        user.id,
        "close",
        "accounting_period",
        period.id,
        {"net_balance": str(totals.net_balance), "sites": len(breakdown)},
    )
    await db.commit()
    await db.refresh(period)
    logger.info("Accounting period %s (%s..%s) closed by %s", period.id, start, end, user.id)
    return await _to_response(db, period)
