"""Balances and summaries. Everything here is recomputed on read, except closed periods (served from the snapshot)."""

import logging
from datetime import date
from typing import Optional, Tuple
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.notifications.service import notify_national_coordinators
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import BudgetStatus, NotificationType, PeriodStatus, UserRole
from fellowship.core.exceptions import ForbiddenError, NotFoundError
from fellowship.core.level_scope import get_live_site, get_live_small_group
from fellowship.core.models import AccountingPeriod, AnnualBudget
from fellowship.core.result import service_result
from fellowship.core.timeutils import today

from .ledger import central_reserve, compute_wallet, ratio, to_decimal
from .period_service import get_snapshot
from .schemas import AvailableBudgetResponse, FinancialSummaryResponse

logger = logging.getLogger(__name__)


async def resolve_finance_scope(
    db: AsyncSession,
    user: ActingUser,
    site_id: Optional[UUID],
    small_group_id: Optional[UUID],
) -> Tuple[Optional[UUID], Optional[UUID]]:
    """Pin the requested (site, group) to what the user may see. A group scope wins over a site scope."""
    if user.role == UserRole.NATIONAL_COORDINATOR:
        if small_group_id is not None:
            group = await get_live_small_group(db, small_group_id)
            return group.site_id, group.id
        if site_id is not None:
            await get_live_site(db, site_id)
        return site_id, None

    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None:
            raise ForbiddenError("You are not assigned to a site")
        if small_group_id is not None:
            group = await get_live_small_group(db, small_group_id)
            if group.site_id != user.site_id:
                raise ForbiddenError("You can only view finances of your own site")
            return group.site_id, group.id
        if site_id is not None and site_id != user.site_id:
            raise ForbiddenError("You can only view finances of your own site")
        return user.site_id, None

    if user.role == UserRole.SMALL_GROUP_LEADER:
        if user.small_group_id is None:
            raise ForbiddenError("You are not assigned to a small group")
        if small_group_id is not None and small_group_id != user.small_group_id:
            raise ForbiddenError("You can only view finances of your own small group")
        return user.site_id, user.small_group_id

    raise ForbiddenError("Members cannot view financial data")


async def compute_available(
    db: AsyncSession, site_id: Optional[UUID], small_group_id: Optional[UUID]
) -> AvailableBudgetResponse:
    """received + direct income - sent - expenses. The national reserve is unlimited (available=None)."""
    wallet = await compute_wallet(db, site_id=site_id, small_group_id=small_group_id)
    national = site_id is None and small_group_id is None
    return AvailableBudgetResponse(
        site_id=site_id,
        small_group_id=small_group_id,
        available=None if national else wallet.net_balance,
        received=wallet.received,
        sent=wallet.sent,
        direct_income=wallet.direct_income,
        expenses=wallet.expenses,
    )


@service_result
async def available_budget(
    db: AsyncSession,
    user: ActingUser,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
) -> AvailableBudgetResponse:
    site_id, small_group_id = await resolve_finance_scope(db, user, site_id, small_group_id)
    # A group wallet is keyed by the group alone
    return await compute_available(db, None if small_group_id else site_id, small_group_id)


@service_result
async def financial_summary(
    db: AsyncSession,
    user: ActingUser,
    *,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    period_id: Optional[UUID] = None,
) -> FinancialSummaryResponse:
    site_id, small_group_id = await resolve_finance_scope(db, user, site_id, small_group_id)
    wallet_site = None if small_group_id else site_id

    if period_id is not None:
        period = await db.get(AccountingPeriod, period_id)
        if period is None:
            raise NotFoundError("Accounting period not found")
        start_date, end_date = period.start_date, period.end_date
        if period.status == PeriodStatus.closed.value and small_group_id is None:
            snapshot = await get_snapshot(db, period.id)
            if snapshot is not None:
                return _from_snapshot(snapshot, period, wallet_site)

    wallet = await compute_wallet(db, site_id=wallet_site, small_group_id=small_group_id, start=start_date, end=end_date)
    national = wallet_site is None and small_group_id is None
    reserve = await central_reserve(db, start=start_date, end=end_date) if national else None
    annual = await _annual_budget_amount(db, (start_date or today()).year) if national else None
    return FinancialSummaryResponse(
        site_id=site_id,
        small_group_id=small_group_id,
        start_date=start_date,
        end_date=end_date,
        period_id=period_id,
        income=wallet.income,
        expenses=wallet.expenses,
        total_allocated=wallet.sent,
        total_spent=wallet.expenses,
        net_balance=wallet.net_balance,
        budget_utilization=ratio(wallet.expenses, wallet.income),
        central_reserve=reserve,
        annual_budget=annual,
        from_snapshot=False,
    )


def _from_snapshot(snapshot, period: AccountingPeriod, site_id: Optional[UUID]) -> FinancialSummaryResponse:
    if site_id is None:
        income = to_decimal(snapshot.total_income)
        expenses = to_decimal(snapshot.total_expenses)
        allocated = to_decimal(snapshot.total_allocated)
        net = to_decimal(snapshot.net_balance)
    else:
        entry = (snapshot.site_breakdown or {}).get(str(site_id)) or {}
        income = to_decimal(entry.get("income"))
        expenses = to_decimal(entry.get("expenses"))
        allocated = to_decimal(entry.get("allocated"))
        net = to_decimal(entry.get("net_balance"))
    return FinancialSummaryResponse(
        site_id=site_id,
        start_date=period.start_date,
        end_date=period.end_date,
        period_id=period.id,
        income=income,
        expenses=expenses,
        total_allocated=allocated,
        total_spent=expenses,
        net_balance=net,
        budget_utilization=ratio(expenses, income),
        from_snapshot=True,
    )


async def _annual_budget_amount(db: AsyncSession, year: int):
    result = await db.execute(
        select(AnnualBudget).where(AnnualBudget.year == year, AnnualBudget.status == BudgetStatus.active.value)
    )
    budget = result.scalar_one_or_none()
    return to_decimal(budget.total_amount) if budget else None


async def check_budget_overrun(
    db: AsyncSession, site_id: Optional[UUID], small_group_id: Optional[UUID]
) -> bool:
    """
    Best effort: after an approved expense, alert national coordinators if the wallet went negative.
    Runs after the main commit; a failure here is logged and never undoes the operation.
    """
    if site_id is None and small_group_id is None:
        return False
    try:
        budget = await compute_available(db, None if small_group_id else site_id, small_group_id)
        if budget.available is None or budget.available >= 0:
            return False
        scope_label = f"small group {small_group_id}" if small_group_id else f"site {site_id}"
        await notify_national_coordinators(
            db,
            NotificationType.BUDGET_ALERT,
            "Budget overrun",
            f"The balance of {scope_label} is negative ({budget.available}).",
            link="/dashboard/finances",
            details={
                "site_id": str(site_id) if site_id else None,
                "small_group_id": str(small_group_id) if small_group_id else None,
                "available": str(budget.available),
            },
        )
        await db.commit()
        logger.warning("Budget overrun for %s: %s", scope_label, budget.available)
        return True
    except SQLAlchemyError:
        logger.exception("Budget overrun check failed for site=%s group=%s", site_id, small_group_id)
        await db.rollback()
        return False
