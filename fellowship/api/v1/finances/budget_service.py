"""Annual budgets: one ceiling per year, feeding the utilization figures of the national summary."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.core.config import settings
from fellowship.core.enums import UserRole
from fellowship.core.exceptions import ForbiddenError
from fellowship.core.models import AnnualBudget
from fellowship.core.result import service_result

from .schemas import AnnualBudgetResponse, AnnualBudgetUpsert

logger = logging.getLogger(__name__)


@service_result
async def upsert_annual_budget(
    db: AsyncSession, user: ActingUser, payload: AnnualBudgetUpsert
) -> AnnualBudgetResponse:
    """Create or replace the budget for payload.year."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can manage annual budgets")
    result = await db.execute(select(AnnualBudget).where(AnnualBudget.year == payload.year).with_for_update())
    budget = result.scalar_one_or_none()
    action = "update"
    if budget is None:
        budget = AnnualBudget(year=payload.year, created_by_id=user.id)
        db.add(budget)
        action = "create"
    previous = str(budget.total_amount) if budget.total_amount is not None else None
    budget.total_amount = payload.total_amount
    budget.currency = (payload.currency or settings.default_currency).upper()
    budget.status = payload.status.value
    budget.notes = payload.notes
    await db.flush()
    log_audit(
        db,
        user.id,
        action,
        "annual_budget",
        budget.id,
        {"year": payload.year, "from": previous, "to": str(payload.total_amount), "status": budget.status},
    )
    await db.commit()
    await db.refresh(budget)
    logger.info("Annual budget %s %sd by %s", payload.year, action, user.id)
    return AnnualBudgetResponse.model_validate(budget)


@service_result
async def list_annual_budgets(db: AsyncSession, user: ActingUser) -> List[AnnualBudgetResponse]:
    if user.role == UserRole.MEMBER:
        raise ForbiddenError()
    result = await db.execute(select(AnnualBudget).order_by(AnnualBudget.year.desc()))
    return [AnnualBudgetResponse.model_validate(b) for b in result.scalars().all()]
