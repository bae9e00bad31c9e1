"""
Ledger: income/expense transactions.

National coordinators' entries are approved on creation; everyone else's wait for approval.
Entries generated by report approval are immutable. Mistakes in approved entries are corrected by reversal.
"""

import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import can_manage_record, scope
from fellowship.core.config import settings
from fellowship.core.enums import ScopedResource, TransactionStatus, TransactionType, UserRole
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.level_scope import get_live_site, get_live_small_group
from fellowship.core.models import FinancialTransaction
from fellowship.core.result import service_result
from fellowship.core.timeutils import today, utcnow

from .ledger import check_period_open, to_decimal
from .schemas import TransactionCreate, TransactionResponse, TransactionUpdate
from .summary_service import check_budget_overrun

logger = logging.getLogger(__name__)


def _to_response(t: FinancialTransaction) -> TransactionResponse:
    response = TransactionResponse.model_validate(t)
    response.amount = to_decimal(t.amount)
    return response


async def _resolve_owner(
    db: AsyncSession, user: ActingUser, site_id: Optional[UUID], small_group_id: Optional[UUID]
):
    """Pin a new transaction to the caller's site/group. The group's site is always stored alongside it."""
    if user.role == UserRole.MEMBER:
        raise ForbiddenError("Members cannot record transactions")
    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None:
            raise ForbiddenError("You are not assigned to a site")
        site_id = site_id or user.site_id
        if site_id != user.site_id:
            raise ForbiddenError("Site coordinators can only record transactions for their own site")
    if user.role == UserRole.SMALL_GROUP_LEADER:
        if user.small_group_id is None:
            raise ForbiddenError("You are not assigned to a small group")
        small_group_id = small_group_id or user.small_group_id
        if small_group_id != user.small_group_id:
            raise ForbiddenError("Small group leaders can only record transactions for their own small group")

    if small_group_id is not None:
        group = await get_live_small_group(db, small_group_id)
        if site_id is not None and site_id != group.site_id:
            raise ValidationFailed("Small group does not belong to the given site")
        return group.site_id, group.id
    if site_id is not None:
        await get_live_site(db, site_id)
    return site_id, None


async def _get_for_update(db: AsyncSession, transaction_id: UUID) -> FinancialTransaction:
    result = await db.execute(
        select(FinancialTransaction).where(FinancialTransaction.id == transaction_id).with_for_update()
    )
    t = result.scalar_one_or_none()
    if t is None:
        raise NotFoundError("Transaction not found")
    return t


@service_result
async def record_transaction(db: AsyncSession, user: ActingUser, payload: TransactionCreate) -> TransactionResponse:
    site_id, small_group_id = await _resolve_owner(db, user, payload.site_id, payload.small_group_id)
    await check_period_open(db, payload.date)

    approved = user.is_national
    t = FinancialTransaction(
        date=payload.date,
        amount=payload.amount,
        type=payload.type.value,
        category=payload.category.strip(),
        description=payload.description,
        currency=(payload.currency or settings.default_currency).upper(),
        site_id=site_id,
        small_group_id=small_group_id,
        proof_url=payload.proof_url,
        related_report_id=payload.related_report_id,
        related_activity_id=payload.related_activity_id,
        status=TransactionStatus.approved.value if approved else TransactionStatus.pending.value,
        is_system_generated=False,
        recorded_by_id=user.id,
        approved_by_id=user.id if approved else None,
        approved_at=utcnow() if approved else None,
    )
    db.add(t)
    await db.flush()
    log_audit(
        db,
        user.id,
        "create",
        "financial_transaction",
        t.id,
        {"type": t.type, "amount": str(payload.amount), "status": t.status},
    )
    await db.commit()
    await db.refresh(t)
    logger.info("Transaction %s (%s %s) recorded by %s as %s", t.id, t.type, t.amount, user.id, t.status)
    if approved and t.type == TransactionType.expense.value:
        await check_budget_overrun(db, t.site_id, t.small_group_id)
    return _to_response(t)


@service_result
async def list_transactions(
    db: AsyncSession,
    user: ActingUser,
    *,
    type_: Optional[TransactionType] = None,
    status: Optional[TransactionStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
) -> List[TransactionResponse]:
    conditions = [scope(user, ScopedResource.transaction)]
    if type_:
        conditions.append(FinancialTransaction.type == type_.value)
    if status:
        conditions.append(FinancialTransaction.status == status.value)
    if start_date:
        conditions.append(FinancialTransaction.date >= start_date)
    if end_date:
        conditions.append(FinancialTransaction.date <= end_date)
    if site_id:
        conditions.append(FinancialTransaction.site_id == site_id)
    if small_group_id:
        conditions.append(FinancialTransaction.small_group_id == small_group_id)
    result = await db.execute(
        select(FinancialTransaction)
        .where(and_(*conditions))
        .order_by(FinancialTransaction.date.desc(), FinancialTransaction.created_at.desc())
    )
    return [_to_response(t) for t in result.scalars().all()]


@service_result
async def get_transaction(db: AsyncSession, user: ActingUser, transaction_id: UUID) -> TransactionResponse:
    t = await db.get(FinancialTransaction, transaction_id)
    if t is None:
        raise NotFoundError("Transaction not found")
    if not (can_manage_record(user, t.site_id, t.small_group_id) or t.recorded_by_id == user.id):
        raise ForbiddenError()
    return _to_response(t)


@service_result
async def approve_transaction(db: AsyncSession, user: ActingUser, transaction_id: UUID) -> TransactionResponse:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can approve transactions")
    t = await _get_for_update(db, transaction_id)
    if t.status != TransactionStatus.pending.value:
        raise ConflictError(f"Transaction is already {t.status}")
    await check_period_open(db, t.date)
    t.status = TransactionStatus.approved.value
    t.approved_by_id = user.id
    t.approved_at = utcnow()
    log_audit(db, user.id, "approve", "financial_transaction", t.id, {"amount": str(t.amount)})
    await db.commit()
    await db.refresh(t)
    if t.type == TransactionType.expense.value:
        await check_budget_overrun(db, t.site_id, t.small_group_id)
    return _to_response(t)


@service_result
async def reject_transaction(
    db: AsyncSession, user: ActingUser, transaction_id: UUID, reason: str
) -> TransactionResponse:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can reject transactions")
    if not reason or not reason.strip():
        raise ValidationFailed("A rejection reason is required")
    t = await _get_for_update(db, transaction_id)
    if t.status != TransactionStatus.pending.value:
        raise ConflictError(f"Transaction is already {t.status}")
    await check_period_open(db, t.date)
    t.status = TransactionStatus.rejected.value
    t.rejection_reason = reason.strip()
    log_audit(db, user.id, "reject", "financial_transaction", t.id, {"reason": t.rejection_reason})
    await db.commit()
    await db.refresh(t)
    return _to_response(t)


@service_result
async def update_transaction(
    db: AsyncSession, user: ActingUser, transaction_id: UUID, payload: TransactionUpdate
) -> TransactionResponse:
    t = await _get_for_update(db, transaction_id)
    if t.is_system_generated:
        raise ForbiddenError("System-generated transactions cannot be edited")
    if not can_manage_record(user, t.site_id, t.small_group_id):
        raise ForbiddenError("You can only edit transactions of your own site or small group")
    if t.status == TransactionStatus.rejected.value:
        raise ConflictError("Rejected transactions cannot be edited")
    if not user.is_national and t.status != TransactionStatus.pending.value:
        raise ForbiddenError("Only pending transactions can be edited")

    data = payload.model_dump(exclude_unset=True)
    await check_period_open(db, t.date)
    if data.get("date"):
        await check_period_open(db, data["date"])

    changes = {}
    for key, value in data.items():
        if value is None and key in ("date", "amount", "category"):
            continue
        old = getattr(t, key)
        if old != value:
            changes[key] = {"from": str(old) if old is not None else None, "to": str(value) if value is not None else None}
            setattr(t, key, value)
    if changes:
        log_audit(db, user.id, "update", "financial_transaction", t.id, {"changes": changes})
    await db.commit()
    await db.refresh(t)
    return _to_response(t)


@service_result
async def reverse_transaction(
    db: AsyncSession,
    user: ActingUser,
    transaction_id: UUID,
    reason: str,
    on: Optional[date] = None,
) -> TransactionResponse:
    """Post the opposite entry for an approved transaction. Returns the reversal."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can reverse transactions")
    original = await _get_for_update(db, transaction_id)
    if original.status != TransactionStatus.approved.value:
        raise ConflictError("Only approved transactions can be reversed")
    existing = await db.execute(
        select(FinancialTransaction.id).where(FinancialTransaction.reversal_of_id == original.id).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Transaction has already been reversed")
    reversal_date = on or today()
    await check_period_open(db, reversal_date)

    opposite = (
        TransactionType.income
        if original.type == TransactionType.expense.value
        else TransactionType.expense
    )
    reversal = FinancialTransaction(
        date=reversal_date,
        amount=original.amount,
        type=opposite.value,
        category=original.category,
        description=f"Reversal of {original.id}: {reason.strip()}",
        currency=original.currency,
        site_id=original.site_id,
        small_group_id=original.small_group_id,
        related_report_id=original.related_report_id,
        related_activity_id=original.related_activity_id,
        reversal_of_id=original.id,
        status=TransactionStatus.approved.value,
        is_system_generated=False,
        recorded_by_id=user.id,
        approved_by_id=user.id,
        approved_at=utcnow(),
    )
    db.add(reversal)
    await db.flush()
    log_audit(
        db,
        user.id,
        "reverse",
        "financial_transaction",
        original.id,
        {"reversal_id": str(reversal.id), "reason": reason.strip()},
    )
    await db.commit()
    await db.refresh(reversal)
    logger.info("Transaction %s reversed by %s as %s", original.id, user.id, reversal.id)
    return _to_response(reversal)
