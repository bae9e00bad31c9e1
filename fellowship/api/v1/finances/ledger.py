"""
Balance arithmetic shared by the ledger, allocations, summaries and period snapshots.

A "wallet" is the money view of one scope:
- national (no site, no group): every approved transaction; outgoing = allocations from the reserve
- site: transactions of the site itself (not of its groups); incoming = allocations to the site wallet;
  outgoing = allocations sent from the site
- small group: transactions of the group; incoming = allocations to the group

Only approved transactions and completed allocations move money.
"""

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.enums import AllocationStatus, PeriodStatus, TransactionStatus, TransactionType
from fellowship.core.exceptions import ForbiddenError
from fellowship.core.models import AccountingPeriod, FinancialTransaction, FundAllocation

CENT = Decimal("0.01")
CLOSED_PERIOD_MESSAGE = "This accounting period is closed and cannot be modified."


def to_decimal(val: Any) -> Decimal:
    if val is None:
        return Decimal("0.00")
    if isinstance(val, Decimal):
        return val.quantize(CENT, rounding=ROUND_HALF_UP)
    return Decimal(str(val)).quantize(CENT, rounding=ROUND_HALF_UP)


def ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    """numerator / denominator to 4 places; 0 when the denominator is 0."""
    if not denominator:
        return Decimal("0")
    return (numerator / denominator).quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


@dataclass
class Wallet:
    direct_income: Decimal
    expenses: Decimal
    received: Decimal
    sent: Decimal

    @property
    def income(self) -> Decimal:
        return self.direct_income + self.received

    @property
    def net_balance(self) -> Decimal:
        return self.income - self.expenses - self.sent


async def _sum(db: AsyncSession, column, *conditions) -> Decimal:
    result = await db.execute(select(func.coalesce(func.sum(column), 0)).where(and_(*conditions)))
    return to_decimal(result.scalar())


async def compute_wallet(
    db: AsyncSession,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    start: Optional[date] = None,
    end: Optional[date] = None,
) -> Wallet:
    tx_cond = [FinancialTransaction.status == TransactionStatus.approved.value]
    alloc_cond = [FundAllocation.status == AllocationStatus.completed.value]
    if start:
        tx_cond.append(FinancialTransaction.date >= start)
        alloc_cond.append(FundAllocation.allocation_date >= start)
    if end:
        tx_cond.append(FinancialTransaction.date <= end)
        alloc_cond.append(FundAllocation.allocation_date <= end)

    received_cond = None
    sent_cond = None
    if small_group_id is not None:
        tx_cond.append(FinancialTransaction.small_group_id == small_group_id)
        received_cond = FundAllocation.small_group_id == small_group_id
    elif site_id is not None:
        tx_cond.extend([FinancialTransaction.site_id == site_id, FinancialTransaction.small_group_id.is_(None)])
        received_cond = and_(
            FundAllocation.site_id == site_id,
            FundAllocation.small_group_id.is_(None),
            or_(FundAllocation.from_site_id.is_(None), FundAllocation.from_site_id != site_id),
        )
        sent_cond = FundAllocation.from_site_id == site_id
    else:
        sent_cond = FundAllocation.from_site_id.is_(None)

    direct_income = await _sum(
        db, FinancialTransaction.amount, FinancialTransaction.type == TransactionType.income.value, *tx_cond
    )
    expenses = await _sum(
        db, FinancialTransaction.amount, FinancialTransaction.type == TransactionType.expense.value, *tx_cond
    )
    received = await _sum(db, FundAllocation.amount, received_cond, *alloc_cond) if received_cond is not None else to_decimal(0)
    sent = await _sum(db, FundAllocation.amount, sent_cond, *alloc_cond) if sent_cond is not None else to_decimal(0)
    return Wallet(direct_income=direct_income, expenses=expenses, received=received, sent=sent)


async def central_reserve(db: AsyncSession, start: Optional[date] = None, end: Optional[date] = None) -> Decimal:
    """National-level money: income/expenses not attached to a site or group, minus reserve outflows."""
    tx_cond = [
        FinancialTransaction.status == TransactionStatus.approved.value,
        FinancialTransaction.site_id.is_(None),
        FinancialTransaction.small_group_id.is_(None),
    ]
    alloc_cond = [FundAllocation.status == AllocationStatus.completed.value, FundAllocation.from_site_id.is_(None)]
    if start:
        tx_cond.append(FinancialTransaction.date >= start)
        alloc_cond.append(FundAllocation.allocation_date >= start)
    if end:
        tx_cond.append(FinancialTransaction.date <= end)
        alloc_cond.append(FundAllocation.allocation_date <= end)
    income = await _sum(db, FinancialTransaction.amount, FinancialTransaction.type == TransactionType.income.value, *tx_cond)
    expenses = await _sum(db, FinancialTransaction.amount, FinancialTransaction.type == TransactionType.expense.value, *tx_cond)
    outflows = await _sum(db, FundAllocation.amount, *alloc_cond)
    return income - expenses - outflows


async def check_period_open(db: AsyncSession, on: date) -> None:
    """Refuse ledger and report writes dated inside a closed accounting period."""
    result = await db.execute(
        select(AccountingPeriod.id)
        .where(
            AccountingPeriod.status == PeriodStatus.closed.value,
            AccountingPeriod.start_date <= on,
            AccountingPeriod.end_date >= on,
        )
        .limit(1)
    )
    if result.scalar_one_or_none() is not None:
        raise ForbiddenError(CLOSED_PERIOD_MESSAGE)
