from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import AllocationStatus, TransactionStatus, TransactionType
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import allocation_service, budget_service, period_service, service, summary_service
from .schemas import (
    AllocationCreate,
    AllocationResponse,
    AnnualBudgetResponse,
    AnnualBudgetUpsert,
    AvailableBudgetResponse,
    FinancialSummaryResponse,
    PeriodCreate,
    PeriodResponse,
    TransactionCreate,
    TransactionReject,
    TransactionResponse,
    TransactionReverse,
    TransactionUpdate,
)

router = APIRouter(prefix="/api/v1/finances", tags=["finances"])


# ----- Transactions -----
@router.get("/transactions", response_model=ServiceResult[List[TransactionResponse]])
async def list_transactions(
    type: Optional[TransactionType] = None,
    status_filter: Optional[TransactionStatus] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Transactions visible to the current user, newest first."""
    result = await service.list_transactions(
        db,
        current_user,
        type_=type,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        site_id=site_id,
        small_group_id=small_group_id,
    )
    return respond(result)


@router.post("/transactions", response_model=ServiceResult[TransactionResponse], status_code=status.HTTP_201_CREATED)
async def record_transaction(
    payload: TransactionCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Record income or expense. Approved immediately when recorded by a national coordinator."""
    return respond(await service.record_transaction(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/transactions/{transaction_id}", response_model=ServiceResult[TransactionResponse])
async def get_transaction(
    transaction_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_transaction(db, current_user, transaction_id))


@router.put("/transactions/{transaction_id}", response_model=ServiceResult[TransactionResponse])
async def update_transaction(
    transaction_id: UUID,
    payload: TransactionUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.update_transaction(db, current_user, transaction_id, payload))


@router.post("/transactions/{transaction_id}/approve", response_model=ServiceResult[TransactionResponse])
async def approve_transaction(
    transaction_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await service.approve_transaction(db, current_user, transaction_id))


@router.post("/transactions/{transaction_id}/reject", response_model=ServiceResult[TransactionResponse])
async def reject_transaction(
    transaction_id: UUID,
    payload: TransactionReject,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await service.reject_transaction(db, current_user, transaction_id, payload.reason))


@router.post("/transactions/{transaction_id}/reverse", response_model=ServiceResult[TransactionResponse])
async def reverse_transaction(
    transaction_id: UUID,
    payload: TransactionReverse,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Post the opposite entry of an approved transaction."""
    result = await service.reverse_transaction(db, current_user, transaction_id, payload.reason, payload.date)
    return respond(result, status.HTTP_201_CREATED)


# ----- Allocations -----
@router.get("/allocations", response_model=ServiceResult[List[AllocationResponse]])
async def list_allocations(
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    status_filter: Optional[AllocationStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    result = await allocation_service.list_allocations(
        db, current_user, site_id=site_id, small_group_id=small_group_id, status=status_filter
    )
    return respond(result)


@router.post("/allocations", response_model=ServiceResult[AllocationResponse], status_code=status.HTTP_201_CREATED)
async def allocate_funds(
    payload: AllocationCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Allocate funds from the national reserve or a site to a site or small group."""
    return respond(await allocation_service.allocate_funds(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/allocations/{allocation_id}", response_model=ServiceResult[AllocationResponse])
async def get_allocation(
    allocation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await allocation_service.get_allocation(db, current_user, allocation_id))


@router.post("/allocations/{allocation_id}/complete", response_model=ServiceResult[AllocationResponse])
async def complete_allocation(
    allocation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await allocation_service.complete_allocation(db, current_user, allocation_id))


# ----- Balances -----
@router.get("/summary", response_model=ServiceResult[FinancialSummaryResponse])
async def financial_summary(
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    period_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Income, expenses, allocations and net balance for the caller's scope. Closed periods come from their snapshot."""
    result = await summary_service.financial_summary(
        db,
        current_user,
        site_id=site_id,
        small_group_id=small_group_id,
        start_date=start_date,
        end_date=end_date,
        period_id=period_id,
    )
    return respond(result)


@router.get("/budget/available", response_model=ServiceResult[AvailableBudgetResponse])
async def available_budget(
    site_id: Optional[UUID] = None,
    small_group_id: Optional[UUID] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await summary_service.available_budget(db, current_user, site_id, small_group_id))


# ----- Annual budgets -----
@router.get("/annual-budgets", response_model=ServiceResult[List[AnnualBudgetResponse]])
async def list_annual_budgets(
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await budget_service.list_annual_budgets(db, current_user))


@router.put("/annual-budgets", response_model=ServiceResult[AnnualBudgetResponse])
async def upsert_annual_budget(
    payload: AnnualBudgetUpsert,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Create or replace the budget of a year."""
    return respond(await budget_service.upsert_annual_budget(db, current_user, payload))


# ----- Accounting periods -----
@router.get("/periods", response_model=ServiceResult[List[PeriodResponse]])
async def list_periods(
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await period_service.list_periods(db, current_user))


@router.post("/periods", response_model=ServiceResult[PeriodResponse], status_code=status.HTTP_201_CREATED)
async def create_period(
    payload: PeriodCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await period_service.create_period(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/periods/{period_id}", response_model=ServiceResult[PeriodResponse])
async def get_period(
    period_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await period_service.get_period(db, current_user, period_id))


@router.post("/periods/{period_id}/close", response_model=ServiceResult[PeriodResponse])
async def close_period(
    period_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Close a period and freeze its figures. Closed periods cannot be reopened."""
    return respond(await period_service.close_period(db, current_user, period_id))
