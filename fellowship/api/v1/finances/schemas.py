"""Finance schemas: transactions, allocations, balances, annual budgets and accounting periods."""

import datetime as dt
from decimal import Decimal
from typing import Dict, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from fellowship.core.enums import (
    AllocationStatus,
    AllocationType,
    BudgetStatus,
    PeriodStatus,
    PeriodType,
    TransactionStatus,
    TransactionType,
)


# --- Transactions ---
class TransactionCreate(BaseModel):
    date: dt.date
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    description: str = Field("", max_length=2000)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    proof_url: Optional[str] = Field(None, max_length=2048)
    related_report_id: Optional[UUID] = None
    related_activity_id: Optional[UUID] = None


class TransactionUpdate(BaseModel):
    date: Optional[dt.date] = None
    amount: Optional[Decimal] = Field(None, gt=0, max_digits=12, decimal_places=2)
    category: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=2000)
    proof_url: Optional[str] = Field(None, max_length=2048)


class TransactionReject(BaseModel):
    reason: str = Field(..., max_length=2000)


class TransactionReverse(BaseModel):
    reason: str = Field(..., min_length=1, max_length=2000)
    date: Optional[dt.date] = Field(None, description="Defaults to today")


class TransactionResponse(BaseModel):
    id: UUID
    date: dt.date
    amount: Decimal
    type: TransactionType
    category: str
    description: str
    currency: str
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    related_report_id: Optional[UUID] = None
    related_activity_id: Optional[UUID] = None
    reversal_of_id: Optional[UUID] = None
    proof_url: Optional[str] = None
    status: TransactionStatus
    is_system_generated: bool
    recorded_by_id: Optional[str] = None
    approved_by_id: Optional[str] = None
    approved_at: Optional[dt.datetime] = None
    rejection_reason: Optional[str] = None
    created_at: dt.datetime

    class Config:
        from_attributes = True


# --- Allocations ---
class AllocationCreate(BaseModel):
    """
    Source: from_site_id (omit for the national reserve).
    Destination: site_id for a site, or small_group_id for a small group.
    """

    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    allocation_date: dt.date
    goal: str = Field(..., min_length=1, max_length=255)
    source: str = Field("National reserve", max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    proof_url: Optional[str] = Field(None, max_length=2048)
    status: AllocationStatus = AllocationStatus.completed
    from_site_id: Optional[UUID] = None
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    bypass_reason: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def validate_destination(self) -> "AllocationCreate":
        if self.site_id is None and self.small_group_id is None:
            raise ValueError("Either site_id or small_group_id is required")
        return self


class AllocationResponse(BaseModel):
    id: UUID
    amount: Decimal
    currency: str
    allocation_date: dt.date
    goal: str
    source: str
    notes: Optional[str] = None
    proof_url: Optional[str] = None
    status: AllocationStatus
    allocation_type: AllocationType
    bypass_reason: Optional[str] = None
    from_site_id: Optional[UUID] = None
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    allocated_by_id: Optional[str] = None
    completed_at: Optional[dt.datetime] = None
    created_at: dt.datetime
    budget_warning: Optional[str] = Field(None, description="Set when the source balance did not cover the amount")

    class Config:
        from_attributes = True


# --- Balances ---
class AvailableBudgetResponse(BaseModel):
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    available: Optional[Decimal] = Field(None, description="None means unlimited (national reserve)")
    received: Decimal
    sent: Decimal
    direct_income: Decimal
    expenses: Decimal


class FinancialSummaryResponse(BaseModel):
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    period_id: Optional[UUID] = None
    income: Decimal
    expenses: Decimal
    total_allocated: Decimal
    total_spent: Decimal
    net_balance: Decimal
    budget_utilization: Decimal
    central_reserve: Optional[Decimal] = None
    annual_budget: Optional[Decimal] = None
    from_snapshot: bool = False


# --- Annual budgets ---
class AnnualBudgetUpsert(BaseModel):
    year: int = Field(..., ge=2000, le=2100)
    total_amount: Decimal = Field(..., ge=0, max_digits=14, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    status: BudgetStatus = BudgetStatus.active
    notes: Optional[str] = Field(None, max_length=2000)


class AnnualBudgetResponse(BaseModel):
    id: UUID
    year: int
    total_amount: Decimal
    currency: str
    status: BudgetStatus
    notes: Optional[str] = None
    created_by_id: Optional[str] = None
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


# --- Accounting periods ---
class PeriodCreate(BaseModel):
    type: PeriodType
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def validate_range(self) -> "PeriodCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must be on or after start_date")
        return self


class SiteTotals(BaseModel):
    income: Decimal
    expenses: Decimal
    allocated: Decimal
    net_balance: Decimal


class PeriodSnapshotResponse(BaseModel):
    id: UUID
    period_id: UUID
    total_income: Decimal
    total_expenses: Decimal
    total_allocated: Decimal
    net_balance: Decimal
    site_breakdown: Dict[str, SiteTotals]
    created_at: dt.datetime


class PeriodResponse(BaseModel):
    id: UUID
    type: PeriodType
    start_date: dt.date
    end_date: dt.date
    status: PeriodStatus
    closed_at: Optional[dt.datetime] = None
    closed_by_id: Optional[str] = None
    created_at: dt.datetime
    snapshot: Optional[PeriodSnapshotResponse] = None
