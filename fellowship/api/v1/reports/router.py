from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import Level, ReportStatus
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import ReportApprove, ReportCreate, ReportReject, ReportResponse, ReportUpdate

router = APIRouter(prefix="/api/v1/reports", tags=["reports"])


@router.get("", response_model=ServiceResult[List[ReportResponse]])
async def list_reports(
    status_filter: Optional[ReportStatus] = Query(None, alias="status"),
    level: Optional[Level] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Reports visible to the current user, newest submission first. status=pending also matches submitted."""
    result = await service.list_reports(
        db,
        current_user,
        status=status_filter,
        level=level,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return respond(result)


@router.post("", response_model=ServiceResult[ReportResponse], status_code=status.HTTP_201_CREATED)
async def submit_report(
    payload: ReportCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.submit_report(db, current_user, payload), status.HTTP_201_CREATED)


@router.get("/{report_id}", response_model=ServiceResult[ReportResponse])
async def get_report(
    report_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_report(db, current_user, report_id))


@router.put("/{report_id}", response_model=ServiceResult[ReportResponse])
async def update_report(
    report_id: UUID,
    payload: ReportUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Edit a report that is still awaiting review."""
    return respond(await service.update_report(db, current_user, report_id, payload))


@router.delete("/{report_id}", response_model=ServiceResult[None])
async def delete_report(
    report_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.delete_report(db, current_user, report_id))


@router.post("/{report_id}/approve", response_model=ServiceResult[ReportResponse])
async def approve_report(
    report_id: UUID,
    payload: Optional[ReportApprove] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Approve and post the report's expenses to the ledger. A report can be approved once."""
    notes = payload.notes if payload else None
    return respond(await service.approve_report(db, current_user, report_id, notes))


@router.post("/{report_id}/reject", response_model=ServiceResult[ReportResponse])
async def reject_report(
    report_id: UUID,
    payload: ReportReject,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await service.reject_report(db, current_user, report_id, payload.reason, payload.notes))
