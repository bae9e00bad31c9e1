from datetime import date
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import ActivityStatus, Level
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import ActivityCreate, ActivityResponse, ActivityStatusChange, ActivitySweepResult, ActivityUpdate

router = APIRouter(prefix="/api/v1/activities", tags=["activities"])


@router.get("", response_model=ServiceResult[List[ActivityResponse]])
async def list_activities(
    status_filter: Optional[ActivityStatus] = Query(None, alias="status"),
    level: Optional[Level] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Activities visible to the current user, latest first."""
    result = await service.list_activities(
        db,
        current_user,
        status=status_filter,
        level=level,
        start_date=start_date,
        end_date=end_date,
        search=search,
    )
    return respond(result)


@router.post("", response_model=ServiceResult[ActivityResponse], status_code=status.HTTP_201_CREATED)
async def create_activity(
    payload: ActivityCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """Plan an activity. Site coordinators are pinned to their site, leaders to their small group."""
    return respond(await service.create_activity(db, current_user, payload), status.HTTP_201_CREATED)


@router.post("/sweep", response_model=ServiceResult[ActivitySweepResult])
async def sweep_activity_statuses(
    on: Optional[date] = None,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Start activities whose date has come and flag unreported past ones as delayed."""
    return respond(await service.sweep_activity_statuses(db, current_user, on))


@router.get("/{activity_id}", response_model=ServiceResult[ActivityResponse])
async def get_activity(
    activity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.get_activity(db, current_user, activity_id))


@router.put("/{activity_id}", response_model=ServiceResult[ActivityResponse])
async def update_activity(
    activity_id: UUID,
    payload: ActivityUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.update_activity(db, current_user, activity_id, payload))


@router.post("/{activity_id}/start", response_model=ServiceResult[ActivityResponse])
async def start_activity(
    activity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    """planned -> in_progress."""
    return respond(await service.start_activity(db, current_user, activity_id))


@router.post("/{activity_id}/status", response_model=ServiceResult[ActivityResponse])
async def change_activity_status(
    activity_id: UUID,
    payload: ActivityStatusChange,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.change_activity_status(db, current_user, activity_id, payload.status))


@router.delete("/{activity_id}", response_model=ServiceResult[None])
async def delete_activity(
    activity_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.delete_activity(db, current_user, activity_id))
