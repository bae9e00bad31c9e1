from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import ActivityTypeCreate, ActivityTypeResponse

router = APIRouter(prefix="/api/v1/activity-types", tags=["activity-types"])


@router.get(
    "",
    response_model=ServiceResult[List[ActivityTypeResponse]],
    dependencies=[Depends(get_current_user)],
)
async def list_activity_types(db: AsyncSession = Depends(get_db)):
    """Activity types for the activity and report forms."""
    return respond(await service.list_activity_types(db))


@router.post("", response_model=ServiceResult[ActivityTypeResponse], status_code=status.HTTP_201_CREATED)
async def create_activity_type(
    payload: ActivityTypeCreate,
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    return respond(await service.create_activity_type(db, current_user, payload), status.HTTP_201_CREATED)
