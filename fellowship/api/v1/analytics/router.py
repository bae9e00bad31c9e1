from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.dependencies import get_current_user
from fellowship.auth.schemas import ActingUser
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import DashboardMetrics

router = APIRouter(prefix="/api/v1/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=ServiceResult[DashboardMetrics])
async def dashboard_metrics(
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(get_current_user),
):
    return respond(await service.dashboard_metrics(db, current_user))
