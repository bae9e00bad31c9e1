from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.rbac import require_national
from fellowship.auth.schemas import ActingUser
from fellowship.core.result import ServiceResult, respond
from fellowship.db.session import get_db

from . import service
from .schemas import AuditLogResponse

router = APIRouter(prefix="/api/v1/audit-logs", tags=["audit-logs"])


@router.get("", response_model=ServiceResult[List[AuditLogResponse]])
async def list_audit_logs(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    from_date: Optional[datetime] = Query(None, alias="from"),
    to_date: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(100, ge=1, le=service.MAX_AUDIT_LIMIT),
    db: AsyncSession = Depends(get_db),
    current_user: ActingUser = Depends(require_national),
):
    """Audit trail, newest first. National coordinators only."""
    result = await service.list_audit_logs(
        db,
        current_user,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        from_date=from_date,
        to_date=to_date,
        limit=limit,
    )
    return respond(result)
