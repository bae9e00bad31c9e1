"""
Audit trail: append one row per mutating action, inside the caller's transaction.
No update or delete path exists.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.schemas import ActingUser
from fellowship.core.exceptions import ForbiddenError, ValidationFailed
from fellowship.core.models import AuditLog
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware, utcnow

from .schemas import AuditLogResponse

MAX_AUDIT_LIMIT = 500


def log_audit(
    db: AsyncSession,
    actor_id: Optional[str],
    action: str,
    entity_type: str,
    entity_id: Any,
    details: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """Append one audit log entry. Caller must commit."""
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details=details or {},
        created_at=utcnow(),
    )
    db.add(entry)
    return entry


def _to_response(row: AuditLog) -> AuditLogResponse:
    return AuditLogResponse(
        id=row.id,
        actor_id=row.actor_id,
        action=row.action,
        entity_type=row.entity_type,
        entity_id=row.entity_id,
        metadata=row.details,
        created_at=as_aware(row.created_at),
    )


@service_result
async def list_audit_logs(
    db: AsyncSession,
    user: ActingUser,
    *,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    actor_id: Optional[str] = None,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None,
    limit: int = 100,
) -> List[AuditLogResponse]:
    """Newest first. National coordinators only."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can view the audit log")
    if limit < 1 or limit > MAX_AUDIT_LIMIT:
        raise ValidationFailed(f"limit must be between 1 and {MAX_AUDIT_LIMIT}")

    stmt = select(AuditLog)
    if entity_type:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if actor_id:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    if from_date:
        stmt = stmt.where(AuditLog.created_at >= from_date)
    if to_date:
        stmt = stmt.where(AuditLog.created_at <= to_date)
    stmt = stmt.order_by(AuditLog.created_at.desc()).limit(limit)
    result = await db.execute(stmt)
    return [_to_response(r) for r in result.scalars().all()]
