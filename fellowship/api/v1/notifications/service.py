"""Notifications are only created as side effects of workflow events; users can only list their own."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import NotificationType, ProfileStatus, UserRole
from fellowship.core.exceptions import ValidationFailed
from fellowship.core.models import Notification, Profile
from fellowship.core.result import service_result
from fellowship.core.timeutils import as_aware, utcnow

from .schemas import NotificationResponse

logger = logging.getLogger(__name__)


def notify(
    db: AsyncSession,
    user_id: str,
    type_: NotificationType,
    title: str,
    message: str,
    *,
    link: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Notification:
    """Queue a notification in the caller's transaction. Caller must commit."""
    row = Notification(
        user_id=user_id,
        type=type_.value,
        title=title,
        message=message,
        link=link,
        details=details or {},
        created_at=utcnow(),
    )
    db.add(row)
    return row


async def notify_national_coordinators(
    db: AsyncSession,
    type_: NotificationType,
    title: str,
    message: str,
    *,
    link: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
    exclude_user_id: Optional[str] = None,
) -> int:
    """Fan out to every active national coordinator. Returns the number queued. Caller must commit."""
    result = await db.execute(
        select(Profile.id).where(
            Profile.role == UserRole.NATIONAL_COORDINATOR.value,
            Profile.status == ProfileStatus.active.value,
        )
    )
    count = 0
    for user_id in result.scalars().all():
        if user_id == exclude_user_id:
            continue
        notify(db, user_id, type_, title, message, link=link, details=details)
        count += 1
    logger.debug("Queued %s %s notification(s) for national coordinators", count, type_.value)
    return count


def _to_response(row: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        title=row.title,
        message=row.message,
        link=row.link,
        metadata=row.details,
        created_at=as_aware(row.created_at),
    )


@service_result
async def list_my_notifications(db: AsyncSession, user: ActingUser, limit: int = 50) -> List[NotificationResponse]:
    if limit < 1 or limit > 200:
        raise ValidationFailed("limit must be between 1 and 200")
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user.id)
        .order_by(Notification.created_at.desc())
        .limit(limit)
    )
    return [_to_response(r) for r in result.scalars().all()]
