from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel

from fellowship.core.enums import NotificationType


class NotificationResponse(BaseModel):
    id: UUID
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
