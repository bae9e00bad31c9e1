from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: UUID
    actor_id: Optional[str] = None
    action: str
    entity_type: str
    entity_id: str
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime
