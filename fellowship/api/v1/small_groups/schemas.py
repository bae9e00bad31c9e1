from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fellowship.core.enums import RecordStatus


class SmallGroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    site_id: UUID
    leader_id: Optional[str] = None
    logistics_assistant_id: Optional[str] = None
    finance_assistant_id: Optional[str] = None
    meeting_day: Optional[str] = Field(None, max_length=20)
    meeting_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    meeting_location: Optional[str] = Field(None, max_length=255)


class SmallGroupUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    leader_id: Optional[str] = None
    logistics_assistant_id: Optional[str] = None
    finance_assistant_id: Optional[str] = None
    meeting_day: Optional[str] = Field(None, max_length=20)
    meeting_time: Optional[str] = Field(None, pattern=r"^\d{2}:\d{2}$")
    meeting_location: Optional[str] = Field(None, max_length=255)


class SmallGroupResponse(BaseModel):
    id: UUID
    name: str
    site_id: UUID
    leader_id: Optional[str] = None
    logistics_assistant_id: Optional[str] = None
    finance_assistant_id: Optional[str] = None
    meeting_day: Optional[str] = None
    meeting_time: Optional[str] = None
    meeting_location: Optional[str] = None
    record_status: RecordStatus
    member_count: int = 0
    created_at: datetime
    updated_at: datetime
