from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fellowship.core.enums import RecordStatus


class SiteCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    creation_date: Optional[date] = None
    coordinator_id: Optional[str] = Field(None, description="Profile id of the site coordinator")


class SiteUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    city: Optional[str] = Field(None, max_length=100)
    country: Optional[str] = Field(None, max_length=100)
    creation_date: Optional[date] = None
    coordinator_id: Optional[str] = None


class SiteResponse(BaseModel):
    id: UUID
    name: str
    city: Optional[str] = None
    country: Optional[str] = None
    creation_date: Optional[date] = None
    coordinator_id: Optional[str] = None
    record_status: RecordStatus
    small_group_count: int = 0
    member_count: int = 0
    created_at: datetime
    updated_at: datetime
