import datetime as dt
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fellowship.core.enums import ActivityStatus, Level, RecordStatus


class ActivityTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    category: str = Field(..., description="spiritual, outreach, community, training")
    description: Optional[str] = Field(None, max_length=2000)


class ActivityTypeResponse(BaseModel):
    id: UUID
    name: str
    category: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class ActivityCreate(BaseModel):
    """Level decides the required scoping ids: site -> site_id, small_group -> small_group_id."""

    title: str = Field(..., min_length=1, max_length=255)
    thematic: str = Field(..., min_length=1, max_length=255)
    date: dt.date
    level: Level
    activity_type_id: UUID
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    participants_count_planned: Optional[int] = Field(None, ge=0)


class ActivityUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    thematic: Optional[str] = Field(None, min_length=1, max_length=255)
    date: Optional[dt.date] = None
    level: Optional[Level] = None
    activity_type_id: Optional[UUID] = None
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    participants_count_planned: Optional[int] = Field(None, ge=0)
    status: Optional[ActivityStatus] = Field(None, description="Must be an allowed transition from the current status")


class ActivityStatusChange(BaseModel):
    status: ActivityStatus


class ActivityResponse(BaseModel):
    id: UUID
    title: str
    thematic: str
    date: dt.date
    level: Level
    status: ActivityStatus
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    activity_type_id: UUID
    participants_count_planned: Optional[int] = None
    created_by_id: Optional[str] = None
    record_status: RecordStatus
    created_at: dt.datetime
    updated_at: dt.datetime

    class Config:
        from_attributes = True


class ActivitySweepResult(BaseModel):
    started: int
    delayed: int
