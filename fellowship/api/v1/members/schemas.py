from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from fellowship.core.enums import Level, MemberGender, MemberType, RecordStatus


class MemberCreate(BaseModel):
    """Level decides the required scoping ids: site -> site_id, small_group -> small_group_id."""

    name: str = Field(..., min_length=1, max_length=255)
    gender: MemberGender
    type: MemberType
    join_date: date
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    level: Level
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    user_id: Optional[str] = Field(None, description="Linked login profile, if any")


class MemberUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    gender: Optional[MemberGender] = None
    type: Optional[MemberType] = None
    join_date: Optional[date] = None
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[EmailStr] = None
    level: Optional[Level] = None
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None


class MemberResponse(BaseModel):
    id: UUID
    user_id: Optional[str] = None
    name: str
    gender: MemberGender
    type: MemberType
    join_date: date
    phone: Optional[str] = None
    email: Optional[str] = None
    level: Level
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    record_status: RecordStatus
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
