from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from fellowship.core.enums import InvitationStatus, ProfileStatus, UserRole


class InvitationCreate(BaseModel):
    email: EmailStr
    role: UserRole
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    mandate_start_date: Optional[date] = None
    mandate_end_date: Optional[date] = None


class InvitationAccept(BaseModel):
    token: str = Field(..., min_length=1, max_length=64)


class InvitedProfile(BaseModel):
    """Current state of the profile behind an accepted invitation, read live."""

    id: str
    name: str
    role: UserRole
    status: ProfileStatus
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None


class InvitationResponse(BaseModel):
    id: UUID
    email: str
    role: UserRole
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    mandate_start_date: Optional[date] = None
    mandate_end_date: Optional[date] = None
    status: InvitationStatus
    invited_by_id: Optional[str] = None
    accepted_at: Optional[datetime] = None
    expires_at: datetime
    created_at: datetime
    token: Optional[str] = Field(None, description="Only returned to the inviter on create")
    profile: Optional[InvitedProfile] = None
