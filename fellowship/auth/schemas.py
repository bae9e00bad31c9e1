from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from fellowship.core.enums import ProfileStatus, UserRole


class IdentityClaims(BaseModel):
    """Claims taken from the identity provider's bearer token."""

    sub: str
    email: Optional[str] = None
    name: Optional[str] = None


class ActingUser(BaseModel):
    """
    The resolved caller. Passed explicitly into every service function that reads or writes scoped data.
    is_provisional: no Profile row exists yet (first-seen identity); defaults were synthesized.
    """

    id: str
    email: Optional[str] = None
    name: str = ""
    role: UserRole = UserRole.MEMBER
    status: ProfileStatus = ProfileStatus.active
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    is_provisional: bool = False

    @property
    def is_national(self) -> bool:
        return self.role == UserRole.NATIONAL_COORDINATOR


class ProfileResponse(BaseModel):
    id: str
    email: Optional[str] = None
    name: str
    role: UserRole
    status: ProfileStatus
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    mandate_start_date: Optional[date] = None
    mandate_end_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProfileSelfUpdate(BaseModel):
    """Fields a user may change on their own profile. Role and assignment are admin-only."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    mandate_start_date: Optional[date] = None
    mandate_end_date: Optional[date] = None


class UserAssignmentUpdate(BaseModel):
    role: Optional[UserRole] = None
    status: Optional[ProfileStatus] = None
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    mandate_start_date: Optional[date] = None
    mandate_end_date: Optional[date] = None
