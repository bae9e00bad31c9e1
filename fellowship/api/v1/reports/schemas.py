import datetime as dt
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from fellowship.core.enums import Level, ReportStatus

MAX_REPORT_IMAGES = 10


def _check_url(value: str) -> str:
    value = value.strip()
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL")
    return value


class ReportImage(BaseModel):
    url: str = Field(..., max_length=2048)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)


class ReportAttachment(BaseModel):
    url: str = Field(..., max_length=2048)
    name: Optional[str] = Field(None, max_length=255)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        return _check_url(v)


class ReportCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    activity_date: dt.date
    level: Level
    activity_type_id: UUID
    thematic: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    activity_id: Optional[UUID] = Field(None, description="At most one report per activity")
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    speaker: Optional[str] = Field(None, max_length=255)
    moderator: Optional[str] = Field(None, max_length=255)
    girls_count: Optional[int] = Field(None, ge=0)
    boys_count: Optional[int] = Field(None, ge=0)
    participants_count: Optional[int] = Field(None, ge=0)
    total_expenses: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)
    financial_summary: Optional[str] = None
    images: List[ReportImage] = Field(default_factory=list, max_length=MAX_REPORT_IMAGES)
    attachments: List[ReportAttachment] = Field(default_factory=list)


class ReportUpdate(BaseModel):
    """Editable while the report awaits review."""

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    activity_date: Optional[dt.date] = None
    thematic: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    speaker: Optional[str] = Field(None, max_length=255)
    moderator: Optional[str] = Field(None, max_length=255)
    girls_count: Optional[int] = Field(None, ge=0)
    boys_count: Optional[int] = Field(None, ge=0)
    participants_count: Optional[int] = Field(None, ge=0)
    total_expenses: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    financial_summary: Optional[str] = None
    images: Optional[List[ReportImage]] = Field(None, max_length=MAX_REPORT_IMAGES)
    attachments: Optional[List[ReportAttachment]] = None


class ReportApprove(BaseModel):
    notes: Optional[str] = Field(None, max_length=2000)


class ReportReject(BaseModel):
    reason: str = Field(..., max_length=2000)
    notes: Optional[str] = Field(None, max_length=2000)


class ReportResponse(BaseModel):
    id: UUID
    title: str
    activity_date: dt.date
    level: Level
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
    activity_type_id: UUID
    activity_id: Optional[UUID] = None
    thematic: str
    speaker: Optional[str] = None
    moderator: Optional[str] = None
    girls_count: Optional[int] = None
    boys_count: Optional[int] = None
    participants_count: Optional[int] = None
    total_expenses: Optional[Decimal] = None
    currency: str
    content: str
    financial_summary: Optional[str] = None
    images: List[ReportImage]
    attachments: List[ReportAttachment]
    status: ReportStatus
    submitted_by_id: str
    submission_date: dt.datetime
    reviewed_by_id: Optional[str] = None
    reviewed_at: Optional[dt.datetime] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    generated_transaction_ids: List[UUID] = Field(default_factory=list)

    class Config:
        from_attributes = True
