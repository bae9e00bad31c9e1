import uuid

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import ReportStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class Report(Base):
    """
    Narrative and financial account of an activity.
    submitted/pending -> approved | rejected; both outcomes are terminal.
    """

    __tablename__ = "reports"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    activity_date = Column(Date, nullable=False, index=True)
    level = Column(String(20), nullable=False)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="RESTRICT"), nullable=True, index=True)
    activity_type_id = Column(Uuid(as_uuid=True), ForeignKey("activity_types.id", ondelete="RESTRICT"), nullable=False)
    # One report per activity
    activity_id = Column(Uuid(as_uuid=True), ForeignKey("activities.id", ondelete="SET NULL"), nullable=True, unique=True)
    thematic = Column(String(255), nullable=False)
    speaker = Column(String(255), nullable=True)
    moderator = Column(String(255), nullable=True)
    girls_count = Column(Integer, nullable=True)
    boys_count = Column(Integer, nullable=True)
    participants_count = Column(Integer, nullable=True)
    total_expenses = Column(Numeric(12, 2), nullable=True)
    currency = Column(String(3), nullable=False)
    content = Column(Text, nullable=False)
    financial_summary = Column(Text, nullable=True)
    images = Column(JSON, nullable=False, default=list)  # [{"url": ..., "description": ...}]
    attachments = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=ReportStatus.submitted.value)
    submitted_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, index=True)
    submission_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    reviewed_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    review_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    activity = relationship("Activity", foreign_keys=[activity_id])
    submitted_by = relationship("Profile", foreign_keys=[submitted_by_id])
