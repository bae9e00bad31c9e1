import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import ActivityStatus, RecordStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class ActivityType(Base):
    __tablename__ = "activity_types"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    category = Column(String(50), nullable=False)  # spiritual | outreach | community | training
    description = Column(Text, nullable=True)


class Activity(Base):
    """
    Planned or executed event at national, site or small-group level.
    Status only moves along ACTIVITY_TRANSITIONS (see core.enums).
    """

    __tablename__ = "activities"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    thematic = Column(String(255), nullable=False)
    date = Column(Date, nullable=False, index=True)
    level = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=ActivityStatus.planned.value)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="RESTRICT"), nullable=True, index=True)
    activity_type_id = Column(Uuid(as_uuid=True), ForeignKey("activity_types.id", ondelete="RESTRICT"), nullable=False)
    participants_count_planned = Column(Integer, nullable=True)
    created_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    record_status = Column(String(20), nullable=False, default=RecordStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    site = relationship("Site", foreign_keys=[site_id])
    small_group = relationship("SmallGroup", foreign_keys=[small_group_id])
    activity_type = relationship("ActivityType")
