"""Participant record (not a login identity). Level decides which of site_id / small_group_id are set."""

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import RecordStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class Member(Base):
    __tablename__ = "members"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    # Optional link to a login profile
    user_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    name = Column(String(255), nullable=False)
    gender = Column(String(10), nullable=False)
    type = Column(String(20), nullable=False)  # student | non-student
    join_date = Column(Date, nullable=False)
    phone = Column(String(50), nullable=True)
    email = Column(String(255), nullable=True)
    level = Column(String(20), nullable=False)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="RESTRICT"), nullable=True, index=True)
    # Members are archived, never deleted
    record_status = Column(String(20), nullable=False, default=RecordStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    site = relationship("Site", foreign_keys=[site_id])
    small_group = relationship("SmallGroup", foreign_keys=[small_group_id])
