import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import RecordStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


def _profile_fk(name: str) -> ForeignKey:
    return ForeignKey("profiles.id", ondelete="SET NULL", use_alter=True, name=name)


class SmallGroup(Base):
    """Belongs to exactly one site; led by a small group leader with optional assistants."""

    __tablename__ = "small_groups"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=False, index=True)
    leader_id = Column(String(255), _profile_fk("fk_small_groups_leader_id"), nullable=True)
    logistics_assistant_id = Column(String(255), _profile_fk("fk_small_groups_logistics_id"), nullable=True)
    finance_assistant_id = Column(String(255), _profile_fk("fk_small_groups_finance_id"), nullable=True)
    meeting_day = Column(String(20), nullable=True)
    meeting_time = Column(String(10), nullable=True)  # e.g. "18:00"
    meeting_location = Column(String(255), nullable=True)
    record_status = Column(String(20), nullable=False, default=RecordStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    site = relationship("Site", back_populates="small_groups")
    leader = relationship("Profile", foreign_keys=[leader_id])
