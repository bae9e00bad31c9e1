import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import RecordStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class Site(Base):
    """Geographic/organizational unit. Owns its small groups and members."""

    __tablename__ = "sites"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    city = Column(String(100), nullable=True)
    country = Column(String(100), nullable=True)
    creation_date = Column(Date, nullable=True)
    # Optional; profiles.site_id points back here, so the constraint is added after both tables exist
    coordinator_id = Column(
        String(255),
        ForeignKey("profiles.id", ondelete="SET NULL", use_alter=True, name="fk_sites_coordinator_id"),
        nullable=True,
    )
    record_status = Column(String(20), nullable=False, default=RecordStatus.active.value)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    coordinator = relationship("Profile", foreign_keys=[coordinator_id])
    small_groups = relationship("SmallGroup", back_populates="site")
