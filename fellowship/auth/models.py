from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import ProfileStatus, UserRole
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class Profile(Base):
    """
    Internal user record keyed by the external identity provider's user id.
    Never hard-deleted: deactivation sets status=inactive.
    """

    __tablename__ = "profiles"

    # Identity provider subject (e.g. "kp_1a2b..."); not generated here
    id = Column(String(255), primary_key=True)
    email = Column(String(255), nullable=True, index=True)
    name = Column(String(255), nullable=False, default="")
    role = Column(String(50), nullable=False, default=UserRole.MEMBER.value)
    status = Column(String(20), nullable=False, default=ProfileStatus.active.value)
    # Assignment references, not containment
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="SET NULL"), nullable=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="SET NULL"), nullable=True)
    mandate_start_date = Column(Date, nullable=True)
    mandate_end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    site = relationship("Site", foreign_keys=[site_id])
    small_group = relationship("SmallGroup", foreign_keys=[small_group_id])
