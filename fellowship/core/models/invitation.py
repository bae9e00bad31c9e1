import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, String, Uuid

from fellowship.core.enums import InvitationStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class Invitation(Base):
    """Binds an email to a role and optional site/small group until accepted or expired."""

    __tablename__ = "invitations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, unique=True, index=True)
    token = Column(String(64), nullable=False, unique=True, index=True)
    role = Column(String(50), nullable=False)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="SET NULL"), nullable=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="SET NULL"), nullable=True)
    mandate_start_date = Column(Date, nullable=True)
    mandate_end_date = Column(Date, nullable=True)
    status = Column(String(20), nullable=False, default=InvitationStatus.pending.value)
    invited_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
