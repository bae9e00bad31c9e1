import uuid

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String, Text, Uuid

from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class Notification(Base):
    """User-scoped message created as a side effect of workflow events."""

    __tablename__ = "notifications"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(String(255), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(50), nullable=False)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    link = Column(String(512), nullable=True)
    details = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
