"""
Directed transfer from the national reserve (from_site_id is NULL) or a site
to a site or a small group.
"""

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid

from fellowship.core.enums import AllocationStatus, AllocationType
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class FundAllocation(Base):
    __tablename__ = "fund_allocations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    allocation_date = Column(Date, nullable=False, index=True)
    goal = Column(String(255), nullable=False)
    source = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    proof_url = Column(String(2048), nullable=True)
    status = Column(String(20), nullable=False, default=AllocationStatus.completed.value)
    allocation_type = Column(String(20), nullable=False, default=AllocationType.hierarchical.value)
    bypass_reason = Column(Text, nullable=True)
    from_site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="RESTRICT"), nullable=True, index=True)
    allocated_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
