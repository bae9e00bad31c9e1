"""Ledger entry. Only approved rows count towards balances."""

import uuid

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Numeric, String, Text, Uuid

from fellowship.core.enums import TransactionStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class FinancialTransaction(Base):
    __tablename__ = "financial_transactions"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    date = Column(Date, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    type = Column(String(10), nullable=False)  # income | expense
    category = Column(String(100), nullable=False)
    description = Column(Text, nullable=False, default="")
    currency = Column(String(3), nullable=False)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="RESTRICT"), nullable=True, index=True)
    related_report_id = Column(Uuid(as_uuid=True), ForeignKey("reports.id", ondelete="SET NULL"), nullable=True, index=True)
    related_activity_id = Column(Uuid(as_uuid=True), ForeignKey("activities.id", ondelete="SET NULL"), nullable=True)
    reversal_of_id = Column(Uuid(as_uuid=True), ForeignKey("financial_transactions.id", ondelete="RESTRICT"), nullable=True)
    proof_url = Column(String(2048), nullable=True)
    status = Column(String(20), nullable=False, default=TransactionStatus.pending.value)
    # Generated by report approval; cannot be edited by hand
    is_system_generated = Column(Boolean, nullable=False, default=False)
    recorded_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True)
    approved_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
