"""
Accounting periods. Ledger writes dated inside a closed period are refused.
Closing a period writes exactly one PeriodSnapshot; snapshots are never updated.
"""

import uuid

from sqlalchemy import JSON, Column, Date, DateTime, ForeignKey, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.enums import PeriodStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class AccountingPeriod(Base):
    __tablename__ = "accounting_periods"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    type = Column(String(10), nullable=False)  # month | quarter | year
    start_date = Column(Date, nullable=False, index=True)
    end_date = Column(Date, nullable=False, index=True)
    status = Column(String(10), nullable=False, default=PeriodStatus.open.value)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    closed_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    snapshot = relationship("PeriodSnapshot", back_populates="period", uselist=False)


class PeriodSnapshot(Base):
    __tablename__ = "period_snapshots"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    period_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("accounting_periods.id", ondelete="RESTRICT"),
        nullable=False,
        unique=True,
    )
    total_income = Column(Numeric(14, 2), nullable=False)
    total_expenses = Column(Numeric(14, 2), nullable=False)
    total_allocated = Column(Numeric(14, 2), nullable=False)
    net_balance = Column(Numeric(14, 2), nullable=False)
    # {"<site_id>": {"income": "...", "expenses": "...", "allocated": "...", "net_balance": "..."}}
    site_breakdown = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    period = relationship("AccountingPeriod", back_populates="snapshot")
