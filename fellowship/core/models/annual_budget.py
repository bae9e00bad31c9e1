import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid

from fellowship.core.enums import BudgetStatus
from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class AnnualBudget(Base):
    """Yearly ceiling. One row per year."""

    __tablename__ = "annual_budgets"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    year = Column(Integer, nullable=False, unique=True)
    total_amount = Column(Numeric(14, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(20), nullable=False, default=BudgetStatus.active.value)
    notes = Column(Text, nullable=True)
    created_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
