"""Inventory items and stock movements. Stock is the sum of movements, never stored."""

import uuid

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from fellowship.core.timeutils import utcnow
from fellowship.db.session import Base


class InventoryItem(Base):
    __tablename__ = "inventory_items"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    category = Column(String(100), nullable=False)
    unit = Column(String(30), nullable=False, default="unit")
    description = Column(Text, nullable=True)
    site_id = Column(Uuid(as_uuid=True), ForeignKey("sites.id", ondelete="RESTRICT"), nullable=True, index=True)
    small_group_id = Column(Uuid(as_uuid=True), ForeignKey("small_groups.id", ondelete="RESTRICT"), nullable=True, index=True)
    created_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    movements = relationship("InventoryMovement", back_populates="item")


class InventoryMovement(Base):
    __tablename__ = "inventory_movements"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    item_id = Column(Uuid(as_uuid=True), ForeignKey("inventory_items.id", ondelete="RESTRICT"), nullable=False, index=True)
    direction = Column(String(3), nullable=False)  # in | out
    quantity = Column(Integer, nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(String(255), nullable=False)
    related_transaction_id = Column(Uuid(as_uuid=True), ForeignKey("financial_transactions.id", ondelete="SET NULL"), nullable=True)
    related_report_id = Column(Uuid(as_uuid=True), ForeignKey("reports.id", ondelete="SET NULL"), nullable=True)
    recorded_by_id = Column(String(255), ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    item = relationship("InventoryItem", back_populates="movements")
