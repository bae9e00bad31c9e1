from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DashboardMetrics(BaseModel):
    total_members: int
    ongoing_activities: int
    pending_reports: int
    budget_utilization: Optional[Decimal] = Field(None, description="expenses / income for the caller's scope")
    site_id: Optional[UUID] = None
    small_group_id: Optional[UUID] = None
