from fellowship.auth.models import Profile
from fellowship.core.models.site import Site
from fellowship.core.models.small_group import SmallGroup
from fellowship.core.models.member import Member
from fellowship.core.models.activity import Activity, ActivityType
from fellowship.core.models.report import Report
from fellowship.core.models.financial_transaction import FinancialTransaction
from fellowship.core.models.fund_allocation import FundAllocation
from fellowship.core.models.annual_budget import AnnualBudget
from fellowship.core.models.accounting_period import AccountingPeriod, PeriodSnapshot
from fellowship.core.models.audit_log import AuditLog
from fellowship.core.models.notification import Notification
from fellowship.core.models.invitation import Invitation
from fellowship.core.models.inventory import InventoryItem, InventoryMovement

__all__ = [
    "AccountingPeriod",
    "Activity",
    "ActivityType",
    "AnnualBudget",
    "AuditLog",
    "FinancialTransaction",
    "FundAllocation",
    "InventoryItem",
    "InventoryMovement",
    "Invitation",
    "Member",
    "Notification",
    "PeriodSnapshot",
    "Profile",
    "Report",
    "Site",
    "SmallGroup",
]
