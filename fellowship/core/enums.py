from enum import Enum
from typing import Dict, FrozenSet


class UserRole(str, Enum):
    NATIONAL_COORDINATOR = "national_coordinator"
    SITE_COORDINATOR = "site_coordinator"
    SMALL_GROUP_LEADER = "small_group_leader"
    MEMBER = "member"


class ProfileStatus(str, Enum):
    active = "active"
    inactive = "inactive"
    invited = "invited"


class Level(str, Enum):
    national = "national"
    site = "site"
    small_group = "small_group"


class RecordStatus(str, Enum):
    active = "active"
    archived = "archived"
    deleted = "deleted"


class MemberGender(str, Enum):
    male = "male"
    female = "female"


class MemberType(str, Enum):
    student = "student"
    non_student = "non-student"


class ActivityStatus(str, Enum):
    planned = "planned"
    in_progress = "in_progress"
    executed = "executed"
    delayed = "delayed"
    canceled = "canceled"


ACTIVITY_TRANSITIONS: Dict[ActivityStatus, FrozenSet[ActivityStatus]] = {
    ActivityStatus.planned: frozenset({ActivityStatus.in_progress, ActivityStatus.delayed, ActivityStatus.canceled}),
    ActivityStatus.in_progress: frozenset({ActivityStatus.executed, ActivityStatus.delayed, ActivityStatus.canceled}),
    ActivityStatus.delayed: frozenset({ActivityStatus.in_progress, ActivityStatus.executed, ActivityStatus.canceled}),
    ActivityStatus.executed: frozenset(),
    ActivityStatus.canceled: frozenset(),
}


def can_transition(current: ActivityStatus, target: ActivityStatus) -> bool:
    return target in ACTIVITY_TRANSITIONS[current]


class ReportStatus(str, Enum):
    pending = "pending"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"


# pending and submitted are both "awaiting review"
REPORT_AWAITING_REVIEW: FrozenSet[ReportStatus] = frozenset({ReportStatus.pending, ReportStatus.submitted})


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class AllocationStatus(str, Enum):
    planned = "planned"
    completed = "completed"


class AllocationType(str, Enum):
    hierarchical = "hierarchical"
    direct = "direct"


class BudgetStatus(str, Enum):
    active = "active"
    closed = "closed"


class PeriodType(str, Enum):
    month = "month"
    quarter = "quarter"
    year = "year"


class PeriodStatus(str, Enum):
    open = "open"
    closed = "closed"


class InvitationStatus(str, Enum):
    pending = "pending"
    accepted = "accepted"
    expired = "expired"


class MovementDirection(str, Enum):
    incoming = "in"
    outgoing = "out"


class NotificationType(str, Enum):
    REPORT_APPROVED = "REPORT_APPROVED"
    REPORT_REJECTED = "REPORT_REJECTED"
    NEW_REPORT = "NEW_REPORT"
    ALLOCATION_RECEIVED = "ALLOCATION_RECEIVED"
    BUDGET_ALERT = "BUDGET_ALERT"
    USER_INVITED = "USER_INVITED"


class ScopedResource(str, Enum):
    member = "member"
    activity = "activity"
    report = "report"
    transaction = "transaction"
    allocation = "allocation"
    inventory = "inventory"
