"""
Row-scoping policy.

scope() turns the acting user into a WHERE predicate for one resource type. It is recomputed on every
query from the live profile, so assignment changes take effect immediately. Missing assignments fail
closed: the predicate matches nothing rather than raising.
"""

from typing import Any, Optional
from uuid import UUID

from sqlalchemy import false, or_, true
from sqlalchemy.sql.elements import ColumnElement

from fellowship.auth.schemas import ActingUser
from fellowship.core.enums import ScopedResource, UserRole
from fellowship.core.models import Activity, FinancialTransaction, FundAllocation, InventoryItem, Member, Report

_MODELS = {
    ScopedResource.member: Member,
    ScopedResource.activity: Activity,
    ScopedResource.report: Report,
    ScopedResource.transaction: FinancialTransaction,
    ScopedResource.allocation: FundAllocation,
    ScopedResource.inventory: InventoryItem,
}


def _member_predicate(user: ActingUser, resource: ScopedResource) -> ColumnElement[bool]:
    if resource == ScopedResource.report:
        return Report.submitted_by_id == user.id
    if resource == ScopedResource.member:
        return Member.user_id == user.id
    if resource == ScopedResource.transaction:
        return FinancialTransaction.recorded_by_id == user.id
    if resource == ScopedResource.activity:
        # Own agenda: activities of the member's small group
        if user.small_group_id is None:
            return false()
        return Activity.small_group_id == user.small_group_id
    return false()


def scope(user: ActingUser, resource: ScopedResource) -> ColumnElement[bool]:
    """Visibility predicate for `resource` as seen by `user`."""
    model: Any = _MODELS[resource]

    if user.role == UserRole.NATIONAL_COORDINATOR:
        return true()

    if user.role == UserRole.SITE_COORDINATOR:
        if user.site_id is None:
            return false()
        if resource == ScopedResource.allocation:
            return or_(FundAllocation.site_id == user.site_id, FundAllocation.from_site_id == user.site_id)
        # Small-group rows carry their site_id, so this covers every group of the site
        return model.site_id == user.site_id

    if user.role == UserRole.SMALL_GROUP_LEADER:
        if user.small_group_id is None:
            return false()
        return model.small_group_id == user.small_group_id

    return _member_predicate(user, resource)


def can_manage_record(user: ActingUser, site_id: Optional[UUID], small_group_id: Optional[UUID]) -> bool:
    """Ownership gate for edits/deletes: national, same site for site coordinators, same group for leaders."""
    if user.role == UserRole.NATIONAL_COORDINATOR:
        return True
    if user.role == UserRole.SITE_COORDINATOR:
        return user.site_id is not None and site_id == user.site_id
    if user.role == UserRole.SMALL_GROUP_LEADER:
        return user.small_group_id is not None and small_group_id == user.small_group_id
    return False


def can_view_report(user: ActingUser, report: Report) -> bool:
    """Detail-level check; re-verified on every read rather than inferred from list filtering."""
    if user.role == UserRole.NATIONAL_COORDINATOR:
        return True
    if report.submitted_by_id == user.id:
        return True
    if user.role == UserRole.SITE_COORDINATOR:
        return user.site_id is not None and report.site_id == user.site_id
    if user.role == UserRole.SMALL_GROUP_LEADER:
        return user.small_group_id is not None and report.small_group_id == user.small_group_id
    return False
