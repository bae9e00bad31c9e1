from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.finances.ledger import compute_wallet, ratio
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import scope
from fellowship.core.enums import REPORT_AWAITING_REVIEW, ActivityStatus, RecordStatus, ScopedResource, UserRole
from fellowship.core.models import Activity, Member, Report
from fellowship.core.result import service_result

from .schemas import DashboardMetrics


async def _count(db: AsyncSession, stmt) -> int:
    return int((await db.execute(stmt)).scalar_one())


@service_result
async def dashboard_metrics(db: AsyncSession, user: ActingUser) -> DashboardMetrics:
    """Headline counts for the caller's scope. Members get counts only, without budget figures."""
    members = await _count(
        db,
        select(func.count(Member.id)).where(
            scope(user, ScopedResource.member), Member.record_status == RecordStatus.active.value
        ),
    )
    ongoing = await _count(
        db,
        select(func.count(Activity.id)).where(
            scope(user, ScopedResource.activity),
            Activity.status == ActivityStatus.in_progress.value,
            Activity.record_status != RecordStatus.deleted.value,
        ),
    )
    pending = await _count(
        db,
        select(func.count(Report.id)).where(
            scope(user, ScopedResource.report),
            Report.status.in_([s.value for s in REPORT_AWAITING_REVIEW]),
        ),
    )

    site_id = small_group_id = None
    utilization = None
    if user.role == UserRole.NATIONAL_COORDINATOR:
        wallet = await compute_wallet(db)
        utilization = ratio(wallet.expenses, wallet.income)
    elif user.role == UserRole.SITE_COORDINATOR and user.site_id is not None:
        site_id = user.site_id
        wallet = await compute_wallet(db, site_id=site_id)
        utilization = ratio(wallet.expenses, wallet.income)
    elif user.role == UserRole.SMALL_GROUP_LEADER and user.small_group_id is not None:
        site_id, small_group_id = user.site_id, user.small_group_id
        wallet = await compute_wallet(db, small_group_id=small_group_id)
        utilization = ratio(wallet.expenses, wallet.income)

    return DashboardMetrics(
        total_members=members,
        ongoing_activities=ongoing,
        pending_reports=pending,
        budget_utilization=utilization,
        site_id=site_id,
        small_group_id=small_group_id,
    )
