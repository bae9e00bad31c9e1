"""
Report workflow: submit -> (pending | submitted) -> approved | rejected.

Approval is one unit of work: the status flip, the linked activity moving to executed, the generated
expense transaction, the audit row and the submitter's notification are committed together or not at all.
"""

import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.activities.service import get_live_activity
from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.api.v1.finances.ledger import check_period_open, to_decimal
from fellowship.api.v1.finances.summary_service import check_budget_overrun
from fellowship.api.v1.notifications.service import notify, notify_national_coordinators
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import can_view_report, scope
from fellowship.core.config import settings
from fellowship.core.enums import (
    REPORT_AWAITING_REVIEW,
    ActivityStatus,
    Level,
    NotificationType,
    ReportStatus,
    ScopedResource,
    TransactionStatus,
    TransactionType,
    can_transition,
)
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.level_scope import resolve_level_scope
from fellowship.core.models import Activity, ActivityType, FinancialTransaction, Report
from fellowship.core.result import service_result
from fellowship.core.timeutils import utcnow

from .schemas import ReportCreate, ReportResponse, ReportUpdate

logger = logging.getLogger(__name__)

ACTIVITY_EXPENSE_CATEGORY = "Activity Expense"


def _to_response(report: Report, generated: Optional[List[UUID]] = None) -> ReportResponse:
    response = ReportResponse.model_validate(report)
    if report.total_expenses is not None:
        response.total_expenses = to_decimal(report.total_expenses)
    response.generated_transaction_ids = generated or []
    return response


def _awaiting_review(report: Report) -> bool:
    return ReportStatus(report.status) in REPORT_AWAITING_REVIEW


def _execution_path(current: ActivityStatus) -> List[ActivityStatus]:
    """Steps that take a reported activity to executed; a planned one goes through in_progress."""
    if can_transition(current, ActivityStatus.executed):
        return [ActivityStatus.executed]
    if can_transition(current, ActivityStatus.in_progress):
        return [ActivityStatus.in_progress, ActivityStatus.executed]
    return []


async def _get_report(db: AsyncSession, report_id: UUID, for_update: bool = False) -> Report:
    stmt = select(Report).where(Report.id == report_id)
    if for_update:
        stmt = stmt.with_for_update()
    report = (await db.execute(stmt)).scalar_one_or_none()
    if report is None:
        raise NotFoundError("Report not found")
    return report


def _check_author(user: ActingUser, report: Report) -> None:
    if not (user.is_national or report.submitted_by_id == user.id):
        raise ForbiddenError("Only the submitter or a national coordinator can change this report")


@service_result
async def submit_report(db: AsyncSession, user: ActingUser, payload: ReportCreate) -> ReportResponse:
    site_id, small_group_id = await resolve_level_scope(
        db, user, payload.level, payload.site_id, payload.small_group_id, entity="report"
    )
    if await db.get(ActivityType, payload.activity_type_id) is None:
        raise NotFoundError("Activity type not found")
    if payload.activity_id is not None:
        await get_live_activity(db, payload.activity_id)
        existing = await db.execute(select(Report.id).where(Report.activity_id == payload.activity_id))
        if existing.scalar_one_or_none() is not None:
            raise ConflictError("A report already exists for this activity")
    await check_period_open(db, payload.activity_date)

    participants = payload.participants_count
    if participants is None and payload.girls_count is not None and payload.boys_count is not None:
        participants = payload.girls_count + payload.boys_count

    report = Report(
        title=payload.title.strip(),
        activity_date=payload.activity_date,
        level=payload.level.value,
        site_id=site_id,
        small_group_id=small_group_id,
        activity_type_id=payload.activity_type_id,
        activity_id=payload.activity_id,
        thematic=payload.thematic.strip(),
        speaker=payload.speaker,
        moderator=payload.moderator,
        girls_count=payload.girls_count,
        boys_count=payload.boys_count,
        participants_count=participants,
        total_expenses=payload.total_expenses,
        currency=(payload.currency or settings.default_currency).upper(),
        content=payload.content,
        financial_summary=payload.financial_summary,
        images=[i.model_dump() for i in payload.images],
        attachments=[a.model_dump() for a in payload.attachments],
        status=ReportStatus.submitted.value,
        submitted_by_id=user.id,
        submission_date=utcnow(),
    )
    db.add(report)
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A report already exists for this activity")
    log_audit(db, user.id, "create", "report", report.id, {"level": report.level, "activity_id": str(payload.activity_id) if payload.activity_id else None})
    await db.commit()
    await db.refresh(report)
    logger.info("Report %s submitted by %s", report.id, user.id)

    try:
        await notify_national_coordinators(
            db,
            NotificationType.NEW_REPORT,
            "New report submitted",
            f'"{report.title}" is awaiting review.',
            link=f"/dashboard/reports/{report.id}",
            details={"report_id": str(report.id)},
            exclude_user_id=user.id,
        )
        await db.commit()
    except SQLAlchemyError:
        logger.exception("Could not notify reviewers of report %s", report.id)
        await db.rollback()
    return _to_response(report)


@service_result
async def list_reports(
    db: AsyncSession,
    user: ActingUser,
    *,
    status: Optional[ReportStatus] = None,
    level: Optional[Level] = None,
    start_date=None,
    end_date=None,
    search: Optional[str] = None,
) -> List[ReportResponse]:
    conditions = [scope(user, ScopedResource.report)]
    if status:
        if status in REPORT_AWAITING_REVIEW:
            conditions.append(Report.status.in_([s.value for s in REPORT_AWAITING_REVIEW]))
        else:
            conditions.append(Report.status == status.value)
    if level:
        conditions.append(Report.level == level.value)
    if start_date:
        conditions.append(Report.activity_date >= start_date)
    if end_date:
        conditions.append(Report.activity_date <= end_date)
    if search and search.strip():
        term = f"%{search.strip()}%"
        conditions.append(or_(Report.title.ilike(term), Report.thematic.ilike(term)))
    result = await db.execute(select(Report).where(and_(*conditions)).order_by(Report.submission_date.desc()))
    return [_to_response(r) for r in result.scalars().all()]


@service_result
async def get_report(db: AsyncSession, user: ActingUser, report_id: UUID) -> ReportResponse:
    """Detail access is re-checked here; passing the list filter is not enough."""
    report = await _get_report(db, report_id)
    if not can_view_report(user, report):
        raise ForbiddenError("You are not allowed to view this report")
    generated = await db.execute(
        select(FinancialTransaction.id).where(
            FinancialTransaction.related_report_id == report.id,
            FinancialTransaction.is_system_generated.is_(True),
        )
    )
    return _to_response(report, list(generated.scalars().all()))


@service_result
async def update_report(
    db: AsyncSession, user: ActingUser, report_id: UUID, payload: ReportUpdate
) -> ReportResponse:
    report = await _get_report(db, report_id, for_update=True)
    _check_author(user, report)
    if not _awaiting_review(report):
        raise ConflictError(f"Report is already {report.status} and can no longer be edited")
    data = payload.model_dump(exclude_unset=True)
    await check_period_open(db, report.activity_date)
    if data.get("activity_date"):
        await check_period_open(db, data["activity_date"])

    for key, value in data.items():
        if value is None and key in ("title", "activity_date", "thematic", "content", "images", "attachments"):
            continue
        setattr(report, key, value)
    log_audit(db, user.id, "update", "report", report.id, {"fields": sorted(data)})
    await db.commit()
    await db.refresh(report)
    return _to_response(report)


@service_result
async def delete_report(db: AsyncSession, user: ActingUser, report_id: UUID) -> None:
    report = await _get_report(db, report_id, for_update=True)
    _check_author(user, report)
    if not _awaiting_review(report):
        raise ConflictError(f"Report is already {report.status} and can no longer be deleted")
    await check_period_open(db, report.activity_date)
    log_audit(db, user.id, "delete", "report", report.id, {"title": report.title})
    await db.delete(report)
    await db.commit()
    logger.info("Report %s deleted by %s", report_id, user.id)


@service_result
async def approve_report(
    db: AsyncSession, user: ActingUser, report_id: UUID, notes: Optional[str] = None
) -> ReportResponse:
    """
    National coordinators only, and only from pending/submitted. A second approval is a CONFLICT,
    so the expense transaction can never be generated twice.
    """
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can approve reports")
    report = await _get_report(db, report_id, for_update=True)
    if not _awaiting_review(report):
        raise ConflictError(f"Report is already {report.status}")
    await check_period_open(db, report.activity_date)

    report.status = ReportStatus.approved.value
    report.reviewed_by_id = user.id
    report.reviewed_at = utcnow()
    report.review_notes = notes

    activity_status_change = None
    if report.activity_id is not None:
        activity = await db.get(Activity, report.activity_id)
        path = _execution_path(ActivityStatus(activity.status)) if activity is not None else []
        if path:
            activity_status_change = {"from": activity.status, "to": ActivityStatus.executed.value}
            for step in path:
                log_audit(
                    db,
                    user.id,
                    "status_change",
                    "activity",
                    activity.id,
                    {"from": activity.status, "to": step.value, "report_id": str(report.id)},
                )
                activity.status = step.value

    generated: List[UUID] = []
    expenses = to_decimal(report.total_expenses)
    if expenses > Decimal("0"):
        expense = FinancialTransaction(
            date=report.activity_date,
            amount=expenses,
            type=TransactionType.expense.value,
            category=ACTIVITY_EXPENSE_CATEGORY,
            description=f"Expenses for report: {report.title}",
            currency=report.currency,
            site_id=report.site_id,
            small_group_id=report.small_group_id,
            related_report_id=report.id,
            related_activity_id=report.activity_id,
            status=TransactionStatus.approved.value,
            is_system_generated=True,
            recorded_by_id=report.submitted_by_id,
            approved_by_id=user.id,
            approved_at=utcnow(),
        )
        db.add(expense)
        await db.flush()
        generated.append(expense.id)

    log_audit(
        db,
        user.id,
        "approve",
        "report",
        report.id,
        {
            "generated_transaction_ids": [str(t) for t in generated],
            "total_expenses": str(expenses),
            "activity_status": activity_status_change,
        },
    )
    notify(
        db,
        report.submitted_by_id,
        NotificationType.REPORT_APPROVED,
        "Report approved",
        f'Your report "{report.title}" has been approved.',
        link=f"/dashboard/reports/{report.id}",
        details={"report_id": str(report.id)},
    )
    await db.commit()
    await db.refresh(report)
    logger.info("Report %s approved by %s; generated transactions %s", report.id, user.id, generated)

    if generated:
        await check_budget_overrun(db, report.site_id, report.small_group_id)
    return _to_response(report, generated)


@service_result
async def reject_report(
    db: AsyncSession,
    user: ActingUser,
    report_id: UUID,
    reason: str,
    notes: Optional[str] = None,
) -> ReportResponse:
    """A non-empty reason is required; it is stored and sent to the submitter."""
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can reject reports")
    if not reason or not reason.strip():
        raise ValidationFailed("A rejection reason is required")
    report = await _get_report(db, report_id, for_update=True)
    if not _awaiting_review(report):
        raise ConflictError(f"Report is already {report.status}")

    report.status = ReportStatus.rejected.value
    report.rejection_reason = reason.strip()
    report.review_notes = notes or reason.strip()
    report.reviewed_by_id = user.id
    report.reviewed_at = utcnow()
    log_audit(db, user.id, "reject", "report", report.id, {"reason": report.rejection_reason})
    notify(
        db,
        report.submitted_by_id,
        NotificationType.REPORT_REJECTED,
        "Report rejected",
        f'Your report "{report.title}" was rejected: {report.rejection_reason}',
        link=f"/dashboard/reports/{report.id}",
        details={"report_id": str(report.id), "reason": report.rejection_reason},
    )
    await db.commit()
    await db.refresh(report)
    logger.info("Report %s rejected by %s", report.id, user.id)
    return _to_response(report)
