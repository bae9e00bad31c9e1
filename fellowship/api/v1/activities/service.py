"""
Activity lifecycle.

Status moves only along ACTIVITY_TRANSITIONS:
planned -> in_progress | delayed | canceled
in_progress -> executed | delayed | canceled
delayed -> in_progress | executed | canceled
executed and canceled are terminal.
"""

import logging
from datetime import date, timedelta
from typing import List, Optional
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.api.v1.audit_logs.service import log_audit
from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import can_manage_record, scope
from fellowship.core.enums import ActivityStatus, Level, RecordStatus, ScopedResource, UserRole, can_transition
from fellowship.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationFailed
from fellowship.core.level_scope import resolve_level_scope
from fellowship.core.models import Activity, ActivityType, Report
from fellowship.core.result import service_result
from fellowship.core.timeutils import today

from .schemas import (
    ActivityCreate,
    ActivityResponse,
    ActivitySweepResult,
    ActivityTypeCreate,
    ActivityTypeResponse,
    ActivityUpdate,
)

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_TYPES = (
    ("Bible Study", "spiritual"),
    ("Prayer Meeting", "spiritual"),
    ("Worship Service", "spiritual"),
    ("Evangelism", "outreach"),
    ("Community Service", "community"),
    ("Fellowship Gathering", "community"),
    ("Leadership Training", "training"),
    ("Seminar", "training"),
)
ACTIVITY_TYPE_CATEGORIES = frozenset(category for _, category in DEFAULT_ACTIVITY_TYPES)


def _transition(activity: Activity, target: ActivityStatus) -> ActivityStatus:
    current = ActivityStatus(activity.status)
    if not can_transition(current, target):
        raise ValidationFailed(f"Cannot change activity status from {current.value} to {target.value}")
    activity.status = target.value
    return current


async def get_live_activity(db: AsyncSession, activity_id: UUID) -> Activity:
    activity = await db.get(Activity, activity_id)
    if activity is None or activity.record_status == RecordStatus.deleted.value:
        raise NotFoundError("Activity not found")
    return activity


async def _get_managed(db: AsyncSession, user: ActingUser, activity_id: UUID) -> Activity:
    activity = await get_live_activity(db, activity_id)
    if not can_manage_record(user, activity.site_id, activity.small_group_id):
        raise ForbiddenError("You can only manage activities of your own site or small group")
    return activity


async def _check_activity_type(db: AsyncSession, activity_type_id: UUID) -> None:
    if await db.get(ActivityType, activity_type_id) is None:
        raise NotFoundError("Activity type not found")


# ----- Activity types -----
@service_result
async def list_activity_types(db: AsyncSession) -> List[ActivityTypeResponse]:
    result = await db.execute(select(ActivityType).order_by(ActivityType.category, ActivityType.name))
    return [ActivityTypeResponse.model_validate(t) for t in result.scalars().all()]


@service_result
async def create_activity_type(
    db: AsyncSession, user: ActingUser, payload: ActivityTypeCreate
) -> ActivityTypeResponse:
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can create activity types")
    if payload.category not in ACTIVITY_TYPE_CATEGORIES:
        raise ValidationFailed(f"category must be one of: {', '.join(sorted(ACTIVITY_TYPE_CATEGORIES))}")
    existing = await db.execute(select(ActivityType.id).where(ActivityType.name == payload.name.strip()))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("An activity type with this name already exists")
    activity_type = ActivityType(name=payload.name.strip(), category=payload.category, description=payload.description)
    db.add(activity_type)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("An activity type with this name already exists")
    await db.refresh(activity_type)
    return ActivityTypeResponse.model_validate(activity_type)


# ----- Activities -----
@service_result
async def create_activity(db: AsyncSession, user: ActingUser, payload: ActivityCreate) -> ActivityResponse:
    if user.role == UserRole.MEMBER:
        raise ForbiddenError("Members cannot create activities")
    site_id, small_group_id = await resolve_level_scope(
        db, user, payload.level, payload.site_id, payload.small_group_id, entity="activity"
    )
    await _check_activity_type(db, payload.activity_type_id)

    activity = Activity(
        title=payload.title.strip(),
        thematic=payload.thematic.strip(),
        date=payload.date,
        level=payload.level.value,
        status=ActivityStatus.planned.value,
        site_id=site_id,
        small_group_id=small_group_id,
        activity_type_id=payload.activity_type_id,
        participants_count_planned=payload.participants_count_planned,
        created_by_id=user.id,
        record_status=RecordStatus.active.value,
    )
    db.add(activity)
    await db.flush()
    log_audit(
        db,
        user.id,
        "create",
        "activity",
        activity.id,
        {"level": activity.level, "date": str(activity.date)},
    )
    await db.commit()
    await db.refresh(activity)
    logger.info("Activity %s created by %s", activity.id, user.id)
    return ActivityResponse.model_validate(activity)


@service_result
async def list_activities(
    db: AsyncSession,
    user: ActingUser,
    *,
    status: Optional[ActivityStatus] = None,
    level: Optional[Level] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    search: Optional[str] = None,
) -> List[ActivityResponse]:
    conditions = [scope(user, ScopedResource.activity), Activity.record_status != RecordStatus.deleted.value]
    if status:
        conditions.append(Activity.status == status.value)
    if level:
        conditions.append(Activity.level == level.value)
    if start_date:
        conditions.append(Activity.date >= start_date)
    if end_date:
        conditions.append(Activity.date <= end_date)
    if search and search.strip():
        term = f"%{search.strip()}%"
        conditions.append(or_(Activity.title.ilike(term), Activity.thematic.ilike(term)))
    result = await db.execute(select(Activity).where(and_(*conditions)).order_by(Activity.date.desc()))
    return [ActivityResponse.model_validate(a) for a in result.scalars().all()]


@service_result
async def get_activity(db: AsyncSession, user: ActingUser, activity_id: UUID) -> ActivityResponse:
    result = await db.execute(
        select(Activity).where(
            Activity.id == activity_id,
            Activity.record_status != RecordStatus.deleted.value,
            scope(user, ScopedResource.activity),
        )
    )
    activity = result.scalar_one_or_none()
    if activity is None:
        raise NotFoundError("Activity not found")
    return ActivityResponse.model_validate(activity)


@service_result
async def update_activity(
    db: AsyncSession, user: ActingUser, activity_id: UUID, payload: ActivityUpdate
) -> ActivityResponse:
    activity = await _get_managed(db, user, activity_id)
    data = payload.model_dump(exclude_unset=True)
    audit = {"fields": sorted(k for k in data if k != "status")}

    if {"level", "site_id", "small_group_id"} & data.keys():
        level = data.get("level") or Level(activity.level)
        site_id, small_group_id = await resolve_level_scope(
            db,
            user,
            level,
            data.get("site_id", activity.site_id),
            data.get("small_group_id", activity.small_group_id),
            entity="activity",
        )
        if site_id != activity.site_id and not user.is_national:
            raise ForbiddenError("Only national coordinators can move an activity to another site")
        activity.level = level.value
        activity.site_id = site_id
        activity.small_group_id = small_group_id
    if data.get("activity_type_id"):
        await _check_activity_type(db, data["activity_type_id"])
        activity.activity_type_id = data["activity_type_id"]
    for key in ("title", "thematic", "date", "participants_count_planned"):
        if key in data and (data[key] is not None or key == "participants_count_planned"):
            setattr(activity, key, data[key])
    if data.get("status") and data["status"].value != activity.status:
        previous = _transition(activity, data["status"])
        audit["status"] = {"from": previous.value, "to": activity.status}

    log_audit(db, user.id, "update", "activity", activity.id, audit)
    await db.commit()
    await db.refresh(activity)
    return ActivityResponse.model_validate(activity)


@service_result
async def change_activity_status(
    db: AsyncSession, user: ActingUser, activity_id: UUID, target: ActivityStatus
) -> ActivityResponse:
    activity = await _get_managed(db, user, activity_id)
    previous = _transition(activity, target)
    log_audit(db, user.id, "status_change", "activity", activity.id, {"from": previous.value, "to": target.value})
    await db.commit()
    await db.refresh(activity)
    logger.info("Activity %s: %s -> %s by %s", activity.id, previous.value, target.value, user.id)
    return ActivityResponse.model_validate(activity)


@service_result
async def start_activity(db: AsyncSession, user: ActingUser, activity_id: UUID) -> ActivityResponse:
    """planned -> in_progress. Only available while the activity is planned."""
    activity = await _get_managed(db, user, activity_id)
    if activity.status != ActivityStatus.planned.value:
        raise ValidationFailed("Only planned activities can be started")
    _transition(activity, ActivityStatus.in_progress)
    log_audit(
        db,
        user.id,
        "status_change",
        "activity",
        activity.id,
        {"from": ActivityStatus.planned.value, "to": ActivityStatus.in_progress.value},
    )
    await db.commit()
    await db.refresh(activity)
    return ActivityResponse.model_validate(activity)


@service_result
async def delete_activity(db: AsyncSession, user: ActingUser, activity_id: UUID) -> None:
    """Tombstone (record_status=deleted). Reports keep their reference."""
    activity = await _get_managed(db, user, activity_id)
    activity.record_status = RecordStatus.deleted.value
    log_audit(db, user.id, "delete", "activity", activity.id, {"title": activity.title})
    await db.commit()
    logger.info("Activity %s deleted by %s", activity.id, user.id)


@service_result
async def sweep_activity_statuses(
    db: AsyncSession, user: ActingUser, on: Optional[date] = None
) -> ActivitySweepResult:
    """
    Daily status maintenance:
    planned activities whose date has come -> in_progress;
    in_progress activities older than yesterday without a report -> delayed.
    """
    if not user.is_national:
        raise ForbiddenError("Only national coordinators can run the activity status sweep")
    on = on or today()
    live = Activity.record_status != RecordStatus.deleted.value

    due = await db.execute(
        select(Activity).where(live, Activity.status == ActivityStatus.planned.value, Activity.date <= on)
    )
    started = 0
    for activity in due.scalars().all():
        _transition(activity, ActivityStatus.in_progress)
        log_audit(db, user.id, "status_change", "activity", activity.id, {"from": "planned", "to": "in_progress", "sweep": True})
        started += 1

    reported = select(Report.activity_id).where(Report.activity_id.is_not(None))
    stale = await db.execute(
        select(Activity).where(
            live,
            Activity.status == ActivityStatus.in_progress.value,
            Activity.date < on - timedelta(days=1),
            Activity.id.not_in(reported),
        )
    )
    delayed = 0
    for activity in stale.scalars().all():
        _transition(activity, ActivityStatus.delayed)
        log_audit(db, user.id, "status_change", "activity", activity.id, {"from": "in_progress", "to": "delayed", "sweep": True})
        delayed += 1

    await db.commit()
    logger.info("Activity sweep on %s: %s started, %s delayed", on, started, delayed)
    return ActivitySweepResult(started=started, delayed=delayed)
