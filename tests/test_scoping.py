from datetime import date
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.schemas import ActingUser
from fellowship.auth.scoping import can_manage_record, can_view_report, scope
from fellowship.core.enums import ScopedResource, UserRole
from fellowship.core.models import FundAllocation, Member, Report


def _user(role: UserRole, site_id=None, small_group_id=None, user_id="u-1") -> ActingUser:
    return ActingUser(id=user_id, role=role, site_id=site_id, small_group_id=small_group_id)


async def _visible_member_names(db: AsyncSession, user: ActingUser):
    result = await db.execute(select(Member.name).where(scope(user, ScopedResource.member)).order_by(Member.name))
    return result.scalars().all()


@pytest.fixture()
async def members(db_session: AsyncSession, org):
    rows = [
        Member(name="Amani", gender="female", type="student", join_date=date(2025, 1, 5), level="small_group",
               site_id=org["site_id"], small_group_id=org["group_a"], user_id="mem-a"),
        Member(name="Baraka", gender="male", type="student", join_date=date(2025, 2, 1), level="small_group",
               site_id=org["site_id"], small_group_id=org["group_b"]),
        Member(name="Chiku", gender="female", type="non-student", join_date=date(2025, 3, 1), level="site",
               site_id=org["other_site_id"]),
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


@pytest.mark.asyncio
async def test_member_scope_by_role(db_session: AsyncSession, org, members) -> None:
    assert await _visible_member_names(db_session, _user(UserRole.NATIONAL_COORDINATOR)) == ["Amani", "Baraka", "Chiku"]
    assert await _visible_member_names(
        db_session, _user(UserRole.SITE_COORDINATOR, site_id=org["site_id"])
    ) == ["Amani", "Baraka"]
    assert await _visible_member_names(
        db_session, _user(UserRole.SMALL_GROUP_LEADER, site_id=org["site_id"], small_group_id=org["group_b"])
    ) == ["Baraka"]
    assert await _visible_member_names(db_session, _user(UserRole.MEMBER, user_id="mem-a")) == ["Amani"]


@pytest.mark.asyncio
async def test_unassigned_roles_fail_closed(db_session: AsyncSession, org, members) -> None:
    assert await _visible_member_names(db_session, _user(UserRole.SITE_COORDINATOR)) == []
    assert await _visible_member_names(db_session, _user(UserRole.SMALL_GROUP_LEADER)) == []


@pytest.mark.asyncio
async def test_site_coordinator_sees_outgoing_allocations(db_session: AsyncSession, org) -> None:
    outgoing = FundAllocation(
        amount=10, currency="USD", allocation_date=date(2026, 1, 1), goal="Bus", source="Site",
        status="completed", allocation_type="hierarchical", from_site_id=org["site_id"],
        site_id=org["site_id"], small_group_id=org["group_a"],
    )
    elsewhere = FundAllocation(
        amount=10, currency="USD", allocation_date=date(2026, 1, 1), goal="Books", source="National reserve",
        status="completed", allocation_type="hierarchical", site_id=org["other_site_id"],
    )
    db_session.add_all([outgoing, elsewhere])
    await db_session.commit()

    user = _user(UserRole.SITE_COORDINATOR, site_id=org["site_id"])
    result = await db_session.execute(select(FundAllocation.goal).where(scope(user, ScopedResource.allocation)))
    assert result.scalars().all() == ["Bus"]

    member = _user(UserRole.MEMBER, small_group_id=org["group_a"])
    result = await db_session.execute(select(FundAllocation.goal).where(scope(member, ScopedResource.allocation)))
    assert result.scalars().all() == []


def test_can_manage_record() -> None:
    site, group = uuid4(), uuid4()
    assert can_manage_record(_user(UserRole.NATIONAL_COORDINATOR), None, None)
    assert can_manage_record(_user(UserRole.SITE_COORDINATOR, site_id=site), site, group)
    assert not can_manage_record(_user(UserRole.SITE_COORDINATOR, site_id=site), uuid4(), None)
    assert can_manage_record(_user(UserRole.SMALL_GROUP_LEADER, small_group_id=group), site, group)
    assert not can_manage_record(_user(UserRole.MEMBER, site_id=site, small_group_id=group), site, group)


def test_can_view_report() -> None:
    site, group = uuid4(), uuid4()
    report = Report(site_id=site, small_group_id=group, submitted_by_id="lead-1")
    assert can_view_report(_user(UserRole.MEMBER, user_id="lead-1"), report)
    assert not can_view_report(_user(UserRole.MEMBER, site_id=site, small_group_id=group), report)
    assert can_view_report(_user(UserRole.SITE_COORDINATOR, site_id=site), report)
    assert not can_view_report(_user(UserRole.SMALL_GROUP_LEADER, small_group_id=uuid4()), report)
