import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.models import Profile
from fellowship.core.enums import UserRole
from fellowship.core.models import AuditLog
from tests.factories import create_profile


def _member(org, **overrides):
    payload = {
        "name": "Esther",
        "gender": "female",
        "type": "student",
        "join_date": "2025-09-01",
        "level": "small_group",
        "small_group_id": str(org["group_a"]),
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_only_national_creates_sites(client: AsyncClient, org) -> None:
    denied = await client.post("/api/v1/sites", json={"name": "Goma"}, headers=org["site_coord"])
    assert denied.status_code == 403

    created = await client.post(
        "/api/v1/sites", json={"name": "Goma", "coordinator_id": "sc-1"}, headers=org["national"]
    )
    assert created.status_code == 201, created.text
    assert created.json()["data"]["coordinator_id"] == "sc-1"


@pytest.mark.asyncio
async def test_site_coordinator_lists_own_site(client: AsyncClient, org) -> None:
    response = await client.get("/api/v1/sites", headers=org["site_coord"])
    sites = response.json()["data"]
    assert [s["id"] for s in sites] == [str(org["site_id"])]
    assert sites[0]["small_group_count"] == 2


@pytest.mark.asyncio
async def test_site_with_groups_cannot_be_deleted(client: AsyncClient, org) -> None:
    response = await client.delete(f"/api/v1/sites/{org['site_id']}", headers=org["national"])
    assert response.status_code == 409

    empty = await client.delete(f"/api/v1/sites/{org['other_site_id']}", headers=org["national"])
    assert empty.status_code == 200
    missing = await client.get(f"/api/v1/sites/{org['other_site_id']}", headers=org["national"])
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_site_coordinator_manages_own_groups(client: AsyncClient, db_session: AsyncSession, org) -> None:
    created = await client.post(
        "/api/v1/small-groups",
        json={"name": "Campus C", "site_id": str(org["site_id"]), "leader_id": "mem-a", "meeting_time": "18:30"},
        headers=org["site_coord"],
    )
    assert created.status_code == 201, created.text
    group_id = created.json()["data"]["id"]

    profile = await db_session.get(Profile, "mem-a")
    assert str(profile.small_group_id) == group_id

    other = await client.post(
        "/api/v1/small-groups",
        json={"name": "Elsewhere", "site_id": str(org["other_site_id"])},
        headers=org["site_coord"],
    )
    assert other.status_code == 403


@pytest.mark.asyncio
async def test_leader_registers_and_archives_member(client: AsyncClient, org) -> None:
    created = await client.post("/api/v1/members", json=_member(org), headers=org["leader_a"])
    assert created.status_code == 201, created.text
    member = created.json()["data"]
    assert member["site_id"] == str(org["site_id"])

    archived = await client.post(f"/api/v1/members/{member['id']}/archive", headers=org["leader_a"])
    assert archived.json()["data"]["record_status"] == "archived"

    active = await client.get("/api/v1/members", headers=org["leader_a"])
    assert active.json()["data"] == []
    everything = await client.get("/api/v1/members?include_archived=true", headers=org["leader_a"])
    assert len(everything.json()["data"]) == 1


@pytest.mark.asyncio
async def test_leader_cannot_register_in_other_group(client: AsyncClient, org) -> None:
    response = await client.post(
        "/api/v1/members", json=_member(org, small_group_id=str(org["group_b"])), headers=org["leader_a"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_members_cannot_register_members(client: AsyncClient, org) -> None:
    response = await client.post("/api/v1/members", json=_member(org), headers=org["member_a"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_mutations_are_audited(client: AsyncClient, db_session: AsyncSession, org) -> None:
    created = await client.post("/api/v1/members", json=_member(org), headers=org["site_coord"])
    member_id = created.json()["data"]["id"]

    result = await db_session.execute(select(AuditLog).where(AuditLog.entity_id == member_id))
    entries = result.scalars().all()
    assert [(e.actor_id, e.action) for e in entries] == [("sc-1", "create")]

    logs = await client.get(f"/api/v1/audit-logs?entity_type=member&entity_id={member_id}", headers=org["national"])
    assert logs.status_code == 200
    assert logs.json()["data"][0]["action"] == "create"

    denied = await client.get("/api/v1/audit-logs", headers=org["site_coord"])
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_cannot_deactivate_self(client: AsyncClient, org) -> None:
    response = await client.post("/api/v1/users/nat-1/deactivate", headers=org["national"])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_dashboard_metrics_are_scoped(client: AsyncClient, org) -> None:
    await client.post("/api/v1/members", json=_member(org), headers=org["leader_a"])
    await client.post(
        "/api/v1/members", json=_member(org, name="Paul", small_group_id=str(org["group_b"])), headers=org["leader_b"]
    )

    national = await client.get("/api/v1/analytics/dashboard", headers=org["national"])
    assert national.json()["data"]["total_members"] == 2
    leader = await client.get("/api/v1/analytics/dashboard", headers=org["leader_a"])
    data = leader.json()["data"]
    assert data["total_members"] == 1
    assert data["small_group_id"] == str(org["group_a"])
    member = await client.get("/api/v1/analytics/dashboard", headers=org["member_a"])
    assert member.json()["data"]["budget_utilization"] is None


@pytest.mark.asyncio
async def test_site_level_member_requires_site_id(client: AsyncClient, org) -> None:
    response = await client.post(
        "/api/v1/members", json=_member(org, level="site", small_group_id=None), headers=org["national"]
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_site_coordinator_cannot_take_other_sites_coordinator(
    client: AsyncClient, db_session: AsyncSession, org
) -> None:
    await create_profile(db_session, "sc-2", UserRole.SITE_COORDINATOR, site_id=org["other_site_id"])

    response = await client.post(
        "/api/v1/small-groups",
        json={"name": "Campus C", "site_id": str(org["site_id"]), "leader_id": "sc-2"},
        headers=org["site_coord"],
    )
    assert response.status_code == 403

    profile = await db_session.get(Profile, "sc-2")
    await db_session.refresh(profile)
    assert profile.role == "site_coordinator"
    assert profile.site_id == org["other_site_id"]
    assert profile.small_group_id is None


@pytest.mark.asyncio
async def test_replacing_leader_moves_role_and_releases_previous(
    client: AsyncClient, db_session: AsyncSession, org
) -> None:
    created = await client.post(
        "/api/v1/small-groups",
        json={"name": "Campus C", "site_id": str(org["site_id"]), "leader_id": "mem-a"},
        headers=org["site_coord"],
    )
    assert created.status_code == 201, created.text
    group_id = created.json()["data"]["id"]

    replaced = await client.put(
        f"/api/v1/small-groups/{group_id}", json={"leader_id": "lead-b"}, headers=org["site_coord"]
    )
    assert replaced.status_code == 200, replaced.text
    assert replaced.json()["data"]["leader_id"] == "lead-b"

    previous = await db_session.get(Profile, "mem-a")
    await db_session.refresh(previous)
    assert previous.role == "small_group_leader"
    assert previous.small_group_id is None

    leader = await db_session.get(Profile, "lead-b")
    await db_session.refresh(leader)
    assert str(leader.small_group_id) == group_id

    result = await db_session.execute(
        select(AuditLog).where(AuditLog.action == "update_assignment", AuditLog.entity_type == "profile")
    )
    assert {log.entity_id for log in result.scalars().all()} == {"mem-a", "lead-b"}


@pytest.mark.asyncio
async def test_national_assigns_site_coordinator_with_role(client: AsyncClient, db_session: AsyncSession, org) -> None:
    response = await client.put(
        f"/api/v1/sites/{org['other_site_id']}", json={"coordinator_id": "lead-b"}, headers=org["national"]
    )
    assert response.status_code == 200, response.text

    profile = await db_session.get(Profile, "lead-b")
    await db_session.refresh(profile)
    assert profile.role == "site_coordinator"
    assert profile.site_id == org["other_site_id"]
    assert profile.small_group_id is None
