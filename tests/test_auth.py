from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.auth.models import Profile
from fellowship.auth.security import create_identity_token
from fellowship.core.enums import InvitationStatus, UserRole
from fellowship.core.models import Invitation
from fellowship.core.timeutils import utcnow
from tests.factories import auth_headers, create_profile, create_site


@pytest.mark.asyncio
async def test_missing_token_points_to_login(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.get("/api/v1/auth/me")
    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "UNAUTHORIZED"
    assert body["error"]["login_url"] == "/api/auth/login"


@pytest.mark.asyncio
async def test_expired_token_is_rejected(client: AsyncClient, db_session: AsyncSession) -> None:
    token = create_identity_token("kp_old", email="old@example.com", expires_minutes=-5)
    response = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_first_login_creates_member_profile(client: AsyncClient, db_session: AsyncSession) -> None:
    response = await client.get("/api/v1/auth/me", headers=auth_headers("kp_new", email="New@Example.com"))
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["id"] == "kp_new"
    assert data["role"] == "member"
    assert data["email"] == "new@example.com"

    profile = await db_session.get(Profile, "kp_new")
    assert profile is not None


@pytest.mark.asyncio
async def test_unknown_identity_gets_provisional_context(client: AsyncClient, db_session: AsyncSession) -> None:
    # Any read endpoint works before the profile exists; nothing is visible yet
    response = await client.get("/api/v1/reports", headers=auth_headers("kp_ghost"))
    assert response.status_code == 200
    assert response.json()["data"] == []
    assert await db_session.get(Profile, "kp_ghost") is None


@pytest.mark.asyncio
async def test_pending_invitation_applied_on_first_login(client: AsyncClient, db_session: AsyncSession) -> None:
    site_id = await create_site(db_session)
    db_session.add(
        Invitation(
            email="coord@example.com",
            token="tok-coord",
            role=UserRole.SITE_COORDINATOR.value,
            site_id=site_id,
            status=InvitationStatus.pending.value,
            expires_at=utcnow() + timedelta(days=3),
        )
    )
    await db_session.commit()

    response = await client.get("/api/v1/auth/me", headers=auth_headers("kp_coord", email="coord@example.com"))
    data = response.json()["data"]
    assert data["role"] == "site_coordinator"
    assert data["site_id"] == str(site_id)


@pytest.mark.asyncio
async def test_inactive_user_cannot_authenticate(client: AsyncClient, db_session: AsyncSession, org) -> None:
    response = await client.post("/api/v1/users/mem-a/deactivate", headers=org["national"])
    assert response.json()["data"]["status"] == "inactive"

    blocked = await client.get("/api/v1/reports", headers=org["member_a"])
    assert blocked.status_code == 401


@pytest.mark.asyncio
async def test_self_update_cannot_change_role(client: AsyncClient, db_session: AsyncSession) -> None:
    headers = await create_profile(db_session, "kp_self", UserRole.MEMBER)
    response = await client.patch(
        "/api/v1/auth/me", json={"name": "Grace", "role": "national_coordinator"}, headers=headers
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["name"] == "Grace"
    assert data["role"] == "member"


@pytest.mark.asyncio
async def test_assignment_change_applies_to_next_request(client: AsyncClient, db_session: AsyncSession, org) -> None:
    before = await client.get("/api/v1/finances/summary", headers=org["member_a"])
    assert before.status_code == 403

    response = await client.patch(
        "/api/v1/users/mem-a",
        json={"role": "small_group_leader", "small_group_id": str(org["group_b"])},
        headers=org["national"],
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["small_group_id"] == str(org["group_b"])
    assert data["site_id"] == str(org["site_id"])

    after = await client.get("/api/v1/finances/summary", headers=org["member_a"])
    assert after.status_code == 200
    assert after.json()["data"]["small_group_id"] == str(org["group_b"])
