from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.models import Invitation
from fellowship.core.timeutils import utcnow
from tests.factories import auth_headers


async def _invite(client: AsyncClient, org, **fields) -> dict:
    payload = {"email": "joy@example.com", "role": "small_group_leader", "small_group_id": str(org["group_a"])}
    payload.update(fields)
    response = await client.post("/api/v1/invitations", json=payload, headers=org["national"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_invitation_infers_site_from_group(client: AsyncClient, org) -> None:
    invitation = await _invite(client, org)
    assert invitation["site_id"] == str(org["site_id"])
    assert invitation["status"] == "pending"
    assert invitation["token"]


@pytest.mark.asyncio
async def test_national_invitation_drops_assignment(client: AsyncClient, org) -> None:
    invitation = await _invite(client, org, role="national_coordinator", site_id=str(org["site_id"]))
    assert invitation["site_id"] is None
    assert invitation["small_group_id"] is None


@pytest.mark.asyncio
async def test_reinvite_refreshes_token(client: AsyncClient, org) -> None:
    first = await _invite(client, org)
    second = await _invite(client, org, role="member")
    assert second["id"] == first["id"]
    assert second["token"] != first["token"]
    assert second["role"] == "member"


@pytest.mark.asyncio
async def test_only_national_can_invite(client: AsyncClient, org) -> None:
    response = await client.post(
        "/api/v1/invitations", json={"email": "x@example.com", "role": "member"}, headers=org["site_coord"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_accept_requires_matching_email(client: AsyncClient, org) -> None:
    invitation = await _invite(client, org)
    response = await client.post(
        "/api/v1/invitations/accept",
        json={"token": invitation["token"]},
        headers=auth_headers("kp_intruder", email="intruder@example.com"),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_accept_creates_profile_for_provisional_user(client: AsyncClient, org) -> None:
    invitation = await _invite(client, org)
    headers = auth_headers("kp_joy", email="joy@example.com")
    response = await client.post("/api/v1/invitations/accept", json={"token": invitation["token"]}, headers=headers)
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["status"] == "accepted"
    assert data["profile"]["role"] == "small_group_leader"

    me = await client.get("/api/v1/auth/me", headers=headers)
    assert me.json()["data"]["small_group_id"] == str(org["group_a"])


@pytest.mark.asyncio
async def test_expired_invitation_is_marked(client: AsyncClient, db_session: AsyncSession, org) -> None:
    invitation = await _invite(client, org)
    row = (await db_session.execute(select(Invitation).where(Invitation.email == "joy@example.com"))).scalar_one()
    row.expires_at = utcnow() - timedelta(days=1)
    await db_session.commit()

    response = await client.get(f"/api/v1/invitations/token/{invitation['token']}", headers=org["national"])
    assert response.status_code == 400

    row = (await db_session.execute(select(Invitation).where(Invitation.email == "joy@example.com"))).scalar_one()
    assert row.status == "expired"


@pytest.mark.asyncio
async def test_list_shows_live_profile(client: AsyncClient, org) -> None:
    invitation = await _invite(client, org)
    await client.post(
        "/api/v1/invitations/accept",
        json={"token": invitation["token"]},
        headers=auth_headers("kp_joy", email="joy@example.com"),
    )
    # Promoted after acceptance; the list must show the current role
    await client.patch("/api/v1/users/kp_joy", json={"role": "site_coordinator"}, headers=org["national"])

    response = await client.get("/api/v1/invitations", headers=org["national"])
    listed = response.json()["data"]
    assert len(listed) == 1
    assert listed[0]["role"] == "small_group_leader"
    assert listed[0]["profile"]["role"] == "site_coordinator"
    assert listed[0]["profile"]["small_group_id"] is None
    assert listed[0]["token"] is None


@pytest.mark.asyncio
async def test_delete_invitation(client: AsyncClient, org) -> None:
    invitation = await _invite(client, org)
    response = await client.delete(f"/api/v1/invitations/{invitation['id']}", headers=org["national"])
    assert response.status_code == 200
    listed = await client.get("/api/v1/invitations", headers=org["national"])
    assert listed.json()["data"] == []
