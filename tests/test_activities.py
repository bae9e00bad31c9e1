import pytest
from httpx import AsyncClient

from fellowship.core.enums import ActivityStatus, can_transition


def _activity(org, **overrides):
    payload = {
        "title": "Site worship night",
        "thematic": "Praise",
        "date": "2026-05-02",
        "level": "site",
        "activity_type_id": str(org["activity_type_id"]),
    }
    payload.update(overrides)
    return payload


def test_transition_table() -> None:
    assert can_transition(ActivityStatus.planned, ActivityStatus.in_progress)
    assert can_transition(ActivityStatus.delayed, ActivityStatus.executed)
    assert not can_transition(ActivityStatus.planned, ActivityStatus.executed)
    assert not can_transition(ActivityStatus.executed, ActivityStatus.planned)
    assert not can_transition(ActivityStatus.canceled, ActivityStatus.in_progress)


@pytest.mark.asyncio
async def test_site_level_requires_site_id(client: AsyncClient, org) -> None:
    response = await client.post("/api/v1/activities", json=_activity(org), headers=org["national"])
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_site_coordinator_defaults_to_own_site(client: AsyncClient, org) -> None:
    response = await client.post("/api/v1/activities", json=_activity(org), headers=org["site_coord"])
    assert response.status_code == 201, response.text
    data = response.json()["data"]
    assert data["site_id"] == str(org["site_id"])
    assert data["status"] == "planned"


@pytest.mark.asyncio
async def test_site_coordinator_cannot_create_for_other_site(client: AsyncClient, org) -> None:
    response = await client.post(
        "/api/v1/activities",
        json=_activity(org, site_id=str(org["other_site_id"])),
        headers=org["site_coord"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_national_level_is_national_only(client: AsyncClient, org) -> None:
    response = await client.post("/api/v1/activities", json=_activity(org, level="national"), headers=org["site_coord"])
    assert response.status_code == 403

    response = await client.post("/api/v1/activities", json=_activity(org, level="national"), headers=org["national"])
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["site_id"] is None and data["small_group_id"] is None


@pytest.mark.asyncio
async def test_members_cannot_create_activities(client: AsyncClient, org) -> None:
    response = await client.post(
        "/api/v1/activities",
        json=_activity(org, level="small_group", small_group_id=str(org["group_a"])),
        headers=org["member_a"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_illegal_status_change_is_rejected(client: AsyncClient, org) -> None:
    created = await client.post("/api/v1/activities", json=_activity(org), headers=org["site_coord"])
    activity_id = created.json()["data"]["id"]

    response = await client.post(
        f"/api/v1/activities/{activity_id}/status", json={"status": "executed"}, headers=org["site_coord"]
    )
    assert response.status_code == 400

    started = await client.post(f"/api/v1/activities/{activity_id}/start", headers=org["site_coord"])
    assert started.json()["data"]["status"] == "in_progress"

    again = await client.post(f"/api/v1/activities/{activity_id}/start", headers=org["site_coord"])
    assert again.status_code in (400, 409)

    done = await client.post(
        f"/api/v1/activities/{activity_id}/status", json={"status": "executed"}, headers=org["site_coord"]
    )
    assert done.json()["data"]["status"] == "executed"


@pytest.mark.asyncio
async def test_sweep_starts_and_delays(client: AsyncClient, org) -> None:
    created = await client.post(
        "/api/v1/activities", json=_activity(org, date="2026-01-10"), headers=org["site_coord"]
    )
    activity_id = created.json()["data"]["id"]

    response = await client.post("/api/v1/activities/sweep?on=2026-01-20", headers=org["national"])
    assert response.status_code == 200
    assert response.json()["data"] == {"started": 1, "delayed": 1}

    activity = await client.get(f"/api/v1/activities/{activity_id}", headers=org["site_coord"])
    assert activity.json()["data"]["status"] == "delayed"


@pytest.mark.asyncio
async def test_deleted_activity_is_hidden(client: AsyncClient, org) -> None:
    created = await client.post("/api/v1/activities", json=_activity(org), headers=org["site_coord"])
    activity_id = created.json()["data"]["id"]

    deleted = await client.delete(f"/api/v1/activities/{activity_id}", headers=org["site_coord"])
    assert deleted.status_code == 200

    listed = await client.get("/api/v1/activities", headers=org["site_coord"])
    assert listed.json()["data"] == []
    missing = await client.get(f"/api/v1/activities/{activity_id}", headers=org["site_coord"])
    assert missing.status_code == 404
