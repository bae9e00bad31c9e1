from datetime import date
from decimal import Decimal
from uuid import UUID

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from fellowship.core.models import AuditLog, FinancialTransaction, Notification


def _report_payload(org, **overrides):
    payload = {
        "title": "Weekly Bible study",
        "activity_date": "2026-03-12",
        "level": "small_group",
        "small_group_id": str(org["group_a"]),
        "activity_type_id": str(org["activity_type_id"]),
        "thematic": "Grace",
        "content": "We studied Romans 5.",
        "girls_count": 6,
        "boys_count": 4,
    }
    payload.update(overrides)
    return payload


async def _submit(client: AsyncClient, org, **overrides) -> dict:
    response = await client.post("/api/v1/reports", json=_report_payload(org, **overrides), headers=org["leader_a"])
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.mark.asyncio
async def test_submit_report_defaults(client: AsyncClient, org) -> None:
    report = await _submit(client, org)
    assert report["status"] == "submitted"
    assert report["participants_count"] == 10
    assert report["site_id"] == str(org["site_id"])
    assert report["submitted_by_id"] == "lead-a"


@pytest.mark.asyncio
async def test_submit_report_notifies_national(client: AsyncClient, db_session: AsyncSession, org) -> None:
    report = await _submit(client, org)
    result = await db_session.execute(select(Notification).where(Notification.user_id == "nat-1"))
    notes = result.scalars().all()
    assert [n.type for n in notes] == ["NEW_REPORT"]
    assert notes[0].details["report_id"] == report["id"]


@pytest.mark.asyncio
async def test_approve_generates_one_expense(client: AsyncClient, db_session: AsyncSession, org) -> None:
    report = await _submit(client, org, total_expenses="50.00")

    response = await client.post(f"/api/v1/reports/{report['id']}/approve", json={"notes": "ok"}, headers=org["national"])
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["status"] == "approved"
    assert data["reviewed_by_id"] == "nat-1"
    assert len(data["generated_transaction_ids"]) == 1

    result = await db_session.execute(
        select(FinancialTransaction).where(FinancialTransaction.related_report_id == UUID(report["id"]))
    )
    transactions = result.scalars().all()
    assert len(transactions) == 1
    tx = transactions[0]
    assert tx.type == "expense"
    assert tx.status == "approved"
    assert tx.is_system_generated is True
    assert Decimal(tx.amount) == Decimal("50.00")
    assert tx.date == date(2026, 3, 12)
    assert tx.small_group_id == org["group_a"]
    assert tx.recorded_by_id == "lead-a"

    audit = await db_session.execute(
        select(AuditLog).where(AuditLog.entity_type == "report", AuditLog.action == "approve")
    )
    assert len(audit.scalars().all()) == 1


@pytest.mark.asyncio
async def test_double_approve_is_conflict(client: AsyncClient, db_session: AsyncSession, org) -> None:
    report = await _submit(client, org, total_expenses="50.00")
    first = await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])
    assert first.status_code == 200

    second = await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "CONFLICT"

    result = await db_session.execute(
        select(FinancialTransaction).where(FinancialTransaction.related_report_id == UUID(report["id"]))
    )
    assert len(result.scalars().all()) == 1


@pytest.mark.asyncio
async def test_approve_without_expenses_creates_no_transaction(client: AsyncClient, org) -> None:
    report = await _submit(client, org)
    response = await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])
    assert response.status_code == 200
    assert response.json()["data"]["generated_transaction_ids"] == []


@pytest.mark.asyncio
async def test_only_national_can_approve(client: AsyncClient, org) -> None:
    report = await _submit(client, org)
    response = await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["site_coord"])
    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


@pytest.mark.asyncio
async def test_reject_requires_reason(client: AsyncClient, org) -> None:
    report = await _submit(client, org)
    response = await client.post(
        f"/api/v1/reports/{report['id']}/reject", json={"reason": "   "}, headers=org["national"]
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    detail = await client.get(f"/api/v1/reports/{report['id']}", headers=org["national"])
    assert detail.json()["data"]["status"] == "submitted"


@pytest.mark.asyncio
async def test_reject_notifies_submitter_with_reason(
    client: AsyncClient, db_session: AsyncSession, org
) -> None:
    report = await _submit(client, org)
    response = await client.post(
        f"/api/v1/reports/{report['id']}/reject",
        json={"reason": "Missing attendance list"},
        headers=org["national"],
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "rejected"
    assert data["rejection_reason"] == "Missing attendance list"

    result = await db_session.execute(
        select(Notification).where(Notification.user_id == "lead-a", Notification.type == "REPORT_REJECTED")
    )
    note = result.scalar_one()
    assert note.details["reason"] == "Missing attendance list"


@pytest.mark.asyncio
async def test_one_report_per_activity(client: AsyncClient, org) -> None:
    created = await client.post(
        "/api/v1/activities",
        json={
            "title": "Prayer night",
            "thematic": "Prayer",
            "date": "2026-03-12",
            "level": "small_group",
            "activity_type_id": str(org["activity_type_id"]),
        },
        headers=org["leader_a"],
    )
    activity_id = created.json()["data"]["id"]
    await _submit(client, org, activity_id=activity_id)

    duplicate = await client.post(
        "/api/v1/reports", json=_report_payload(org, activity_id=activity_id), headers=org["leader_a"]
    )
    assert duplicate.status_code == 409


@pytest.mark.asyncio
async def test_approval_executes_linked_activity(client: AsyncClient, org) -> None:
    created = await client.post(
        "/api/v1/activities",
        json={
            "title": "Outreach",
            "thematic": "Mission",
            "date": "2026-03-12",
            "level": "small_group",
            "activity_type_id": str(org["activity_type_id"]),
        },
        headers=org["leader_a"],
    )
    activity_id = created.json()["data"]["id"]
    await client.post(f"/api/v1/activities/{activity_id}/start", headers=org["leader_a"])
    report = await _submit(client, org, activity_id=activity_id)

    await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])
    activity = await client.get(f"/api/v1/activities/{activity_id}", headers=org["leader_a"])
    assert activity.json()["data"]["status"] == "executed"


@pytest.mark.asyncio
async def test_approval_executes_planned_activity(client: AsyncClient, db_session: AsyncSession, org) -> None:
    created = await client.post(
        "/api/v1/activities",
        json={
            "title": "Prayer night",
            "thematic": "Prayer",
            "date": "2026-03-12",
            "level": "small_group",
            "activity_type_id": str(org["activity_type_id"]),
        },
        headers=org["leader_a"],
    )
    activity_id = created.json()["data"]["id"]
    assert created.json()["data"]["status"] == "planned"
    report = await _submit(client, org, activity_id=activity_id)

    approved = await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])
    assert approved.status_code == 200, approved.text
    activity = await client.get(f"/api/v1/activities/{activity_id}", headers=org["leader_a"])
    assert activity.json()["data"]["status"] == "executed"

    result = await db_session.execute(
        select(AuditLog)
        .where(AuditLog.entity_type == "activity", AuditLog.action == "status_change")
    )
    steps = sorted((log.details["from"], log.details["to"]) for log in result.scalars().all())
    assert steps == [("in_progress", "executed"), ("planned", "in_progress")]


@pytest.mark.asyncio
async def test_report_visibility(client: AsyncClient, org) -> None:
    report = await _submit(client, org)

    own = await client.get(f"/api/v1/reports/{report['id']}", headers=org["site_coord"])
    assert own.status_code == 200

    other_group = await client.get(f"/api/v1/reports/{report['id']}", headers=org["leader_b"])
    assert other_group.status_code == 403

    listed = await client.get("/api/v1/reports", headers=org["leader_b"])
    assert listed.json()["data"] == []


@pytest.mark.asyncio
async def test_too_many_images_rejected(client: AsyncClient, org) -> None:
    images = [{"url": f"https://cdn.example.com/{i}.jpg"} for i in range(11)]
    response = await client.post("/api/v1/reports", json=_report_payload(org, images=images), headers=org["leader_a"])
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_reviewed_report_cannot_be_edited(client: AsyncClient, org) -> None:
    report = await _submit(client, org)
    await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])

    response = await client.put(f"/api/v1/reports/{report['id']}", json={"title": "Changed"}, headers=org["leader_a"])
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_submitter_sees_approval_notification(client: AsyncClient, org) -> None:
    report = await _submit(client, org)
    await client.post(f"/api/v1/reports/{report['id']}/approve", headers=org["national"])

    response = await client.get("/api/v1/notifications", headers=org["leader_a"])
    assert response.status_code == 200
    types = [n["type"] for n in response.json()["data"]]
    assert types == ["REPORT_APPROVED"]
