from decimal import Decimal

import pytest
from httpx import AsyncClient

from fellowship.core.config import settings


async def _transaction(client: AsyncClient, headers, **fields) -> dict:
    payload = {"date": "2026-02-10", "category": "Offering", "description": ""}
    payload.update(fields)
    response = await client.post("/api/v1/finances/transactions", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _allocate(client: AsyncClient, headers, **fields):
    payload = {"amount": "100.00", "allocation_date": "2026-02-11", "goal": "Outreach"}
    payload.update(fields)
    return await client.post("/api/v1/finances/allocations", json=payload, headers=headers)


@pytest.mark.asyncio
async def test_national_summary_net_balance(client: AsyncClient, org) -> None:
    await _transaction(client, org["national"], type="income", amount="1000.00")
    await _transaction(client, org["national"], type="expense", amount="200.00", category="Rent")

    response = await client.get("/api/v1/finances/summary", headers=org["national"])
    assert response.status_code == 200
    data = response.json()["data"]
    assert Decimal(data["income"]) == Decimal("1000")
    assert Decimal(data["expenses"]) == Decimal("200")
    assert Decimal(data["net_balance"]) == Decimal("800")
    assert Decimal(data["budget_utilization"]) == Decimal("0.2")


@pytest.mark.asyncio
async def test_leader_transactions_wait_for_approval(client: AsyncClient, org) -> None:
    tx = await _transaction(client, org["leader_a"], type="income", amount="40.00")
    assert tx["status"] == "pending"
    assert tx["small_group_id"] == str(org["group_a"])

    available = await client.get("/api/v1/finances/budget/available", headers=org["leader_a"])
    assert Decimal(available.json()["data"]["available"]) == Decimal("0")

    approved = await client.post(f"/api/v1/finances/transactions/{tx['id']}/approve", headers=org["national"])
    assert approved.json()["data"]["status"] == "approved"

    available = await client.get("/api/v1/finances/budget/available", headers=org["leader_a"])
    assert Decimal(available.json()["data"]["available"]) == Decimal("40")


@pytest.mark.asyncio
async def test_members_cannot_see_finances(client: AsyncClient, org) -> None:
    response = await client.get("/api/v1/finances/summary", headers=org["member_a"])
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_allocation_moves_money_between_wallets(client: AsyncClient, org) -> None:
    response = await _allocate(client, org["national"], site_id=str(org["site_id"]), amount="300.00")
    assert response.status_code == 201, response.text
    assert response.json()["data"]["allocation_type"] == "hierarchical"

    response = await _allocate(client, org["site_coord"], small_group_id=str(org["group_a"]), amount="120.00")
    assert response.status_code == 201, response.text
    assert response.json()["data"]["budget_warning"] is None

    site = await client.get("/api/v1/finances/budget/available", headers=org["site_coord"])
    assert Decimal(site.json()["data"]["available"]) == Decimal("180")
    group = await client.get("/api/v1/finances/budget/available", headers=org["leader_a"])
    assert Decimal(group.json()["data"]["available"]) == Decimal("120")


@pytest.mark.asyncio
async def test_allocation_permissions(client: AsyncClient, org) -> None:
    leader = await _allocate(client, org["leader_a"], small_group_id=str(org["group_a"]))
    assert leader.status_code == 403

    to_site = await _allocate(client, org["site_coord"], site_id=str(org["other_site_id"]))
    assert to_site.status_code == 403

    no_destination = await _allocate(client, org["national"])
    assert no_destination.status_code == 422


@pytest.mark.asyncio
async def test_direct_allocation_needs_bypass_reason(client: AsyncClient, org) -> None:
    missing = await _allocate(client, org["national"], small_group_id=str(org["group_a"]))
    assert missing.status_code == 400

    direct = await _allocate(
        client, org["national"], small_group_id=str(org["group_a"]), bypass_reason="Site wallet frozen"
    )
    assert direct.status_code == 201
    data = direct.json()["data"]
    assert data["allocation_type"] == "direct"
    assert data["site_id"] == str(org["site_id"])


@pytest.mark.asyncio
async def test_over_allocation_warns_by_default(client: AsyncClient, org) -> None:
    response = await _allocate(client, org["site_coord"], small_group_id=str(org["group_a"]), amount="50.00")
    assert response.status_code == 201
    assert "exceeds" in response.json()["data"]["budget_warning"]


@pytest.mark.asyncio
async def test_over_allocation_refused_when_strict(client: AsyncClient, org, monkeypatch) -> None:
    monkeypatch.setattr(settings, "strict_budget_enforcement", True)
    response = await _allocate(client, org["site_coord"], small_group_id=str(org["group_a"]), amount="50.00")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.asyncio
async def test_closed_period_freezes_ledger(client: AsyncClient, org) -> None:
    await _transaction(client, org["national"], type="income", amount="500.00", site_id=str(org["site_id"]))

    period = await client.post(
        "/api/v1/finances/periods",
        json={"type": "month", "start_date": "2026-02-01", "end_date": "2026-02-28"},
        headers=org["national"],
    )
    assert period.status_code == 201, period.text
    period_id = period.json()["data"]["id"]

    closed = await client.post(f"/api/v1/finances/periods/{period_id}/close", headers=org["national"])
    assert closed.status_code == 200
    snapshot = closed.json()["data"]["snapshot"]
    assert Decimal(snapshot["total_income"]) == Decimal("500")
    assert Decimal(snapshot["site_breakdown"][str(org["site_id"])]["income"]) == Decimal("500")

    again = await client.post(f"/api/v1/finances/periods/{period_id}/close", headers=org["national"])
    assert again.status_code == 409

    late = await client.post(
        "/api/v1/finances/transactions",
        json={"date": "2026-02-15", "type": "income", "amount": "10.00", "category": "Offering"},
        headers=org["national"],
    )
    assert late.status_code == 403

    # Entries after the period are still accepted and do not change the frozen figures
    await _transaction(client, org["national"], type="income", amount="70.00", date="2026-03-02")
    summary = await client.get(f"/api/v1/finances/summary?period_id={period_id}", headers=org["national"])
    data = summary.json()["data"]
    assert data["from_snapshot"] is True
    assert Decimal(data["income"]) == Decimal("500")


@pytest.mark.asyncio
async def test_overlapping_periods_conflict(client: AsyncClient, org) -> None:
    first = await client.post(
        "/api/v1/finances/periods",
        json={"type": "quarter", "start_date": "2026-01-01", "end_date": "2026-03-31"},
        headers=org["national"],
    )
    assert first.status_code == 201
    overlap = await client.post(
        "/api/v1/finances/periods",
        json={"type": "month", "start_date": "2026-03-01", "end_date": "2026-03-31"},
        headers=org["national"],
    )
    assert overlap.status_code == 409


@pytest.mark.asyncio
async def test_reversal_offsets_transaction(client: AsyncClient, org) -> None:
    tx = await _transaction(client, org["national"], type="expense", amount="80.00", category="Transport")
    response = await client.post(
        f"/api/v1/finances/transactions/{tx['id']}/reverse",
        json={"reason": "Duplicate entry", "date": "2026-02-12"},
        headers=org["national"],
    )
    assert response.status_code in (200, 201), response.text
    reversal = response.json()["data"]
    assert reversal["type"] == "income"
    assert reversal["reversal_of_id"] == tx["id"]

    summary = await client.get("/api/v1/finances/summary", headers=org["national"])
    assert Decimal(summary.json()["data"]["net_balance"]) == Decimal("0")


@pytest.mark.asyncio
async def test_members_cannot_read_periods(client: AsyncClient, org) -> None:
    period = await client.post(
        "/api/v1/finances/periods",
        json={"type": "month", "start_date": "2026-05-01", "end_date": "2026-05-31"},
        headers=org["national"],
    )
    period_id = period.json()["data"]["id"]

    listed = await client.get("/api/v1/finances/periods", headers=org["member_a"])
    assert listed.status_code == 403
    detail = await client.get(f"/api/v1/finances/periods/{period_id}", headers=org["member_a"])
    assert detail.status_code == 403
    allowed = await client.get(f"/api/v1/finances/periods/{period_id}", headers=org["leader_a"])
    assert allowed.status_code == 200
