import pytest
from httpx import AsyncClient


async def _item(client: AsyncClient, headers, **fields) -> dict:
    payload = {"name": "Chairs", "category": "furniture"}
    payload.update(fields)
    response = await client.post("/api/v1/inventory", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def _move(client: AsyncClient, headers, item_id: str, direction: str, quantity: int):
    return await client.post(
        f"/api/v1/inventory/{item_id}/movements",
        json={"direction": direction, "quantity": quantity, "date": "2026-04-01", "reason": "Count"},
        headers=headers,
    )


@pytest.mark.asyncio
async def test_stock_follows_movements(client: AsyncClient, org) -> None:
    item = await _item(client, org["site_coord"])
    assert item["site_id"] == str(org["site_id"])
    assert item["current_stock"] == 0

    incoming = await _move(client, org["site_coord"], item["id"], "in", 30)
    assert incoming.json()["data"]["stock_after"] == 30
    outgoing = await _move(client, org["site_coord"], item["id"], "out", 12)
    assert outgoing.json()["data"]["stock_after"] == 18

    detail = await client.get(f"/api/v1/inventory/{item['id']}", headers=org["site_coord"])
    assert detail.json()["data"]["current_stock"] == 18


@pytest.mark.asyncio
async def test_stock_cannot_go_negative(client: AsyncClient, org) -> None:
    item = await _item(client, org["national"])
    await _move(client, org["national"], item["id"], "in", 5)

    response = await _move(client, org["national"], item["id"], "out", 6)
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"

    history = await client.get(f"/api/v1/inventory/{item['id']}/movements", headers=org["national"])
    assert len(history.json()["data"]) == 1


@pytest.mark.asyncio
async def test_inventory_is_scoped(client: AsyncClient, org) -> None:
    await _item(client, org["national"], site_id=str(org["other_site_id"]))
    mine = await _item(client, org["site_coord"], name="Projector", category="equipment")

    listed = await client.get("/api/v1/inventory", headers=org["site_coord"])
    assert [i["id"] for i in listed.json()["data"]] == [mine["id"]]

    denied = await client.post("/api/v1/inventory", json={"name": "Drums", "category": "music"}, headers=org["leader_a"])
    assert denied.status_code == 403


@pytest.mark.asyncio
async def test_drained_stock_refuses_further_outgoing(client: AsyncClient, org) -> None:
    item = await _item(client, org["site_coord"])
    await _move(client, org["site_coord"], item["id"], "in", 5)
    drained = await _move(client, org["site_coord"], item["id"], "out", 5)
    assert drained.json()["data"]["stock_after"] == 0

    again = await _move(client, org["site_coord"], item["id"], "out", 1)
    assert again.status_code == 400
    movements = await client.get(f"/api/v1/inventory/{item['id']}/movements", headers=org["site_coord"])
    assert [m["stock_after"] for m in movements.json()["data"]] == [5, 0]
