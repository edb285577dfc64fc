"""Production group maintenance endpoints and the enriched group view."""

from __future__ import annotations

import json
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from prodledger.core.errors import ValidationError
from prodledger.models import AllocationHistory, Inventory, WorkOrder
from prodledger.schemas.group import ProductionGroupCreate
from prodledger.services.groups import seed_ledger_quantities

GROUPS_URL = "/api/production/production-group"


def test_seed_defaults_balance_to_target():
    payload = ProductionGroupCreate(group_name="A", group_Qty=Decimal("80"))
    assert seed_ledger_quantities(payload) == (Decimal("0"), Decimal("80"))


def test_seed_derives_missing_side():
    payload = ProductionGroupCreate(group_name="A", group_Qty=Decimal("80"), manufactured_qty=Decimal("30"))
    assert seed_ledger_quantities(payload) == (Decimal("30"), Decimal("50"))


def test_seed_rejects_values_that_do_not_add_up():
    payload = ProductionGroupCreate(
        group_name="A",
        group_Qty=Decimal("80"),
        manufactured_qty=Decimal("30"),
        balance_manufacture_qty=Decimal("60"),
    )
    with pytest.raises(ValidationError) as ctx:
        seed_ledger_quantities(payload)
    assert ctx.value.details["reason"] == "ledger_mismatch"


@pytest.mark.anyio
async def test_create_and_fetch_group(client, ledger, auth_headers):
    resp = await client.post(
        GROUPS_URL,
        json={
            "group_name": "  Batch C ",
            "group_Qty": "250",
            "group_value": [{"work_order_id": 1, "layer_id": "L1"}],
        },
        headers=auth_headers,
    )

    assert resp.status_code == 201
    created = resp.json()["data"]
    assert created["group_name"] == "Batch C"
    assert created["group_Qty"] == 250.0
    assert created["manufactured_qty"] == 0.0
    assert created["balance_manufacture_qty"] == 250.0
    assert created["group_status"] == "pending"
    assert created["group_value"] == [{"work_order_id": 1, "layer_id": "L1"}]

    fetched = await client.get(f"{GROUPS_URL}/{created['id']}", headers=auth_headers)
    assert fetched.status_code == 200
    assert fetched.json()["data"]["id"] == created["id"]


@pytest.mark.anyio
async def test_create_rejects_inconsistent_ledger(client, ledger, auth_headers):
    resp = await client.post(
        GROUPS_URL,
        json={"group_name": "Bad", "group_Qty": 10, "manufactured_qty": 4, "balance_manufacture_qty": 4},
        headers=auth_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["reason"] == "ledger_mismatch"


@pytest.mark.anyio
async def test_create_requires_positive_quantity(client, ledger, auth_headers):
    resp = await client.post(GROUPS_URL, json={"group_name": "Zero", "group_Qty": 0}, headers=auth_headers)
    assert resp.status_code == 422


@pytest.mark.anyio
async def test_list_filters_and_paginates(client, ledger, auth_headers):
    for name in ("Alpha", "Beta", "Alphabet"):
        resp = await client.post(GROUPS_URL, json={"group_name": name, "group_Qty": 5}, headers=auth_headers)
        assert resp.status_code == 201

    resp = await client.get(GROUPS_URL, params={"group_name": "Alpha", "limit": 1}, headers=auth_headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["pagination"] == {"total": 2, "page": 1, "limit": 1, "totalPages": 2}
    assert len(data["production_groups"]) == 1


@pytest.mark.anyio
async def test_update_rejects_target_change_and_stale_edits(client, ledger, auth_headers):
    current = (await client.get(f"{GROUPS_URL}/100", headers=auth_headers)).json()["data"]

    resp = await client.put(f"{GROUPS_URL}/100", json={"group_Qty": 150}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["reason"] == "group_qty_immutable"

    stale = datetime.fromisoformat(current["updated_at"]) - timedelta(minutes=5)
    resp = await client.put(
        f"{GROUPS_URL}/100",
        json={"group_name": "Renamed", "expected_updated_at": stale.isoformat()},
        headers=auth_headers,
    )
    assert resp.status_code == 409

    resp = await client.put(
        f"{GROUPS_URL}/100",
        json={"group_name": "Renamed", "group_Qty": 100, "expected_updated_at": current["updated_at"]},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    updated = resp.json()["data"]
    assert updated["group_name"] == "Renamed"
    assert updated["balance_manufacture_qty"] == 100.0
    assert updated["version"] == current["version"] + 1


@pytest.mark.anyio
async def test_update_cannot_complete_group_with_balance_left(client, ledger, auth_headers):
    resp = await client.put(
        f"{GROUPS_URL}/100", json={"group_status": "production_completed"}, headers=auth_headers
    )
    assert resp.status_code == 400
    assert resp.json()["reason"] == "ledger_status_mismatch"

    group = (await client.get(f"{GROUPS_URL}/100", headers=auth_headers)).json()["data"]
    assert group["group_status"] == "pending"
    assert group["production_completed"] is None

    resp = await client.put(
        f"{GROUPS_URL}/100", json={"group_status": "allocation_completed"}, headers=auth_headers
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["group_status"] == "allocation_completed"


@pytest.mark.anyio
async def test_update_cannot_reopen_exhausted_group(client, ledger, auth_headers):
    done = await client.patch(
        "/api/production-schedule/group/update_quantity/100",
        json={"manufactured_quantity": 100},
        headers=auth_headers,
    )
    assert done.status_code == 200

    resp = await client.put(f"{GROUPS_URL}/100", json={"group_status": "pending"}, headers=auth_headers)
    assert resp.status_code == 400
    assert resp.json()["reason"] == "ledger_status_mismatch"

    group = (await client.get(f"{GROUPS_URL}/100", headers=auth_headers)).json()["data"]
    assert group["group_status"] == "production_completed"
    assert group["production_completed"] == "Completed"
    assert group["balance_manufacture_qty"] == 0.0

    resp = await client.put(
        f"{GROUPS_URL}/100", json={"group_status": "production_completed"}, headers=auth_headers
    )
    assert resp.status_code == 200


@pytest.mark.anyio
async def test_delete_is_soft(client, ledger, auth_headers):
    resp = await client.delete(f"{GROUPS_URL}/100", headers=auth_headers)
    assert resp.status_code == 200

    active = (await client.get(GROUPS_URL, headers=auth_headers)).json()["data"]
    everything = (await client.get(GROUPS_URL, params={"status": "all"}, headers=auth_headers)).json()["data"]
    assert active["pagination"]["total"] == 0
    assert [g["status"] for g in everything["production_groups"]] == ["inactive"]

    update = await client.patch(
        f"/api/production-schedule/group/update_quantity/100",
        json={"manufactured_quantity": 1},
        headers=auth_headers,
    )
    assert update.status_code == 404


@pytest.mark.anyio
async def test_other_company_cannot_see_group(client, ledger):
    from prodledger.core.security import create_access_token

    token = create_access_token({"id": 10, "company_id": 2})
    resp = await client.get(f"{GROUPS_URL}/100", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 404


@pytest.mark.anyio
async def test_group_detail_includes_layers_allocations_and_schedule(
    client, session_factory, ledger, auth_headers
):
    async with session_factory() as session:
        async with session.begin():
            session.add_all(
                [
                    WorkOrder(
                        id=1,
                        company_id=1,
                        work_generate_id="WO-00001",
                        sku_name="Carton",
                        edd=date(2024, 6, 1),
                        work_order_sku_values=[{"layer_id": "L1", "gsm": 120}],
                    ),
                    Inventory(id=1, company_id=1, item_code="KRAFT", quantity_available=Decimal("90")),
                    AllocationHistory(id=1, company_id=1, inventory_id=1, group_id=100, allocated_qty=Decimal("12")),
                ]
            )
    resp = await client.put(
        f"{GROUPS_URL}/100",
        json={"group_value": [{"work_order_id": 1, "layer_id": "L1"}]},
        headers=auth_headers,
    )
    assert resp.status_code == 200

    resp = await client.get("/api/production-schedule/group/100", headers=auth_headers)

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["layers_status"] == "ok"
    assert data["layers"][0]["work_generate_id"] == "WO-00001"
    assert data["layers"][0]["gsm"] == 120
    assert data["allocations"][0]["item_code"] == "KRAFT"
    assert data["allocations"][0]["allocated_qty"] == 12.0
    assert data["latest_schedule"]["id"] == 50
    assert data["latest_schedule"]["date"] == date.today().isoformat()


@pytest.mark.anyio
async def test_group_detail_survives_corrupt_group_value(client, session_factory, ledger, auth_headers):
    from sqlalchemy import update

    from prodledger.models import ProductionGroup

    async with session_factory() as session:
        async with session.begin():
            await session.execute(
                update(ProductionGroup).where(ProductionGroup.id == 100).values(group_value=json.dumps("{broken"))
            )

    resp = await client.get("/api/production-schedule/group/100", headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json()["data"]["layers_status"] == "parse_failed"
    assert resp.json()["data"]["layers"] == []
